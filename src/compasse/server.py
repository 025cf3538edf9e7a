"""Compasse server: MCP over Server-Sent Events on a FastAPI application."""

from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from compasse.config import Settings, get_settings
from compasse.logging import get_logger, setup_logging
from compasse.protocol import ProtocolDispatcher
from compasse.registry import MethodDescriptor, MethodRegistry
from compasse.registry import method as method_decorator
from compasse.registry import prompt as prompt_decorator
from compasse.registry import tool as tool_decorator
from compasse.sessions import SessionStore, SseSessionManager

logger = get_logger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


class CompasseServer:
    """Top-level server object.

    Owns the method registry, the session store, the SSE session manager and
    the protocol dispatcher. Handlers are registered once, before the HTTP
    listener accepts connections; the registry is frozen when the
    application starts.

    Example:
        ```python
        from pydantic import BaseModel

        from compasse import CompasseServer

        server = CompasseServer()

        class FruitRequest(BaseModel):
            pass

        @server.tool(description="Gets a fruit.")
        def get_fruit(request: FruitRequest) -> dict:
            return {"fruit": "Mango"}

        server.run()
        ```
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        registry: MethodRegistry | None = None,
        configure_logging: bool = True,
    ) -> None:
        """Initialize server.

        Args:
            settings: Custom settings (defaults to environment config)
            registry: Pre-populated registry (a new one by default)
            configure_logging: Set up structlog from the settings
        """
        self.settings = settings or get_settings()

        if configure_logging:
            setup_logging(
                log_level=self.settings.log_level,
                json_format=self.settings.use_json_logs(),
                enable_colors=self.settings.is_development(),
            )

        self.registry = registry or MethodRegistry()
        self.store = SessionStore()
        self.sessions = SseSessionManager(
            self.store,
            heartbeat_interval=self.settings.heartbeat_interval,
            max_queued_frames=self.settings.max_queued_frames,
        )
        self.dispatcher = ProtocolDispatcher(self.registry, self.store, settings=self.settings)
        self._app: FastAPI | None = None

        logger.info(
            "Compasse server created",
            name=self.settings.server_name,
            version=self.settings.server_version,
            mount_path=self.settings.mount_path,
        )

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register_tool(
        self,
        name: str,
        description: str | None,
        request_shape: Any,
        handler: Callable[[Any], Any],
        *,
        is_async: bool | None = None,
    ) -> MethodDescriptor:
        """Register a tool handler."""
        return self.registry.register_tool(name, description, request_shape, handler, is_async=is_async)

    def register_prompt(
        self,
        name: str,
        description: str | None,
        request_shape: Any,
        handler: Callable[[Any], Any],
        *,
        is_async: bool | None = None,
    ) -> MethodDescriptor:
        """Register a prompt handler."""
        return self.registry.register_prompt(name, description, request_shape, handler, is_async=is_async)

    def register_method(
        self,
        name: str,
        description: str | None,
        request_shape: Any,
        handler: Callable[[Any], Any],
        *,
        is_async: bool | None = None,
    ) -> MethodDescriptor:
        """Register a handler dispatched directly by method name."""
        return self.registry.register_method(name, description, request_shape, handler, is_async=is_async)

    def add(self, *funcs: Callable[..., Any]) -> None:
        """Register functions decorated with ``tool``, ``prompt`` or ``method``."""
        for func in funcs:
            self.registry.add(func)

    def tool(self, name: str | None = None, description: str | None = None) -> Callable[[F], F]:
        """Decorate and register a tool in one step."""
        return self._registering(tool_decorator(name, description))

    def prompt(self, name: str | None = None, description: str | None = None) -> Callable[[F], F]:
        """Decorate and register a prompt in one step."""
        return self._registering(prompt_decorator(name, description))

    def method(self, name: str | None = None, description: str | None = None) -> Callable[[F], F]:
        """Decorate and register a top-level method in one step."""
        return self._registering(method_decorator(name, description))

    def _registering(self, decorator: Callable[[F], F]) -> Callable[[F], F]:
        def register(func: F) -> F:
            decorated = decorator(func)
            self.registry.add(decorated)
            return decorated

        return register

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------

    def get_app(self) -> FastAPI:
        """Get the FastAPI application, building it on first use."""
        if self._app is None:
            self._app = self._build_app()
        return self._app

    def _build_app(self) -> FastAPI:
        @asynccontextmanager
        async def lifespan(app: FastAPI) -> AsyncIterator[None]:  # noqa: ARG001
            self.registry.freeze()
            logger.info(
                "Compasse server started",
                tools=len(self.registry.tools),
                prompts=len(self.registry.prompts),
                methods=len(self.registry.methods),
            )
            yield
            self.sessions.close_all()
            logger.info("Compasse server stopped")

        app = FastAPI(
            title=f"{self.settings.server_name} MCP Server",
            version=self.settings.server_version,
            lifespan=lifespan,
        )

        if self.settings.cors_enabled:
            app.add_middleware(
                CORSMiddleware,
                allow_origins=self.settings.cors_origins,
                allow_credentials=True,
                allow_methods=["*"],
                allow_headers=["*"],
                expose_headers=["Content-Type", "Content-Length"],
            )

        path = self.settings.mount_path

        @app.get(path)
        async def sse_connect(request: Request):
            """Open an SSE stream; the ``endpoint`` event names the POST URL."""
            return await self.sessions.connect(request)

        @app.post(path)
        async def sse_message(request: Request):
            """Accept a JSON-RPC message for the stream named by ``clientId``."""
            return await self.dispatcher.handle_post(request)

        @app.get("/health")
        async def health():
            """Health check endpoint."""
            return {
                "status": "healthy",
                "sessions": len(self.store),
                "tools": len(self.registry.tools),
                "prompts": len(self.registry.prompts),
            }

        return app

    async def serve(self, host: str | None = None, port: int | None = None) -> None:
        """Serve the application with uvicorn until stopped.

        Args:
            host: Host to bind to (defaults to settings)
            port: Port to listen on (defaults to settings)
        """
        import uvicorn

        host = host or self.settings.http_host
        port = port or self.settings.http_port
        logger.info("Starting Compasse server", host=host, port=port, path=self.settings.mount_path)

        config = uvicorn.Config(
            self.get_app(),
            host=host,
            port=port,
            log_level=self.settings.log_level.lower(),
        )
        server = uvicorn.Server(config)

        try:
            await server.serve()
        except Exception as e:
            logger.error("Compasse server error", error=str(e))
            raise

    def run(self, host: str | None = None, port: int | None = None) -> None:
        """Blocking variant of ``serve``."""
        import asyncio

        asyncio.run(self.serve(host=host, port=port))

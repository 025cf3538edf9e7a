"""Protocol dispatcher: routes POSTed JSON-RPC messages and answers over SSE.

Every POST is handled independently:

1. ``clientId`` is resolved against the session store; a missing or unknown
   id is a transport failure (HTTP 400) since there is nowhere to deliver a
   JSON-RPC reply.
2. The body is parsed as a request, then as a bare notification. Bodies
   fitting neither get a ``-32700`` reply with a null id; notifications are
   accepted and never answered.
3. Requests are routed to a built-in method or to a handler registered
   directly under the method name.
4. The single success or error response is written to the originating
   session as a ``message`` event, and the POST is acknowledged with 202.

Responses for concurrent POSTs of the same client are written in
completion order, not submission order.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

import structlog
from fastapi import Request
from fastapi.responses import PlainTextResponse, Response
from pydantic import BaseModel, ValidationError

from compasse.config import Settings, get_settings
from compasse.errors import (
    InvalidArgumentsError,
    InvalidRequestError,
    MethodNotFoundError,
    ParseError,
    RpcError,
    SessionClosedError,
    TransportError,
    format_error,
)
from compasse.logging import get_logger
from compasse.protocol.models import (
    JSONRPC_VERSION,
    InitializeParams,
    InitializeResult,
    JsonRpcError,
    JsonRpcErrorResponse,
    JsonRpcRequest,
    JsonRpcResponse,
    PromptGetParams,
    PromptsListResult,
    ResourceReadParams,
    ResourcesListResult,
    ServerInfo,
    ToolCallParams,
    ToolsListResult,
    parse_message,
)
from compasse.registry import MethodKind, MethodRegistry
from compasse.sessions import ClientSession, SessionStore, SseEncoder

logger = get_logger(__name__)

P = TypeVar("P", bound=BaseModel)

Handler = Callable[[Any], Awaitable[Any]]


class ProtocolDispatcher:
    """Routes JSON-RPC requests to built-in methods and registered handlers.

    Built-in methods:
        - initialize: Fixed capability/version document
        - ping: Liveness check
        - prompts/list, tools/list: Registered prompt/tool listings
        - prompts/get, tools/call: Invoke a prompt/tool by ``params.name``
        - resources/list, resources/read: Placeholders (no resources)

    Any other method name is looked up among handlers registered with
    ``MethodKind.METHOD``.
    """

    def __init__(
        self,
        registry: MethodRegistry,
        store: SessionStore,
        *,
        settings: Settings | None = None,
        encoder: SseEncoder | None = None,
    ):
        """Initialize dispatcher.

        Args:
            registry: Registry holding tool, prompt and method handlers
            store: Store used to resolve ``clientId``
            settings: Server settings (identity reported by ``initialize``)
            encoder: Frame encoder for responses
        """
        self.registry = registry
        self.store = store
        self.settings = settings or get_settings()
        self.encoder = encoder or SseEncoder()
        self._builtins: dict[str, Handler] = {
            "initialize": self._handle_initialize,
            "ping": self._handle_ping,
            "prompts/list": self._handle_prompts_list,
            "prompts/get": self._handle_prompts_get,
            "resources/list": self._handle_resources_list,
            "resources/read": self._handle_resources_read,
            "tools/list": self._handle_tools_list,
            "tools/call": self._handle_tools_call,
        }

    @property
    def builtin_methods(self) -> list[str]:
        return list(self._builtins)

    async def handle_post(self, request: Request) -> Response:
        """Handle one POSTed message.

        Returns:
            202 once the reply (if any) was written, 400 for transport failures
        """
        client_id = request.query_params.get("clientId")
        try:
            session = self.store.require(client_id)
        except TransportError as e:
            logger.warning("POST for unknown session", client_id=client_id)
            return PlainTextResponse(e.message, status_code=400)

        try:
            body = await request.body()
        except Exception as e:
            logger.warning("Failed to read POST body", client_id=client_id, error=str(e))
            return PlainTextResponse(f"Error processing request: {e}", status_code=400)

        with structlog.contextvars.bound_contextvars(client_id=session.id):
            response = await self.dispatch(body)
            if response is not None:
                await self.deliver(session, response)

        return Response(status_code=202)

    async def dispatch(
        self, body: bytes | str
    ) -> JsonRpcResponse | JsonRpcErrorResponse | None:
        """Parse and execute one message.

        Never raises for per-request failures; they become error responses.

        Returns:
            The response to deliver, or None for notifications
        """
        try:
            message = parse_message(body)
        except ParseError as e:
            logger.warning("Unparseable JSON-RPC message", size=len(body))
            return self._error_response(None, e)

        if not isinstance(message, JsonRpcRequest):
            logger.debug("Notification accepted", method=message.method)
            return None

        log = logger.bind(method=message.method, request_id=message.id)
        log.info("Dispatching request")

        try:
            if message.jsonrpc != JSONRPC_VERSION:
                raise InvalidRequestError(
                    "Invalid JSON-RPC version",
                    details={"jsonrpc": message.jsonrpc},
                )
            result = await self._dispatch_method(message.method, message.params)
        except RpcError as e:
            log.warning("Request failed", code=int(e.rpc_code), error=e.message)
            return self._error_response(message.id, e)
        except Exception as e:
            log.exception("Unexpected error dispatching request")
            return self._error_response(message.id, e)

        return JsonRpcResponse(id=message.id, result=result)

    async def deliver(
        self,
        session: ClientSession,
        response: JsonRpcResponse | JsonRpcErrorResponse,
    ) -> bool:
        """Write a response to its session as a ``message`` event.

        Returns:
            True if the frame was written
        """
        frame = self.encoder.message(response)
        try:
            await session.send(frame)
        except SessionClosedError as e:
            logger.warning(
                "Session closed before response was delivered",
                request_id=response.id,
                error=e.message,
            )
            # An overflowing sink closes without the stream noticing
            if self.store.get(session.id) is session:
                self.store.remove(session.id)
            return False
        except Exception as e:
            logger.error("Failed to deliver response", request_id=response.id, error=str(e))
            return False

        logger.debug("Response delivered", request_id=response.id, size=len(frame))
        return True

    async def _dispatch_method(self, method: str, params: Any) -> Any:
        handler = self._builtins.get(method)
        if handler is not None:
            return await handler(params)

        descriptor = self.registry.lookup(method, MethodKind.METHOD)
        if descriptor is None:
            raise MethodNotFoundError(f"Method not found: {method}", details={"method": method})

        return await self.registry.invoke(descriptor, params)

    async def _handle_initialize(self, params: Any) -> dict[str, Any]:
        try:
            client = InitializeParams.model_validate(params or {})
        except ValidationError:
            client = InitializeParams()
        logger.info(
            "MCP client initialized",
            client=client.clientInfo.get("name", "unknown"),
            version=client.clientInfo.get("version", "unknown"),
            protocol_version=client.protocolVersion,
        )

        return InitializeResult(
            protocolVersion=self.settings.protocol_version,
            serverInfo=ServerInfo(
                name=self.settings.server_name,
                version=self.settings.server_version,
            ),
        ).model_dump()

    async def _handle_ping(self, params: Any) -> dict[str, Any]:  # noqa: ARG002
        return {}

    async def _handle_tools_list(self, params: Any) -> dict[str, Any]:  # noqa: ARG002
        tools = [descriptor.to_tool_format() for descriptor in self.registry.tools]
        logger.debug("Listing tools", count=len(tools))
        return ToolsListResult(tools=tools).model_dump()

    async def _handle_prompts_list(self, params: Any) -> dict[str, Any]:  # noqa: ARG002
        prompts = [descriptor.to_prompt_format() for descriptor in self.registry.prompts]
        logger.debug("Listing prompts", count=len(prompts))
        return PromptsListResult(prompts=prompts).model_dump()

    async def _handle_tools_call(self, params: Any) -> Any:
        call = _decode_params(ToolCallParams, params)
        descriptor = self.registry.lookup(call.name, MethodKind.TOOL)
        if descriptor is None:
            raise MethodNotFoundError(
                f"There is no tool named {call.name}.",
                details={"tool": call.name},
            )

        logger.info("Calling tool", tool=call.name)
        return await self.registry.invoke(descriptor, call.arguments)

    async def _handle_prompts_get(self, params: Any) -> Any:
        call = _decode_params(PromptGetParams, params)
        descriptor = self.registry.lookup(call.name, MethodKind.PROMPT)
        if descriptor is None:
            raise MethodNotFoundError(
                f"There is no prompt named {call.name}.",
                details={"prompt": call.name},
            )

        logger.info("Getting prompt", prompt=call.name)
        return await self.registry.invoke(descriptor, call.arguments)

    async def _handle_resources_list(self, params: Any) -> dict[str, Any]:  # noqa: ARG002
        return ResourcesListResult().model_dump()

    async def _handle_resources_read(self, params: Any) -> Any:
        read = _decode_params(ResourceReadParams, params)
        raise InvalidArgumentsError(f"Resource not found: {read.uri}", details={"uri": read.uri})

    @staticmethod
    def _error_response(request_id: str | None, error: Exception) -> JsonRpcErrorResponse:
        return JsonRpcErrorResponse(id=request_id, error=JsonRpcError(**format_error(error)))


def _decode_params(model: type[P], params: Any) -> P:
    """Decode the params envelope of an indirection method.

    Raises:
        InvalidArgumentsError: If params are absent or malformed
    """
    if params is None:
        raise InvalidArgumentsError("Params must not be null.")
    try:
        return model.model_validate(params)
    except ValidationError as e:
        raise InvalidArgumentsError(
            f"Failed to deserialize params: {e.error_count()} validation error(s)",
            details={"errors": e.errors(include_url=False, include_context=False)},
        ) from e

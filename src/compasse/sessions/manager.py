"""SSE session manager: lifecycle of each client's streaming connection.

Each GET connection moves through ``CONNECTING -> STREAMING -> CLOSED``:

1. A fresh client identifier is generated and the session is registered.
2. A ``: connected`` comment and the ``endpoint`` event are written; the
   endpoint URL carries the identifier as ``clientId`` so POSTs can be
   correlated to the stream.
3. Heartbeat comments are written every ``heartbeat_interval`` seconds.
4. On disconnect, cancellation or a failed write the session is removed
   from the store and its heartbeat stopped. There is no resume; a client
   that loses its stream must reconnect and receives a new identifier.
"""

import asyncio
import uuid
from collections.abc import AsyncGenerator
from urllib.parse import urlencode

from fastapi import Request
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from compasse.errors import SessionClosedError
from compasse.logging import get_logger
from compasse.sessions.encoder import SseEncoder
from compasse.sessions.store import (
    DEFAULT_MAX_QUEUED_FRAMES,
    ClientSession,
    QueueSink,
    SessionState,
    SessionStore,
)

logger = get_logger(__name__)

DEFAULT_HEARTBEAT_INTERVAL = 15.0


class SessionStreamResponse(StreamingResponse):
    """Streaming response that always finalizes its frame iterator.

    Depending on the ASGI spec version, Starlette either cancels the stream
    on disconnect or raises ``ClientDisconnect`` with the iterator still
    suspended. Closing it here runs the session teardown in both cases.
    """

    body_iterator: AsyncGenerator[bytes, None]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            await self.body_iterator.aclose()


class SseSessionManager:
    """Opens, streams and tears down client sessions.

    Example:
        ```python
        store = SessionStore()
        manager = SseSessionManager(store)

        @app.get("/sse")
        async def sse(request: Request):
            return await manager.connect(request)
        ```
    """

    def __init__(
        self,
        store: SessionStore,
        *,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        max_queued_frames: int = DEFAULT_MAX_QUEUED_FRAMES,
        encoder: SseEncoder | None = None,
    ):
        """Initialize session manager.

        Args:
            store: Store the sessions are registered in
            heartbeat_interval: Seconds between heartbeat comments
            max_queued_frames: Frames a session may queue before it is closed
            encoder: Frame encoder
        """
        if heartbeat_interval <= 0:
            raise ValueError("heartbeat_interval must be positive")
        if max_queued_frames <= 0:
            raise ValueError("max_queued_frames must be positive")

        self.store = store
        self.heartbeat_interval = heartbeat_interval
        self.max_queued_frames = max_queued_frames
        self.encoder = encoder or SseEncoder()
        self._heartbeats: dict[str, asyncio.Task[None]] = {}

    async def connect(self, request: Request) -> SessionStreamResponse:
        """Accept a GET connection and return its event stream response."""
        base_url = str(request.url.replace(query="", fragment=""))

        return SessionStreamResponse(
            self.stream(base_url),
            media_type=self.encoder.content_type,
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    async def stream(self, base_url: str) -> AsyncGenerator[bytes, None]:
        """Open a session and yield its frames until the connection ends.

        The session is always removed from the store when the iterator
        finishes, whether the client went away, the task was cancelled or
        the iterator was closed.

        Args:
            base_url: Absolute URL of the endpoint; ``clientId`` is appended
        """
        session = await self.open(base_url)
        reason = "closed"
        try:
            while True:
                frame = await session.sink.read()
                if frame is None:
                    break
                yield frame
        except asyncio.CancelledError:
            reason = "cancelled"
            raise
        except GeneratorExit:
            reason = "disconnected"
            raise
        finally:
            self.close(session, reason=reason)

    async def open(self, base_url: str) -> ClientSession:
        """Create and register a session, writing the handshake frames.

        Returns:
            The streaming session
        """
        session = ClientSession(id=str(uuid.uuid4()), sink=QueueSink(self.max_queued_frames))
        endpoint = f"{base_url}?{urlencode({'clientId': session.id})}"

        session.state = SessionState.STREAMING
        await session.send(self.encoder.connected())
        await session.send(self.encoder.endpoint(endpoint))

        self.store.add(session)
        self._heartbeats[session.id] = asyncio.create_task(
            self._heartbeat_loop(session),
            name=f"compasse-heartbeat-{session.id}",
        )

        logger.info("SSE session opened", client_id=session.id, endpoint=endpoint)
        return session

    def close(self, session: ClientSession, reason: str = "closed") -> None:
        """Move a session to CLOSED: deregister it and stop its heartbeat.

        Safe to call more than once.
        """
        if session.state is SessionState.CLOSED:
            return
        session.state = SessionState.CLOSED
        session.sink.close()

        if self.store.get(session.id) is session:
            self.store.remove(session.id)

        heartbeat = self._heartbeats.pop(session.id, None)
        if heartbeat is not None and heartbeat is not asyncio.current_task():
            heartbeat.cancel()

        logger.info(
            "SSE session closed",
            client_id=session.id,
            reason=reason,
            active_sessions=len(self.store),
        )

    def close_all(self, reason: str = "shutdown") -> None:
        """Close every live session."""
        for session in self.store.sessions():
            self.close(session, reason=reason)

    async def _heartbeat_loop(self, session: ClientSession) -> None:
        count = 0
        try:
            while session.active:
                await asyncio.sleep(self.heartbeat_interval)
                count += 1
                await session.send(self.encoder.heartbeat(count))
                logger.debug("Heartbeat sent", client_id=session.id, count=count)
        except SessionClosedError:
            self.close(session, reason="write_failed")
        except Exception:
            logger.exception("Heartbeat failed", client_id=session.id)
            self.close(session, reason="heartbeat_error")

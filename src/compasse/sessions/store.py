"""Session store: one live output channel per connected client."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum

from compasse.errors import ErrorCode, SessionClosedError, TransportError


class SessionState(str, Enum):
    """Lifecycle of a streaming connection."""

    CONNECTING = "connecting"
    STREAMING = "streaming"
    CLOSED = "closed"


DEFAULT_MAX_QUEUED_FRAMES = 1024


class QueueSink:
    """Write-only frame channel feeding a streaming response.

    Writers push complete frames; the response side reads them in order.
    Each queued item is a whole frame, so frames never interleave.

    The queue is bounded. A reader that falls ``maxsize`` frames behind
    closes the sink; frames already queued can still be read.
    """

    def __init__(self, maxsize: int = DEFAULT_MAX_QUEUED_FRAMES) -> None:
        if maxsize <= 0:
            raise ValueError("maxsize must be positive")
        self._queue: asyncio.Queue[bytes | None] = asyncio.Queue(maxsize=maxsize)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    async def write(self, frame: bytes) -> None:
        """Queue a frame.

        Raises:
            SessionClosedError: If the sink was closed, or is full and now closes
        """
        if self._closed:
            raise SessionClosedError("Output sink is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull as e:
            self.close()
            raise SessionClosedError(
                "Output sink is full",
                details={"queued_frames": self._queue.qsize()},
            ) from e

    async def read(self) -> bytes | None:
        """Wait for the next frame; None once the sink is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        return await self._queue.get()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        # A full queue needs no sentinel; read() ends once it drains
        if not self._queue.full():
            self._queue.put_nowait(None)


@dataclass(eq=False)
class ClientSession:
    """Server-side half of one open GET stream."""

    id: str
    sink: QueueSink = field(default_factory=QueueSink, repr=False)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    state: SessionState = SessionState.CONNECTING
    _write_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    @property
    def active(self) -> bool:
        return self.state is SessionState.STREAMING

    async def send(self, frame: bytes) -> None:
        """Write one complete frame, serialized against other writers of this session.

        Raises:
            SessionClosedError: If the session is no longer streaming
        """
        async with self._write_lock:
            if not self.active:
                raise SessionClosedError(
                    f"Session '{self.id}' is {self.state.value}",
                    details={"client_id": self.id},
                )
            await self.sink.write(frame)


class SessionStore:
    """Maps client identifiers to live sessions.

    All access happens on the event loop and no operation suspends, so each
    add/remove/get is atomic without a lock. Writes are serialized per
    session by ``ClientSession.send``; unrelated clients never contend.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, ClientSession] = {}

    def add(self, session: ClientSession) -> None:
        """Register a session.

        Raises:
            TransportError: If the identifier is already taken
        """
        if session.id in self._sessions:
            raise TransportError(
                f"Session '{session.id}' already exists",
                code=ErrorCode.TRANSPORT_BAD_REQUEST,
                details={"client_id": session.id},
            )
        self._sessions[session.id] = session

    def remove(self, client_id: str) -> ClientSession | None:
        """Deregister a session; a no-op for unknown identifiers."""
        return self._sessions.pop(client_id, None)

    def get(self, client_id: str | None) -> ClientSession | None:
        if not client_id:
            return None
        return self._sessions.get(client_id)

    def require(self, client_id: str | None) -> ClientSession:
        """Get a session or fail with a transport error.

        Raises:
            TransportError: If ``client_id`` is missing or unknown
        """
        session = self.get(client_id)
        if session is None:
            raise TransportError(
                "Invalid or missing clientId",
                details={"client_id": client_id},
            )
        return session

    def sessions(self) -> list[ClientSession]:
        return list(self._sessions.values())

    def __contains__(self, client_id: object) -> bool:
        return client_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

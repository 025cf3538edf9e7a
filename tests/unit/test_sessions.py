"""Tests for the session store, the SSE encoder and the session manager."""

import asyncio
import json
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from compasse.errors import SessionClosedError, TransportError
from compasse.protocol import JsonRpcResponse
from compasse.sessions import (
    ClientSession,
    QueueSink,
    SessionState,
    SessionStore,
    SessionStreamResponse,
    SseEncoder,
    SseSessionManager,
)

BASE_URL = "http://testserver/sse"


def client_id_from_endpoint(frame: bytes) -> str:
    """Extract ``clientId`` from an ``endpoint`` frame."""
    lines = frame.decode().splitlines()
    assert lines[0] == "event: endpoint"
    url = lines[1].removeprefix("data: ")
    return parse_qs(urlparse(url).query)["clientId"][0]


class TestSseEncoder:
    """Test frame encoding."""

    def test_connected(self):
        """Test the connected comment."""
        assert SseEncoder().connected() == b": connected\n\n"

    def test_heartbeat(self):
        """Test heartbeat comments carry the counter."""
        assert SseEncoder().heartbeat(3) == b": heartbeat 3\n\n"

    def test_endpoint(self):
        """Test the endpoint event."""
        frame = SseEncoder().endpoint("http://host/sse?clientId=abc")
        assert frame == b"event: endpoint\ndata: http://host/sse?clientId=abc\n\n"

    def test_message_single_line_json(self):
        """Test JSON-RPC messages are one data line."""
        frame = SseEncoder().message(JsonRpcResponse(id="1", result={"x": 5}))
        assert frame.startswith(b"event: message\ndata: ")
        assert frame.endswith(b"\n\n")
        payload = frame.decode().splitlines()[1].removeprefix("data: ")
        assert json.loads(payload) == {"jsonrpc": "2.0", "id": "1", "result": {"x": 5}}

    def test_crlf_separator(self):
        """Test a custom line separator."""
        assert SseEncoder(sep="\r\n").connected() == b": connected\r\n\r\n"


class TestQueueSink:
    """Test the frame channel."""

    @pytest.mark.asyncio
    async def test_frames_read_in_order(self):
        """Test frames come out in write order."""
        sink = QueueSink()
        await sink.write(b"a")
        await sink.write(b"b")

        assert await sink.read() == b"a"
        assert await sink.read() == b"b"

    @pytest.mark.asyncio
    async def test_close_drains_then_ends(self):
        """Test queued frames are still read after close."""
        sink = QueueSink()
        await sink.write(b"a")
        sink.close()

        assert sink.closed
        assert await sink.read() == b"a"
        assert await sink.read() is None
        assert await sink.read() is None

    @pytest.mark.asyncio
    async def test_overflow_closes_sink(self):
        """Test a reader that falls behind closes the sink."""
        sink = QueueSink(maxsize=2)
        await sink.write(b"a")
        await sink.write(b"b")

        with pytest.raises(SessionClosedError):
            await sink.write(b"c")

        assert sink.closed
        assert await sink.read() == b"a"
        assert await sink.read() == b"b"
        assert await sink.read() is None

    def test_maxsize_must_be_positive(self):
        """Test an unbounded sink cannot be requested."""
        with pytest.raises(ValueError):
            QueueSink(maxsize=0)

    @pytest.mark.asyncio
    async def test_write_after_close(self):
        """Test writing to a closed sink fails."""
        sink = QueueSink()
        sink.close()

        with pytest.raises(SessionClosedError):
            await sink.write(b"late")


class TestClientSession:
    """Test per-session writes."""

    @pytest.mark.asyncio
    async def test_send_requires_streaming(self):
        """Test only streaming sessions accept frames."""
        session = ClientSession(id="abc")
        assert session.state == SessionState.CONNECTING

        with pytest.raises(SessionClosedError):
            await session.send(b"frame")

        session.state = SessionState.STREAMING
        await session.send(b"frame")
        assert await session.sink.read() == b"frame"

    @pytest.mark.asyncio
    async def test_concurrent_sends_do_not_interleave(self):
        """Test each concurrent write lands as a whole frame."""
        session = ClientSession(id="abc", state=SessionState.STREAMING)
        frames = [f"event: message\ndata: {i}\n\n".encode() for i in range(20)]

        await asyncio.gather(*(session.send(frame) for frame in frames))

        received = [await session.sink.read() for _ in frames]
        assert sorted(received) == sorted(frames)


class TestSessionStore:
    """Test the session store."""

    def test_add_get_remove(self):
        """Test the basic lifecycle."""
        store = SessionStore()
        session = ClientSession(id="abc")

        store.add(session)
        assert "abc" in store
        assert store.get("abc") is session
        assert len(store) == 1

        assert store.remove("abc") is session
        assert store.get("abc") is None
        assert len(store) == 0

    def test_duplicate_id_rejected(self):
        """Test identifiers are unique."""
        store = SessionStore()
        store.add(ClientSession(id="abc"))

        with pytest.raises(TransportError):
            store.add(ClientSession(id="abc"))

    def test_get_missing_or_empty(self):
        """Test lookups of missing identifiers."""
        store = SessionStore()
        assert store.get(None) is None
        assert store.get("") is None
        assert store.get("nope") is None
        assert store.remove("nope") is None

    def test_require(self):
        """Test require raises for unknown identifiers."""
        store = SessionStore()
        session = ClientSession(id="abc")
        store.add(session)

        assert store.require("abc") is session
        with pytest.raises(TransportError) as exc_info:
            store.require("other")
        assert exc_info.value.message == "Invalid or missing clientId"


class TestSseSessionManager:
    """Test session open, streaming and teardown."""

    def test_heartbeat_interval_must_be_positive(self):
        """Test a non-positive interval is rejected."""
        with pytest.raises(ValueError):
            SseSessionManager(SessionStore(), heartbeat_interval=0)

    @pytest.mark.asyncio
    async def test_handshake_order(self):
        """Test connected comes first, then the endpoint event."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=60)
        stream = manager.stream(BASE_URL)

        assert await anext(stream) == b": connected\n\n"
        endpoint = await anext(stream)
        client_id = client_id_from_endpoint(endpoint)

        assert endpoint.decode().splitlines()[1] == f"data: {BASE_URL}?clientId={client_id}"
        assert client_id in store

        await stream.aclose()

    @pytest.mark.asyncio
    async def test_heartbeats_count_up(self):
        """Test heartbeat comments are numbered from 1."""
        manager = SseSessionManager(SessionStore(), heartbeat_interval=0.01)
        stream = manager.stream(BASE_URL)
        await anext(stream)
        await anext(stream)

        assert await anext(stream) == b": heartbeat 1\n\n"
        assert await anext(stream) == b": heartbeat 2\n\n"

        await stream.aclose()

    @pytest.mark.asyncio
    async def test_disconnect_removes_session(self):
        """Test closing the stream deregisters the session."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=60)
        stream = manager.stream(BASE_URL)
        await anext(stream)
        client_id = client_id_from_endpoint(await anext(stream))
        session = store.get(client_id)

        await stream.aclose()

        assert client_id not in store
        assert session.state == SessionState.CLOSED
        with pytest.raises(SessionClosedError):
            await session.send(b"late")

    @pytest.mark.asyncio
    async def test_each_connection_gets_new_id(self):
        """Test identifiers are not reused."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=60)

        first = await manager.open(BASE_URL)
        second = await manager.open(BASE_URL)

        assert first.id != second.id
        assert len(store) == 2
        manager.close_all()

    @pytest.mark.asyncio
    async def test_close_is_idempotent(self):
        """Test closing twice is harmless."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=60)
        session = await manager.open(BASE_URL)

        manager.close(session)
        manager.close(session)

        assert len(store) == 0
        assert session.sink.closed

    @pytest.mark.asyncio
    async def test_close_all(self):
        """Test shutdown closes every session."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=60)
        sessions = [await manager.open(BASE_URL) for _ in range(3)]

        manager.close_all()

        assert len(store) == 0
        assert all(s.state == SessionState.CLOSED for s in sessions)

    @pytest.mark.asyncio
    async def test_stream_ends_when_session_closed(self):
        """Test the frame iterator finishes once its session is closed."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=60)
        stream = manager.stream(BASE_URL)
        await anext(stream)
        client_id = client_id_from_endpoint(await anext(stream))

        manager.close(store.get(client_id), reason="test")

        with pytest.raises(StopAsyncIteration):
            await anext(stream)

    @pytest.mark.asyncio
    async def test_unread_session_closed_on_overflow(self):
        """Test a session whose frames are never read is closed once its queue fills."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=0.01, max_queued_frames=3)
        session = await manager.open(BASE_URL)

        for _ in range(100):
            if session.state == SessionState.CLOSED:
                break
            await asyncio.sleep(0.01)

        assert session.state == SessionState.CLOSED
        assert session.id not in store

    def test_max_queued_frames_must_be_positive(self):
        """Test the queue bound is validated."""
        with pytest.raises(ValueError):
            SseSessionManager(SessionStore(), max_queued_frames=0)


class TestSessionStreamResponse:
    """Test teardown driven by the streaming response."""

    @pytest.mark.asyncio
    async def test_failed_send_tears_down_session(self):
        """Test a client that vanishes mid-stream is deregistered immediately."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=60)
        request = MagicMock()
        request.url.replace.return_value = BASE_URL
        response = await manager.connect(request)
        assert isinstance(response, SessionStreamResponse)

        async def receive():
            await asyncio.Event().wait()

        async def send(message):
            if message["type"] == "http.response.body":
                raise OSError("connection reset")

        scope = {"type": "http", "asgi": {"version": "3.0", "spec_version": "2.4"}}
        with pytest.raises(Exception):
            await response(scope, receive, send)

        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_unstarted_stream_closes_cleanly(self):
        """Test finalizing a response whose stream never started opens no session."""
        store = SessionStore()
        manager = SseSessionManager(store, heartbeat_interval=60)
        request = MagicMock()
        request.url.replace.return_value = BASE_URL
        response = await manager.connect(request)

        await response.body_iterator.aclose()

        assert len(store) == 0

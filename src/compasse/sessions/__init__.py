"""Per-client SSE sessions."""

from compasse.sessions.encoder import SseEncoder
from compasse.sessions.manager import SessionStreamResponse, SseSessionManager
from compasse.sessions.store import ClientSession, QueueSink, SessionState, SessionStore

__all__ = [
    "ClientSession",
    "QueueSink",
    "SessionState",
    "SessionStore",
    "SessionStreamResponse",
    "SseEncoder",
    "SseSessionManager",
]

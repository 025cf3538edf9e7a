"""Server-Sent Events frame encoder."""

from pydantic import BaseModel
from sse_starlette import ServerSentEvent


class SseEncoder:
    """Encodes comments and events into SSE frames.

    Every method returns one complete frame (terminated by a blank line),
    ready to be written to a session in a single operation.
    """

    content_type = "text/event-stream"

    def __init__(self, sep: str = "\n"):
        """Initialize encoder.

        Args:
            sep: Line separator used inside frames
        """
        self.sep = sep

    def comment(self, text: str) -> bytes:
        """Encode a comment frame (``: text``)."""
        return ServerSentEvent(comment=text, sep=self.sep).encode()

    def event(self, event: str, data: str) -> bytes:
        """Encode a named event with a data payload."""
        return ServerSentEvent(data=data, event=event, sep=self.sep).encode()

    def connected(self) -> bytes:
        return self.comment("connected")

    def heartbeat(self, count: int) -> bytes:
        return self.comment(f"heartbeat {count}")

    def endpoint(self, url: str) -> bytes:
        """Encode the ``endpoint`` event telling the client where to POST."""
        return self.event("endpoint", url)

    def message(self, payload: BaseModel) -> bytes:
        """Encode a JSON-RPC message as a single-line ``message`` event."""
        return self.event("message", payload.model_dump_json(by_alias=True))

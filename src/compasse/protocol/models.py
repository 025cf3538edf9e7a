"""JSON-RPC 2.0 envelopes and MCP result models."""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from compasse.errors import ParseError

JSONRPC_VERSION = "2.0"

# ============================================================================
# JSON-RPC envelopes
# ============================================================================


def _normalize_id(value: Any) -> str:
    """Accept string or numeric ids and normalize them to strings."""
    if isinstance(value, bool):
        raise ValueError("id must be a string or a number")
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return str(int(value)) if value.is_integer() else repr(value)
    raise ValueError("id must be a string or a number")


RequestId = Annotated[str, BeforeValidator(_normalize_id)]


class JsonRpcMessage(BaseModel):
    """Minimal envelope every inbound message must satisfy.

    A message that only fits this shape (no usable ``id``) is a notification.
    """

    model_config = ConfigDict(extra="ignore")

    jsonrpc: str
    method: str


class JsonRpcRequest(JsonRpcMessage):
    """A request that expects exactly one response."""

    id: RequestId
    params: Any = None


class JsonRpcError(BaseModel):
    """Error object of a failed request."""

    code: int
    message: str


class JsonRpcResponse(BaseModel):
    """Successful response."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: str | None
    result: Any = None


class JsonRpcErrorResponse(BaseModel):
    """Error response. ``id`` is None when the request could not be correlated."""

    jsonrpc: Literal["2.0"] = JSONRPC_VERSION
    id: str | None = None
    error: JsonRpcError


def parse_message(body: bytes | str) -> JsonRpcRequest | JsonRpcMessage:
    """Parse a POST body as a request, falling back to a bare notification.

    Raises:
        ParseError: If the body fits neither envelope
    """
    try:
        return JsonRpcRequest.model_validate_json(body)
    except ValidationError:
        pass

    try:
        return JsonRpcMessage.model_validate_json(body)
    except ValidationError as e:
        raise ParseError(details={"errors": e.error_count()}) from e


# ============================================================================
# Method parameters
# ============================================================================


class ToolCallParams(BaseModel):
    """Params of ``tools/call``."""

    name: str
    arguments: Any = None


class PromptGetParams(BaseModel):
    """Params of ``prompts/get``."""

    name: str
    arguments: Any = None


class ResourceReadParams(BaseModel):
    """Params of ``resources/read``."""

    uri: str


class InitializeParams(BaseModel):
    """Params of ``initialize``; only used for logging."""

    model_config = ConfigDict(extra="allow")

    protocolVersion: str | None = None
    clientInfo: dict[str, Any] = Field(default_factory=dict)
    capabilities: dict[str, Any] = Field(default_factory=dict)


# ============================================================================
# Results
# ============================================================================


class PromptsCapability(BaseModel):
    listChanged: bool = False


class ResourcesCapability(BaseModel):
    subscribe: bool = False
    listChanged: bool = False


class ToolsCapability(BaseModel):
    listChanged: bool = False


class ServerCapabilities(BaseModel):
    """Capabilities advertised by ``initialize``."""

    prompts: PromptsCapability = Field(default_factory=PromptsCapability)
    resources: ResourcesCapability = Field(default_factory=ResourcesCapability)
    tools: ToolsCapability = Field(default_factory=ToolsCapability)


class ServerInfo(BaseModel):
    name: str
    version: str


class InitializeResult(BaseModel):
    """Result of ``initialize``."""

    protocolVersion: str
    capabilities: ServerCapabilities = Field(default_factory=ServerCapabilities)
    serverInfo: ServerInfo


class ToolsListResult(BaseModel):
    tools: list[dict[str, Any]] = Field(default_factory=list)


class PromptsListResult(BaseModel):
    prompts: list[dict[str, Any]] = Field(default_factory=list)


class ResourcesListResult(BaseModel):
    resources: list[dict[str, Any]] = Field(default_factory=list)


# ============================================================================
# Tool content helpers
# ============================================================================


class TextContent(BaseModel):
    """Text content part of a tool result."""

    type: Literal["text"] = "text"
    text: str


class ToolResponse(BaseModel):
    """MCP tool result shape, for handlers that want to return one.

    Example:
        ```python
        @tool(description="Gets a fruit.")
        def get_fruit(request: dict) -> ToolResponse:
            return ToolResponse.text("Kiwi")
        ```
    """

    content: list[TextContent] = Field(default_factory=list)
    isError: bool = False

    @classmethod
    def text(cls, text: str, *, is_error: bool = False) -> "ToolResponse":
        return cls(content=[TextContent(text=text)], isError=is_error)

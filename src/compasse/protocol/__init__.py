"""JSON-RPC protocol handling for MCP over SSE."""

from compasse.protocol.dispatcher import ProtocolDispatcher
from compasse.protocol.models import (
    JsonRpcError,
    JsonRpcErrorResponse,
    JsonRpcMessage,
    JsonRpcRequest,
    JsonRpcResponse,
    PromptGetParams,
    TextContent,
    ToolCallParams,
    ToolResponse,
    parse_message,
)

__all__ = [
    "JsonRpcError",
    "JsonRpcErrorResponse",
    "JsonRpcMessage",
    "JsonRpcRequest",
    "JsonRpcResponse",
    "PromptGetParams",
    "ProtocolDispatcher",
    "TextContent",
    "ToolCallParams",
    "ToolResponse",
    "parse_message",
]

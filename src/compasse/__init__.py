"""Compasse - Model Context Protocol server core over Server-Sent Events."""

from compasse.config import Settings, get_settings
from compasse.protocol import TextContent, ToolResponse
from compasse.registry import MethodKind, MethodRegistry, method, prompt, tool
from compasse.server import CompasseServer

__version__ = "0.1.0"

__all__ = [
    "CompasseServer",
    "MethodKind",
    "MethodRegistry",
    "Settings",
    "TextContent",
    "ToolResponse",
    "get_settings",
    "method",
    "prompt",
    "tool",
]

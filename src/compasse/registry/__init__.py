"""Method registry for tools, prompts and top-level JSON-RPC methods."""

from compasse.registry.base import MethodDescriptor, MethodKind, PromptArgument
from compasse.registry.decorators import get_method_spec, is_handler, method, prompt, tool
from compasse.registry.registry import MethodRegistry

__all__ = [
    "MethodDescriptor",
    "MethodKind",
    "MethodRegistry",
    "PromptArgument",
    "get_method_spec",
    "is_handler",
    "method",
    "prompt",
    "tool",
]

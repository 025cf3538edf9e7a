"""Method descriptors held by the registry."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class MethodKind(str, Enum):
    """Namespaces a handler can be registered under."""

    TOOL = "tool"
    PROMPT = "prompt"
    METHOD = "method"


PLACEHOLDER_INPUT_SCHEMA: dict[str, Any] = {
    "type": "object",
    "properties": {},
    "required": [],
}


@dataclass(frozen=True)
class PromptArgument:
    """A named argument a prompt accepts."""

    name: str
    description: str = ""
    required: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "description": self.description, "required": self.required}


@dataclass(frozen=True)
class MethodDescriptor:
    """A registered handler.

    The concrete request and result types are erased behind ``invoke``, which
    takes the raw JSON arguments and resolves to a JSON-compatible value.
    Descriptors are immutable, so they can be read concurrently without locks.
    """

    name: str
    description: str
    kind: MethodKind
    request_shape: Any
    is_async: bool
    invoke: Callable[[Any], Awaitable[Any]] = field(repr=False, compare=False)
    input_schema: dict[str, Any] = field(
        default_factory=lambda: dict(PLACEHOLDER_INPUT_SCHEMA), repr=False, compare=False
    )
    arguments: tuple[PromptArgument, ...] = field(default=(), repr=False, compare=False)

    def to_tool_format(self) -> dict[str, Any]:
        """Project to an MCP tool listing entry."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }

    def to_prompt_format(self) -> dict[str, Any]:
        """Project to an MCP prompt listing entry."""
        result: dict[str, Any] = {"name": self.name, "description": self.description}
        if self.arguments:
            result["arguments"] = [arg.to_dict() for arg in self.arguments]
        return result

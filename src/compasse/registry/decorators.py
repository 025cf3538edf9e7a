"""Handler registration decorators.

Decorated functions carry their registration metadata and can be handed to
``MethodRegistry.add`` (or ``CompasseServer.add``) at startup.

Example:
    ```python
    from pydantic import BaseModel

    from compasse.registry import tool

    class EchoRequest(BaseModel):
        text: str

    @tool(description="Echo the text back")
    async def echo(request: EchoRequest) -> dict:
        return {"text": request.text}
    ```
"""

import inspect
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, TypeVar, get_type_hints

from compasse.errors import ConfigurationError
from compasse.registry.base import MethodKind

F = TypeVar("F", bound=Callable[..., Any])

_SPEC_ATTR = "_compasse_method"


@dataclass(frozen=True)
class MethodSpec:
    """Registration metadata attached by a decorator."""

    name: str
    description: str
    kind: MethodKind
    request_shape: Any
    is_async: bool


def _make_decorator(
    kind: MethodKind,
    name: str | None,
    description: str | None,
) -> Callable[[F], F]:
    def decorator(func: F) -> F:
        func_name = name or func.__name__
        setattr(
            func,
            _SPEC_ATTR,
            MethodSpec(
                name=func_name,
                description=description if description is not None else _first_doc_line(func),
                kind=kind,
                request_shape=infer_request_shape(func),
                is_async=inspect.iscoroutinefunction(func),
            ),
        )
        return func

    return decorator


def tool(name: str | None = None, description: str | None = None) -> Callable[[F], F]:
    """Mark a function as a tool, invoked through ``tools/call``.

    Args:
        name: Tool name (defaults to function name)
        description: Tool description (defaults to first line of docstring)
    """
    return _make_decorator(MethodKind.TOOL, name, description)


def prompt(name: str | None = None, description: str | None = None) -> Callable[[F], F]:
    """Mark a function as a prompt, invoked through ``prompts/get``."""
    return _make_decorator(MethodKind.PROMPT, name, description)


def method(name: str | None = None, description: str | None = None) -> Callable[[F], F]:
    """Mark a function as a top-level JSON-RPC method."""
    return _make_decorator(MethodKind.METHOD, name, description)


def get_method_spec(func: Callable[..., Any]) -> MethodSpec | None:
    """Return the registration metadata of a decorated function, if any."""
    return getattr(func, _SPEC_ATTR, None)


def is_handler(func: Callable[..., Any]) -> bool:
    """Check if a function was decorated with ``tool``, ``prompt`` or ``method``."""
    return get_method_spec(func) is not None


def infer_request_shape(func: Callable[..., Any]) -> Any:
    """Read the request type from the handler's single parameter.

    Handlers take exactly one argument: the decoded request. A missing
    annotation means the request is a plain JSON object.

    Raises:
        ConfigurationError: If the handler does not take exactly one parameter
    """
    params = [
        p
        for p in inspect.signature(func).parameters.values()
        if p.name != "self" and p.kind not in (p.VAR_POSITIONAL, p.VAR_KEYWORD)
    ]
    if len(params) != 1:
        raise ConfigurationError(
            f"Handler '{func.__name__}' must take exactly one request parameter",
            details={"handler": func.__name__, "parameters": [p.name for p in params]},
        )

    try:
        hints = get_type_hints(func)
    except Exception:
        hints = {}

    return hints.get(params[0].name, dict[str, Any])


def _first_doc_line(func: Callable[..., Any]) -> str:
    docstring = inspect.getdoc(func) or ""
    for line in docstring.splitlines():
        if line.strip():
            return line.strip()
    return ""

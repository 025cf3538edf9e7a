"""Method registry: registration at startup, lookup and invocation at dispatch time."""

import inspect
from collections.abc import Awaitable, Callable
from typing import Any

from pydantic import BaseModel, PydanticUserError, TypeAdapter, ValidationError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from compasse.errors import (
    ConfigurationError,
    DuplicateMethodError,
    ErrorCode,
    InvalidArgumentsError,
    InvocationError,
    RegistryFrozenError,
)
from compasse.logging import get_logger
from compasse.registry.base import (
    PLACEHOLDER_INPUT_SCHEMA,
    MethodDescriptor,
    MethodKind,
    PromptArgument,
)
from compasse.registry.decorators import get_method_spec

logger = get_logger(__name__)


class MethodRegistry:
    """Registry of tool, prompt and top-level method handlers.

    Registration happens once, single-threaded, while the server starts up.
    After ``freeze`` the registry is read-only and lookups/invocations are
    safe from any number of concurrent dispatches. The registry does not
    serialize handler execution; handlers that are not reentrant must guard
    themselves.

    Example:
        ```python
        registry = MethodRegistry()
        registry.register_tool("echo", "Echo the arguments", dict[str, Any], lambda r: r)
        registry.freeze()

        descriptor = registry.lookup("echo", MethodKind.TOOL)
        result = await registry.invoke(descriptor, {"x": 5})
        ```
    """

    def __init__(self) -> None:
        """Initialize an empty registry."""
        self._methods: dict[MethodKind, dict[str, MethodDescriptor]] = {
            kind: {} for kind in MethodKind
        }
        self._frozen = False

    def register(
        self,
        name: str,
        description: str | None,
        request_shape: Any,
        handler: Callable[[Any], Any],
        *,
        kind: MethodKind = MethodKind.METHOD,
        is_async: bool | None = None,
    ) -> MethodDescriptor:
        """Register a handler under ``name`` within ``kind``.

        Args:
            name: Unique name within the kind
            description: Human-readable description
            request_shape: Type the raw arguments decode into (a pydantic
                model, dataclass, TypedDict or any type pydantic can validate)
            handler: Callable taking the decoded request
            kind: Namespace to register in
            is_async: Whether ``handler`` returns an awaitable. ``None`` reads
                it from the handler once, here.

        Returns:
            The stored descriptor

        Raises:
            RegistryFrozenError: If the startup phase is over
            DuplicateMethodError: If ``name`` is already registered for ``kind``
            ConfigurationError: If the handler or request shape is unusable
        """
        if self._frozen:
            raise RegistryFrozenError(
                f"Cannot register {kind.value} '{name}' after startup",
                details={"kind": kind.value, "name": name},
            )
        if not isinstance(name, str) or not name:
            raise ConfigurationError(
                "Handler name must be a non-empty string",
                details={"kind": kind.value, "name": name},
            )
        if name in self._methods[kind]:
            raise DuplicateMethodError(
                f"{kind.value.capitalize()} with name '{name}' is already registered",
                details={"kind": kind.value, "name": name},
            )
        if not callable(handler):
            raise ConfigurationError(
                f"Handler for {kind.value} '{name}' is not callable",
                details={"kind": kind.value, "name": name},
            )

        if request_shape is None:
            request_shape = dict[str, Any]
        try:
            adapter: TypeAdapter[Any] = TypeAdapter(request_shape)
        except PydanticUserError as e:
            raise ConfigurationError(
                f"Request shape of {kind.value} '{name}' cannot be decoded: {e}",
                details={"kind": kind.value, "name": name},
            ) from e

        if is_async is None:
            is_async = _is_async_callable(handler)

        descriptor = MethodDescriptor(
            name=name,
            description=description or "",
            kind=kind,
            request_shape=request_shape,
            is_async=is_async,
            invoke=_build_invoker(name, adapter, handler, is_async),
            input_schema=_input_schema(adapter),
            arguments=_prompt_arguments(request_shape),
        )
        self._methods[kind][name] = descriptor

        logger.info(
            "Registered handler",
            kind=kind.value,
            name=name,
            is_async=is_async,
        )
        return descriptor

    def register_tool(
        self,
        name: str,
        description: str | None,
        request_shape: Any,
        handler: Callable[[Any], Any],
        *,
        is_async: bool | None = None,
    ) -> MethodDescriptor:
        """Register a tool, reachable through ``tools/call``."""
        return self.register(
            name, description, request_shape, handler, kind=MethodKind.TOOL, is_async=is_async
        )

    def register_prompt(
        self,
        name: str,
        description: str | None,
        request_shape: Any,
        handler: Callable[[Any], Any],
        *,
        is_async: bool | None = None,
    ) -> MethodDescriptor:
        """Register a prompt, reachable through ``prompts/get``."""
        return self.register(
            name, description, request_shape, handler, kind=MethodKind.PROMPT, is_async=is_async
        )

    def register_method(
        self,
        name: str,
        description: str | None,
        request_shape: Any,
        handler: Callable[[Any], Any],
        *,
        is_async: bool | None = None,
    ) -> MethodDescriptor:
        """Register a handler dispatched directly by its JSON-RPC method name."""
        return self.register(
            name, description, request_shape, handler, kind=MethodKind.METHOD, is_async=is_async
        )

    def add(self, func: Callable[..., Any]) -> MethodDescriptor:
        """Register a function decorated with ``tool``, ``prompt`` or ``method``.

        Raises:
            ConfigurationError: If ``func`` carries no registration metadata
        """
        spec = get_method_spec(func)
        if spec is None:
            raise ConfigurationError(
                f"'{getattr(func, '__name__', func)}' is not decorated with @tool, @prompt or @method",
                code=ErrorCode.CONFIG_INVALID,
            )
        return self.register(
            spec.name,
            spec.description,
            spec.request_shape,
            func,
            kind=spec.kind,
            is_async=spec.is_async,
        )

    def lookup(self, name: str, kind: MethodKind = MethodKind.METHOD) -> MethodDescriptor | None:
        """Get a descriptor by name, or None if nothing is registered under it."""
        return self._methods[kind].get(name)

    def descriptors(self, kind: MethodKind) -> list[MethodDescriptor]:
        """List descriptors of one kind in registration order."""
        return list(self._methods[kind].values())

    @property
    def tools(self) -> list[MethodDescriptor]:
        return self.descriptors(MethodKind.TOOL)

    @property
    def prompts(self) -> list[MethodDescriptor]:
        return self.descriptors(MethodKind.PROMPT)

    @property
    def methods(self) -> list[MethodDescriptor]:
        return self.descriptors(MethodKind.METHOD)

    async def invoke(self, descriptor: MethodDescriptor, raw_arguments: Any) -> Any:
        """Decode ``raw_arguments``, run the handler and return its JSON-compatible result.

        Raises:
            InvalidArgumentsError: If the arguments do not fit the request shape
            InvocationError: If the handler raised
        """
        return await descriptor.invoke(raw_arguments)

    def freeze(self) -> None:
        """End the registration phase."""
        if not self._frozen:
            self._frozen = True
            logger.info(
                "Method registry frozen",
                tools=len(self._methods[MethodKind.TOOL]),
                prompts=len(self._methods[MethodKind.PROMPT]),
                methods=len(self._methods[MethodKind.METHOD]),
            )

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __len__(self) -> int:
        return sum(len(entries) for entries in self._methods.values())


def _is_async_callable(handler: Callable[..., Any]) -> bool:
    if inspect.iscoroutinefunction(handler):
        return True
    call = getattr(handler, "__call__", None)
    return call is not None and inspect.iscoroutinefunction(call)


def _build_invoker(
    name: str,
    adapter: TypeAdapter[Any],
    handler: Callable[[Any], Any],
    is_async: bool,
) -> Callable[[Any], Awaitable[Any]]:
    """Close over decode, call and result normalization for one handler."""

    async def invoke(raw_arguments: Any) -> Any:
        try:
            request = adapter.validate_python({} if raw_arguments is None else raw_arguments)
        except ValidationError as e:
            raise InvalidArgumentsError(
                f"Invalid arguments for '{name}': {_summarize_validation_error(e)}",
                details={"method": name, "errors": e.errors(include_url=False, include_context=False)},
            ) from e

        try:
            if is_async:
                result = await handler(request)
            else:
                result = handler(request)
        except Exception as e:
            raise InvocationError(
                f"Error invoking method: {e}",
                details={"method": name, "error_type": type(e).__name__, "original_message": str(e)},
            ) from e

        try:
            return to_jsonable_python(result, by_alias=True)
        except PydanticSerializationError as e:
            raise InvocationError(
                f"Error invoking method: result of '{name}' is not JSON serializable",
                details={"method": name, "result_type": type(result).__name__},
            ) from e

    return invoke


def _summarize_validation_error(error: ValidationError) -> str:
    parts = []
    for err in error.errors(include_url=False):
        loc = ".".join(str(p) for p in err["loc"]) or "arguments"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _input_schema(adapter: TypeAdapter[Any]) -> dict[str, Any]:
    try:
        schema = adapter.json_schema()
    except PydanticUserError:
        return dict(PLACEHOLDER_INPUT_SCHEMA)

    if schema.get("type") != "object":
        return dict(PLACEHOLDER_INPUT_SCHEMA)

    schema.setdefault("properties", {})
    schema.setdefault("required", [])
    return schema


def _prompt_arguments(request_shape: Any) -> tuple[PromptArgument, ...]:
    if not (isinstance(request_shape, type) and issubclass(request_shape, BaseModel)):
        return ()

    return tuple(
        PromptArgument(
            name=field.alias or field_name,
            description=field.description or "",
            required=field.is_required(),
        )
        for field_name, field in request_shape.model_fields.items()
    )

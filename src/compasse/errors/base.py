"""Base exception classes for Compasse."""

from typing import Any

from compasse.errors.codes import ErrorCode, JsonRpcErrorCode


class CompasseError(Exception):
    """Base exception for all Compasse errors."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.UNKNOWN,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize error.

        Args:
            message: Human-readable error message
            code: Error code from ErrorCode enum
            details: Additional error context
        """
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details or {}

    def __str__(self) -> str:
        """Return formatted error string."""
        base = f"[{self.code}] {self.message}"
        if self.details:
            base += f" | Details: {self.details}"
        return base

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "code": str(self.code),
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(CompasseError):
    """Configuration-related errors. Fatal at startup."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.CONFIG_INVALID,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize configuration error."""
        super().__init__(message, code, details)


class DuplicateMethodError(ConfigurationError):
    """A handler name was registered twice within the same kind."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.METHOD_ALREADY_REGISTERED,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize duplicate method error."""
        super().__init__(message, code, details)


class RegistryFrozenError(ConfigurationError):
    """Registration attempted after the startup phase ended."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.REGISTRY_FROZEN,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize registry frozen error."""
        super().__init__(message, code, details)


class TransportError(CompasseError):
    """Errors that cannot be reported through a session (HTTP 400)."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.TRANSPORT_UNKNOWN_CLIENT,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize transport error."""
        super().__init__(message, code, details)


class SessionClosedError(TransportError):
    """A write was attempted on a session that is no longer streaming."""

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.SESSION_CLOSED,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize session closed error."""
        super().__init__(message, code, details)


class RpcError(CompasseError):
    """Base class for errors reported to the client as JSON-RPC errors."""

    rpc_code: JsonRpcErrorCode = JsonRpcErrorCode.INTERNAL_ERROR

    def to_rpc_error(self) -> dict[str, Any]:
        """Convert to a JSON-RPC error object."""
        return {"code": int(self.rpc_code), "message": self.message}


class ParseError(RpcError):
    """The request body is not a JSON-RPC message."""

    rpc_code = JsonRpcErrorCode.PARSE_ERROR

    def __init__(
        self,
        message: str = "Parse error",
        code: ErrorCode = ErrorCode.PROTOCOL_PARSE_ERROR,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize parse error."""
        super().__init__(message, code, details)


class InvalidRequestError(RpcError):
    """The message is JSON-RPC but its envelope is unusable."""

    rpc_code = JsonRpcErrorCode.INVALID_REQUEST

    def __init__(
        self,
        message: str = "Invalid request",
        code: ErrorCode = ErrorCode.PROTOCOL_INVALID_REQUEST,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invalid request error."""
        super().__init__(message, code, details)


class MethodNotFoundError(RpcError):
    """No built-in or registered handler matches the requested name."""

    rpc_code = JsonRpcErrorCode.METHOD_NOT_FOUND

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.METHOD_NOT_FOUND,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize method not found error."""
        super().__init__(message, code, details)


class InvalidArgumentsError(RpcError):
    """Arguments failed to decode into the handler's request shape."""

    rpc_code = JsonRpcErrorCode.INVALID_PARAMS

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVALID_ARGUMENTS,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invalid arguments error."""
        super().__init__(message, code, details)


class InvocationError(RpcError):
    """A handler raised while executing."""

    rpc_code = JsonRpcErrorCode.INVOCATION_ERROR

    def __init__(
        self,
        message: str,
        code: ErrorCode = ErrorCode.INVOCATION_FAILED,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize invocation error."""
        super().__init__(message, code, details)

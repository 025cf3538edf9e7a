"""Error codes for Compasse."""

from enum import Enum, IntEnum


class ErrorCode(str, Enum):
    """Standardized internal error codes."""

    # Configuration errors (1xxx)
    CONFIG_INVALID = "COMPASSE-1001"
    METHOD_ALREADY_REGISTERED = "COMPASSE-1002"
    REGISTRY_FROZEN = "COMPASSE-1003"

    # Transport errors (2xxx)
    TRANSPORT_UNKNOWN_CLIENT = "COMPASSE-2001"
    TRANSPORT_BAD_REQUEST = "COMPASSE-2002"
    SESSION_CLOSED = "COMPASSE-2003"

    # Protocol errors (3xxx)
    PROTOCOL_PARSE_ERROR = "COMPASSE-3001"
    PROTOCOL_INVALID_REQUEST = "COMPASSE-3002"
    METHOD_NOT_FOUND = "COMPASSE-3003"

    # Execution errors (4xxx)
    INVALID_ARGUMENTS = "COMPASSE-4001"
    INVOCATION_FAILED = "COMPASSE-4002"

    # Unknown error
    UNKNOWN = "COMPASSE-9999"

    def __str__(self) -> str:
        """Return the error code value."""
        return self.value


class JsonRpcErrorCode(IntEnum):
    """Error codes carried in JSON-RPC error objects."""

    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603
    INVOCATION_ERROR = -32000

"""Compasse error handling system."""

from compasse.errors.base import (
    CompasseError,
    ConfigurationError,
    DuplicateMethodError,
    InvalidArgumentsError,
    InvalidRequestError,
    InvocationError,
    MethodNotFoundError,
    ParseError,
    RegistryFrozenError,
    RpcError,
    SessionClosedError,
    TransportError,
)
from compasse.errors.codes import ErrorCode, JsonRpcErrorCode
from compasse.errors.handlers import format_error

__all__ = [
    "CompasseError",
    "ConfigurationError",
    "DuplicateMethodError",
    "ErrorCode",
    "InvalidArgumentsError",
    "InvalidRequestError",
    "InvocationError",
    "JsonRpcErrorCode",
    "MethodNotFoundError",
    "ParseError",
    "RegistryFrozenError",
    "RpcError",
    "SessionClosedError",
    "TransportError",
    "format_error",
]

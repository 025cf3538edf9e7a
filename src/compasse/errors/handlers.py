"""Error handling utilities."""

from typing import Any

from compasse.errors.base import RpcError
from compasse.errors.codes import JsonRpcErrorCode


def format_error(error: Exception) -> dict[str, Any]:
    """Format any exception into a JSON-RPC error object.

    Args:
        error: The exception to format

    Returns:
        Dictionary with ``code`` and ``message`` keys
    """
    if isinstance(error, RpcError):
        return error.to_rpc_error()

    return {
        "code": int(JsonRpcErrorCode.INVOCATION_ERROR),
        "message": f"Error invoking method: {error}",
    }

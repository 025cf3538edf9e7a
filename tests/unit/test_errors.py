"""Tests for the error handling system."""

import pytest

from compasse.errors import (
    CompasseError,
    ConfigurationError,
    DuplicateMethodError,
    ErrorCode,
    InvalidArgumentsError,
    InvalidRequestError,
    InvocationError,
    JsonRpcErrorCode,
    MethodNotFoundError,
    ParseError,
    RegistryFrozenError,
    RpcError,
    SessionClosedError,
    TransportError,
    format_error,
)


class TestCompasseErrors:
    """Test error classes and error codes."""

    def test_compasse_error_basic(self):
        """Test basic CompasseError creation."""
        error = CompasseError("Test error")
        assert str(error) == "[COMPASSE-9999] Test error"  # UNKNOWN is default

    def test_compasse_error_with_code(self):
        """Test CompasseError with error code."""
        error = CompasseError("Duplicate", code=ErrorCode.METHOD_ALREADY_REGISTERED)
        assert "[COMPASSE-1002]" in str(error)
        assert "Duplicate" in str(error)

    def test_compasse_error_with_details(self):
        """Test CompasseError with details."""
        error = CompasseError(
            "Method not found",
            code=ErrorCode.METHOD_NOT_FOUND,
            details={"method": "tools/frobnicate"},
        )
        assert "tools/frobnicate" in str(error)
        assert "Details:" in str(error)

    def test_to_dict(self):
        """Test error serialization."""
        error = ConfigurationError("Bad config", details={"field": "mount_path"})
        assert error.to_dict() == {
            "error": "ConfigurationError",
            "code": "COMPASSE-1001",
            "message": "Bad config",
            "details": {"field": "mount_path"},
        }

    def test_error_code_values(self):
        """Test that error codes have unique values."""
        values = [c.value for c in ErrorCode]
        assert len(values) == len(set(values)), "Error codes should be unique"


class TestErrorHierarchy:
    """Test which errors are fatal at startup, transport-level or reported over JSON-RPC."""

    @pytest.mark.parametrize("error_cls", [DuplicateMethodError, RegistryFrozenError])
    def test_registration_errors_are_configuration_errors(self, error_cls):
        """Test registration failures are configuration errors."""
        error = error_cls("nope")
        assert isinstance(error, ConfigurationError)
        assert not isinstance(error, RpcError)

    def test_session_closed_is_transport_error(self):
        """Test SessionClosedError is a TransportError."""
        error = SessionClosedError("gone")
        assert isinstance(error, TransportError)
        assert error.code == ErrorCode.SESSION_CLOSED

    def test_transport_error_default_code(self):
        """Test TransportError defaults to unknown client."""
        assert TransportError("who?").code == ErrorCode.TRANSPORT_UNKNOWN_CLIENT

    @pytest.mark.parametrize(
        ("error", "rpc_code"),
        [
            (ParseError(), -32700),
            (InvalidRequestError(), -32600),
            (MethodNotFoundError("Method not found: x"), -32601),
            (InvalidArgumentsError("bad args"), -32602),
            (InvocationError("Error invoking method: boom"), -32000),
        ],
    )
    def test_rpc_codes(self, error, rpc_code):
        """Test each RPC error carries its JSON-RPC code."""
        assert isinstance(error, RpcError)
        assert error.to_rpc_error()["code"] == rpc_code

    def test_rpc_error_message_excludes_code_prefix(self):
        """Test the JSON-RPC message is the bare message."""
        error = MethodNotFoundError("There is no tool named x.", details={"tool": "x"})
        assert error.to_rpc_error() == {"code": -32601, "message": "There is no tool named x."}

    def test_default_messages(self):
        """Test parse and invalid request errors have default messages."""
        assert ParseError().message == "Parse error"
        assert InvalidRequestError().message == "Invalid request"


class TestFormatError:
    """Test format_error function."""

    def test_format_rpc_error(self):
        """Test formatting an RpcError."""
        result = format_error(InvalidArgumentsError("Params must not be null."))
        assert result == {"code": -32602, "message": "Params must not be null."}

    def test_format_unexpected_exception(self):
        """Test formatting an arbitrary exception as an invocation error."""
        result = format_error(ValueError("kaboom"))
        assert result["code"] == JsonRpcErrorCode.INVOCATION_ERROR == -32000
        assert result["message"] == "Error invoking method: kaboom"

# tests/test_errors.py
import pytest
from mcp.types import INTERNAL_ERROR, INVALID_PARAMS

from mcp_widget_runtime.common.errors import (
    BAD_REQUEST,
    RESOURCE_NOT_FOUND,
    SESSION_NOT_FOUND,
    BadRequest,
    ConfigurationError,
    InvalidInput,
    ProtocolError,
    ResourceLoadFailed,
    SessionNotFound,
    ToolExecutionFailed,
    UnknownResource,
    UnknownTool,
    WidgetRuntimeError,
)


def test_base_error_keeps_message():
    error = WidgetRuntimeError("Test error message")
    assert error.message == "Test error message"
    assert str(error) == "Test error message"


def test_configuration_error_is_runtime_error():
    with pytest.raises(WidgetRuntimeError):
        raise ConfigurationError("Config error")


@pytest.mark.parametrize(
    "error, code",
    [
        (UnknownTool("x"), INVALID_PARAMS),
        (InvalidInput("x", []), INVALID_PARAMS),
        (ToolExecutionFailed("x"), INTERNAL_ERROR),
        (UnknownResource("ui://widget/x.html"), RESOURCE_NOT_FOUND),
        (ResourceLoadFailed("ui://widget/x.html"), INTERNAL_ERROR),
    ],
)
def test_protocol_error_codes(error, code):
    assert isinstance(error, ProtocolError)
    assert error.code == code
    assert error.to_error()["code"] == code


def test_invalid_input_carries_field_errors():
    errors = [{"field": "message", "message": "String should have at least 1 character"}]
    error = InvalidInput("echo", errors)
    assert error.to_error() == {
        "code": INVALID_PARAMS,
        "message": "Invalid arguments for tool echo",
        "data": {"errors": errors},
    }


def test_errors_without_data_omit_it():
    assert "data" not in UnknownTool("nope").to_error()


def test_http_level_errors():
    assert BadRequest("Bad Request: No valid session ID provided").status_code == 400
    assert BadRequest("x").code == BAD_REQUEST
    missing = SessionNotFound("abc")
    assert missing.status_code == 404
    assert missing.code == SESSION_NOT_FOUND
    assert missing.message == "Session not found"
    assert missing.session_id == "abc"

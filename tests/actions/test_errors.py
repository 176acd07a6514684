"""Tests for the error taxonomy."""

from __future__ import annotations

import asyncio

import pytest
from pydantic import BaseModel

from budaction.actions.errors import (
    ERROR_CODE_TO_STATUS,
    ErrorObject,
    classify_error,
    get_error_status,
)
from budaction.actions.validation import validate
from budaction.commons.constants import ErrorCode
from budaction.commons.exceptions import ActionError


class Item(BaseModel):
    name: str


class TestClassifyError:
    """Tests for classify_error."""

    def test_action_error_keeps_code_message_and_data(self) -> None:
        error = classify_error(ActionError(ErrorCode.NOT_AUTHORIZED, {"user": None}, "Login required"))

        assert error.code == "NOT_AUTHORIZED"
        assert error.message == "Login required"
        assert error.data == {"user": None}

    def test_action_error_message_defaults(self) -> None:
        """Message falls back to string data, then to the code."""
        assert classify_error(ActionError(ErrorCode.FORBIDDEN, "nope")).message == "nope"
        assert classify_error(ActionError(ErrorCode.CONFLICT)).message == "CONFLICT"

    def test_custom_codes_pass_through(self) -> None:
        assert classify_error(ActionError("PAYMENT_REQUIRED")).code == "PAYMENT_REQUIRED"

    def test_plain_exception_becomes_error(self) -> None:
        error = classify_error(ValueError("boom"))

        assert error.code == "ERROR"
        assert error.message == "boom"
        assert error.data == "boom"

    def test_timeout_exception_becomes_timeout(self) -> None:
        assert classify_error(asyncio.TimeoutError()).code == "TIMEOUT"

    def test_error_object_passes_through(self) -> None:
        original = ErrorObject(code="NOT_FOUND", message="missing")
        assert classify_error(original) is original

    def test_non_exception_value_becomes_data(self) -> None:
        error = classify_error({"reason": "bad"})

        assert error.code == "ERROR"
        assert error.data == {"reason": "bad"}


class TestErrorStatus:
    """Tests for code to status mapping."""

    @pytest.mark.parametrize(
        ("code", "status"),
        [
            (ErrorCode.INPUT_PARSE_ERROR, 400),
            (ErrorCode.OUTPUT_PARSE_ERROR, 500),
            (ErrorCode.NOT_AUTHORIZED, 401),
            (ErrorCode.TIMEOUT, 408),
            (ErrorCode.FORBIDDEN, 403),
            (ErrorCode.NOT_FOUND, 404),
            (ErrorCode.CONFLICT, 409),
            (ErrorCode.PRECONDITION_FAILED, 412),
            (ErrorCode.PAYLOAD_TOO_LARGE, 413),
            (ErrorCode.METHOD_NOT_SUPPORTED, 405),
            (ErrorCode.UNPROCESSABLE_CONTENT, 422),
            (ErrorCode.TOO_MANY_REQUESTS, 429),
            (ErrorCode.CLIENT_CLOSED_REQUEST, 499),
        ],
    )
    def test_known_codes(self, code: ErrorCode, status: int) -> None:
        assert get_error_status(code) == status
        assert get_error_status(code.value) == status

    def test_every_code_has_a_status(self) -> None:
        assert set(ERROR_CODE_TO_STATUS) == {code.value for code in ErrorCode}

    def test_unknown_code_is_500(self) -> None:
        assert get_error_status("SOMETHING_ELSE") == 500
        assert get_error_status(None) == 500


class TestErrorObject:
    """Tests for ErrorObject construction and wire format."""

    def test_from_validation_populates_details(self) -> None:
        error = ErrorObject.from_validation(ErrorCode.INPUT_PARSE_ERROR, validate(Item, {}))

        assert error.code == "INPUT_PARSE_ERROR"
        assert error.status == 400
        assert list(error.field_errors) == ["name"]
        assert error.form_errors == []
        assert "name" in error.formatted_errors
        assert error.message.startswith("name: ")

    def test_wire_format_uses_camel_case_and_drops_empty(self) -> None:
        error = ErrorObject.from_validation(ErrorCode.INPUT_PARSE_ERROR, validate(Item, {}))
        wire = error.to_wire()

        assert wire["code"] == "INPUT_PARSE_ERROR"
        assert "fieldErrors" in wire
        assert "formattedErrors" in wire
        assert "field_errors" not in wire

        plain = ErrorObject(code="ERROR", message="boom").to_wire()
        assert plain == {"code": "ERROR", "message": "boom"}

    def test_from_wire_restores_error(self) -> None:
        error = ErrorObject.from_validation(ErrorCode.INPUT_PARSE_ERROR, validate(Item, {}))

        assert ErrorObject.from_wire(error.to_wire()) == error

    def test_from_wire_wraps_unknown_bodies(self) -> None:
        error = ErrorObject.from_wire("Internal Server Error", 502)

        assert error.code == "ERROR"
        assert error.data == "Internal Server Error"
        assert "502" in error.message

    def test_timeout_error(self) -> None:
        error = ErrorObject.timeout(250)

        assert error.code == "TIMEOUT"
        assert error.status == 408
        assert error.data == {"timeout_ms": 250}

"""Error taxonomy for action results.

`ErrorObject` is the value placed in the error slot of every result tuple.
`classify_error` turns anything raised inside an action into one, and
`get_error_status` maps its code onto an HTTP status for the request adapter.
"""

from __future__ import annotations

import asyncio
from typing import Any

from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, ConfigDict, Field

from budaction.commons.constants import ErrorCode
from budaction.commons.exceptions import ActionError

from .validation import ValidationFailure


ERROR_CODE_TO_STATUS: dict[str, int] = {
    ErrorCode.INPUT_PARSE_ERROR.value: 400,
    ErrorCode.OUTPUT_PARSE_ERROR.value: 500,
    ErrorCode.ERROR.value: 500,
    ErrorCode.NOT_AUTHORIZED.value: 401,
    ErrorCode.TIMEOUT.value: 408,
    ErrorCode.INTERNAL_SERVER_ERROR.value: 500,
    ErrorCode.NOT_FOUND.value: 404,
    ErrorCode.FORBIDDEN.value: 403,
    ErrorCode.CONFLICT.value: 409,
    ErrorCode.PRECONDITION_FAILED.value: 412,
    ErrorCode.PAYLOAD_TOO_LARGE.value: 413,
    ErrorCode.METHOD_NOT_SUPPORTED.value: 405,
    ErrorCode.UNPROCESSABLE_CONTENT.value: 422,
    ErrorCode.TOO_MANY_REQUESTS.value: 429,
    ErrorCode.CLIENT_CLOSED_REQUEST.value: 499,
}

DEFAULT_ERROR_STATUS = 500


class ErrorObject(BaseModel):
    """Structured error carried in the error slot of a result.

    Field-level details are populated for parse errors only. On the wire the
    detail fields use camelCase names (`fieldErrors`, `formattedErrors`,
    `formErrors`).
    """

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    code: str
    message: str
    data: Any = None
    field_errors: dict[str, list[str]] | None = Field(default=None, alias="fieldErrors")
    formatted_errors: dict[str, Any] | None = Field(default=None, alias="formattedErrors")
    form_errors: list[str] | None = Field(default=None, alias="formErrors")

    @classmethod
    def from_validation(cls, code: ErrorCode | str, failure: ValidationFailure) -> ErrorObject:
        """Build a parse error from a failed validation."""
        code = code.value if isinstance(code, ErrorCode) else code
        field_errors = failure.field_errors()
        form_errors = failure.form_errors()
        messages = [f"{field}: {'; '.join(msgs)}" for field, msgs in field_errors.items()] + form_errors
        return cls(
            code=code,
            message="; ".join(messages) or code,
            data=[{"loc": list(issue.loc), "message": issue.message, "type": issue.type} for issue in failure.issues],
            field_errors=field_errors,
            formatted_errors=failure.formatted_errors(),
            form_errors=form_errors,
        )

    @classmethod
    def timeout(cls, timeout_ms: int) -> ErrorObject:
        return cls(
            code=ErrorCode.TIMEOUT.value,
            message=f"Action timed out after {timeout_ms}ms",
            data={"timeout_ms": timeout_ms},
        )

    @property
    def status(self) -> int:
        """HTTP status for this error."""
        return get_error_status(self.code)

    def to_wire(self) -> dict[str, Any]:
        """JSON-ready representation using wire field names."""
        return jsonable_encoder(self.model_dump(by_alias=True, exclude_none=True))

    @classmethod
    def from_wire(cls, payload: Any, status: int | None = None) -> ErrorObject:
        """Rebuild an error from a response body produced by `to_wire`.

        Bodies that are not error objects become a generic `ERROR` carrying
        the body as data.
        """
        if isinstance(payload, dict) and "code" in payload:
            return cls.model_validate({"message": str(payload["code"]), **payload})
        return cls(
            code=ErrorCode.ERROR.value,
            message=f"Unexpected response{f' ({status})' if status else ''}",
            data=payload,
        )


def classify_error(value: Any) -> ErrorObject:
    """Map anything raised inside an action to an `ErrorObject`.

    - `ErrorObject` values pass through.
    - `ActionError` keeps its code, message and data.
    - Timeouts become `TIMEOUT`.
    - Any other exception becomes `ERROR` with its message, attaching the
      stringified exception as data.
    - Non-exception values become `ERROR` with the value itself as data.
    """
    if isinstance(value, ErrorObject):
        return value

    if isinstance(value, ActionError):
        data = value.data
        if isinstance(data, BaseException):
            data = str(data)
        return ErrorObject(code=value.code, message=value.message, data=data)

    if isinstance(value, (asyncio.TimeoutError, TimeoutError)):
        return ErrorObject(code=ErrorCode.TIMEOUT.value, message=str(value) or "Action timed out")

    if isinstance(value, BaseException):
        message = str(value) or type(value).__name__
        return ErrorObject(code=ErrorCode.ERROR.value, message=message, data=message)

    return ErrorObject(code=ErrorCode.ERROR.value, message=str(value), data=value)


def get_error_status(code: ErrorCode | str | None) -> int:
    """Map an error code to an HTTP status, defaulting to 500."""
    if code is None:
        return DEFAULT_ERROR_STATUS
    key = code.value if isinstance(code, ErrorCode) else str(code)
    return ERROR_CODE_TO_STATUS.get(key, DEFAULT_ERROR_STATUS)

"""Custom exceptions for budaction.

Two families live here. `ActionError` is raised by procedures and handlers
and is converted into the result tuple by the engine. `BudActionException`
and its subclasses report configuration mistakes found while building
actions and routers; they are raised to the caller as-is.
"""

from __future__ import annotations

from typing import Any

from .constants import ErrorCode


class ActionError(Exception):
    """Error raised from inside a procedure or handler.

    Example:
        async def is_authed(ctx):
            if not ctx.get("user"):
                raise ActionError(ErrorCode.NOT_AUTHORIZED, "User not authenticated")
            return ctx
    """

    def __init__(self, code: ErrorCode | str = ErrorCode.ERROR, data: Any = None, message: str | None = None) -> None:
        self.code = code.value if isinstance(code, ErrorCode) else str(code)
        self.data = data
        if message is None:
            if isinstance(data, BaseException):
                message = str(data)
            elif isinstance(data, str):
                message = data
            else:
                message = self.code
        self.message = message
        super().__init__(message)

    def __repr__(self) -> str:
        return f"ActionError(code={self.code!r}, message={self.message!r})"


class BudActionException(Exception):
    """Base exception for configuration errors."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} | Details: {self.details}"
        return self.message


class ActionDefinitionError(BudActionException):
    """Invalid action or procedure definition."""

    pass


class RouteConfigurationError(BudActionException):
    """Invalid route path or method."""

    def __init__(self, message: str, method: str | None = None, path: str | None = None) -> None:
        details: dict[str, Any] = {}
        if method:
            details["method"] = method
        if path:
            details["path"] = path
        super().__init__(message, details=details)
        self.method = method
        self.path = path


class DuplicateRouteError(RouteConfigurationError):
    """Route collides with an already registered route."""

    def __init__(self, method: str, path: str, existing_path: str) -> None:
        super().__init__(f"Duplicate path [{method}]: {path} and {existing_path}", method=method, path=path)
        self.existing_path = existing_path
        self.details["existing_path"] = existing_path

"""Invocation state of a client-side action call."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from budaction.actions.errors import ErrorObject
from budaction.commons.constants import InvocationStatus


@dataclass(frozen=True)
class InvocationState:
    """One observable state of a `ServerActionHook`.

    `data` is only set while loading optimistically or after success, and
    `error` only in the error state. Build instances through the class
    constructors so the two never mix.
    """

    status: InvocationStatus = InvocationStatus.IDLE
    data: Any = None
    error: ErrorObject | None = None

    @classmethod
    def idle(cls) -> InvocationState:
        return cls()

    @classmethod
    def loading(cls) -> InvocationState:
        return cls(status=InvocationStatus.LOADING)

    @classmethod
    def loading_optimistic(cls, data: Any) -> InvocationState:
        return cls(status=InvocationStatus.LOADING_OPTIMISTIC, data=data)

    @classmethod
    def success(cls, data: Any) -> InvocationState:
        return cls(status=InvocationStatus.SUCCESS, data=data)

    @classmethod
    def failure(cls, error: ErrorObject) -> InvocationState:
        return cls(status=InvocationStatus.ERROR, error=error)

    @property
    def is_idle(self) -> bool:
        return self.status == InvocationStatus.IDLE

    @property
    def is_pending(self) -> bool:
        return self.status in (InvocationStatus.LOADING, InvocationStatus.LOADING_OPTIMISTIC)

    @property
    def is_optimistic(self) -> bool:
        return self.status == InvocationStatus.LOADING_OPTIMISTIC

    @property
    def is_success(self) -> bool:
        return self.status == InvocationStatus.SUCCESS

    @property
    def is_error(self) -> bool:
        return self.status == InvocationStatus.ERROR

"""Pytest configuration and fixtures for budaction tests."""

from __future__ import annotations

from typing import Any

import pytest
from pydantic import BaseModel

from budaction.actions import create_server_action
from budaction.client.bus import RefetchBus


# ============ Schemas ============


class IncrementInput(BaseModel):
    number: int


# ============ Action Fixtures ============


@pytest.fixture
def increment_action():
    """Action returning `number + 1`."""
    return create_server_action().input(IncrementInput).handler(lambda input: input.number + 1)


@pytest.fixture
def bus() -> RefetchBus:
    """Isolated refetch bus."""
    return RefetchBus()


class CallCounter:
    """Records calls made to it and returns canned values or raises."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict[str, Any]] = []

    def __call__(self, **kwargs: Any) -> Any:
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else (self.outcomes[0] if self.outcomes else None)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    @property
    def count(self) -> int:
        return len(self.calls)


@pytest.fixture
def counter():
    """Factory for `CallCounter` instances."""
    return CallCounter

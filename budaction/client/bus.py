"""Refetch bus: in-process invalidation keyed by string tags.

Hooks created with an `action_key` subscribe to a bus. Publishing a key
prefix re-runs every enabled hook whose joined key starts with it:

    keys = create_action_key_factory(
        posts=lambda: ["posts"],
        post=lambda post_id: ["posts", post_id],
    )
    hook = use_server_action(get_post, input={"post_id": "1"}, action_key=keys["post"]("1"))

    refetch_bus.refetch(keys["posts"]())  # re-runs hook
"""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, TypeVar

from budaction.commons.constants import ACTION_KEY_SEPARATOR
from budaction.commons.observability import get_logger


logger = get_logger(__name__)

KeyFactory = TypeVar("KeyFactory", bound=Callable[..., Sequence[str]])


@dataclass(frozen=True)
class RefetchEvent:
    """A published invalidation. `timestamp` is in epoch milliseconds."""

    timestamp: int
    key: str


def get_action_key(keys: Sequence[str]) -> str:
    """Join key parts with the action key separator."""
    return ACTION_KEY_SEPARATOR.join(str(key) for key in keys)


def create_action_key_factory(**factories: KeyFactory) -> dict[str, KeyFactory]:
    """Collect named key factories. The mapping is returned unchanged."""
    return dict(factories)


class RefetchBus:
    """Publish point for refetch events.

    `latest` holds the most recent event and is replaced whole on every
    publish. Subscribers are called synchronously and are expected to
    schedule their own work.
    """

    def __init__(self) -> None:
        self.latest: RefetchEvent | None = None
        self._subscribers: list[Callable[[RefetchEvent], Any]] = []

    def subscribe(self, callback: Callable[[RefetchEvent], Any]) -> Callable[[], None]:
        """Register `callback` and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def refetch(self, keys: Sequence[str]) -> RefetchEvent:
        """Publish the joined `keys` to every subscriber."""
        for part in keys:
            if ACTION_KEY_SEPARATOR in str(part):
                logger.error(
                    "refetch_key_contains_separator",
                    key=part,
                    separator=ACTION_KEY_SEPARATOR,
                    hint="Matching hooks will not refetch reliably; remove the separator from the key",
                )

        event = RefetchEvent(timestamp=int(time.time() * 1000), key=get_action_key(keys))
        self.latest = event
        logger.debug("refetch_published", key=event.key, subscribers=len(self._subscribers))

        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception as e:
                logger.warning("refetch_subscriber_failed", key=event.key, error=str(e), exc_info=True)
        return event


# Bus used by hooks that are not given one explicitly
refetch_bus = RefetchBus()

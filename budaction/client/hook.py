"""Client-side invocation hook for server actions.

`use_server_action` wraps any awaitable action (an `ActionDefinition` or a
`RemoteAction`) with observable lifecycle state, optimistic updates and
refetching driven by a `RefetchBus`.

Usage:
    hook = use_server_action(get_post, input={"post_id": "1"}, action_key=["posts", "1"])
    hook.subscribe(render)

    hook.set_optimistic(lambda post: {**post, "title": "Draft"})
    data, err = await hook.execute({"post_id": "1", "title": "Draft"})
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from budaction.actions.engine import ExecutionResult
from budaction.actions.errors import classify_error
from budaction.actions.utils import invoke_callback
from budaction.commons.constants import InvocationStatus
from budaction.commons.observability import get_logger

from .bus import RefetchBus, RefetchEvent, get_action_key, refetch_bus
from .state import InvocationState


logger = get_logger(__name__)

ActionCallable = Callable[..., Awaitable[ExecutionResult]]
StateListener = Callable[[InvocationState], Any]


class _Unset:
    def __repr__(self) -> str:
        return "<unset>"


UNSET: Any = _Unset()


class ServerActionHook:
    """Live invocation state of one action.

    The visible `state` is derived from three pieces: the current result
    (idle, success or error; holds the overlay data while optimistic), the
    confirmed result saved when an optimistic overlay was first applied, and
    the number of calls in flight. Every change replaces `state` whole.

    Args:
        action: Awaitable callable returning a result tuple.
        action_key: Key parts matched against published refetch keys.
        enabled: Disabled hooks ignore refetch events.
        on_start: Called before each execution.
        on_success: Called with `data` after a successful execution.
        on_error: Called with `error` and `refetch` after a failed execution.
        bus: Bus to listen on. Defaults to the module-level `refetch_bus`.
    """

    def __init__(
        self,
        action: ActionCallable,
        *,
        action_key: Sequence[str] | None = None,
        enabled: bool = True,
        on_start: Callable[..., Any] | None = None,
        on_success: Callable[..., Any] | None = None,
        on_error: Callable[..., Any] | None = None,
        bus: RefetchBus | None = None,
    ) -> None:
        self.action = action
        self.action_key = list(action_key) if action_key else None
        self.enabled = enabled
        self.on_start = on_start
        self.on_success = on_success
        self.on_error = on_error
        self.bus = bus if bus is not None else refetch_bus

        self._result = InvocationState.idle()
        self._snapshot: InvocationState | None = None
        self._in_flight = 0
        self._state = InvocationState.idle()
        self._last_input: Any = UNSET
        self._loop: asyncio.AbstractEventLoop | None = None
        self._listeners: list[StateListener] = []
        self._tasks: set[asyncio.Task[ExecutionResult]] = set()
        self._closed = False
        self._unsubscribe = self.bus.subscribe(self._on_refetch) if self.action_key else None

    @property
    def state(self) -> InvocationState:
        return self._state

    @property
    def data(self) -> Any:
        return self._state.data

    @property
    def error(self) -> Any:
        return self._state.error

    @property
    def status(self) -> InvocationStatus:
        return self._state.status

    @property
    def key(self) -> str | None:
        """Joined action key, or None when the hook has no key."""
        return get_action_key(self.action_key) if self.action_key else None

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call `listener` with every new state; returns an unsubscribe function."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _derive_state(self) -> InvocationState:
        if self._in_flight > 0:
            if self._snapshot is None:
                return InvocationState.loading()
            return InvocationState.loading_optimistic(self._result.data)
        return self._result

    def _publish(self) -> None:
        state = self._derive_state()
        if state == self._state:
            return
        self._state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.warning("hook_listener_failed", status=state.status.value, error=str(e), exc_info=True)

    async def execute(self, input: Any = None) -> ExecutionResult:
        """Run the action with `input` and update the state from its result.

        Returns:
            The action's result tuple.
        """
        self._loop = asyncio.get_running_loop()
        self._last_input = input
        await invoke_callback(self.on_start, "on_start", input=input)

        self._in_flight += 1
        self._publish()
        try:
            data, error = await self.action(input)
        except asyncio.CancelledError:
            self._in_flight -= 1
            self._publish()
            raise
        except Exception as e:
            logger.warning("hook_action_raised", action=getattr(self.action, "name", None), error=str(e))
            data, error = None, classify_error(e)
        self._in_flight -= 1

        if error is not None:
            # Roll an optimistic overlay back to the confirmed result
            self._result = self._snapshot if self._snapshot is not None else InvocationState.failure(error)
            self._snapshot = None
            self._publish()
            await invoke_callback(self.on_error, "on_error", error=error, refetch=self.refetch)
            return None, error

        self._result = InvocationState.success(data)
        self._snapshot = None
        self._publish()
        await invoke_callback(self.on_success, "on_success", data=data)
        return data, None

    def set_optimistic(self, value: Any) -> None:
        """Show `value` (or `value(confirmed_data)` when callable) until the next result.

        The confirmed result is saved the first time an overlay is applied and
        restored if the next execution fails.
        """
        confirmed = self._snapshot if self._snapshot is not None else self._result
        data = value(confirmed.data) if callable(value) else value
        if self._snapshot is None:
            self._snapshot = self._result
        self._result = InvocationState.success(data)
        self._publish()

    def reset(self) -> None:
        """Return to idle, dropping any data, error and overlay."""
        self._result = InvocationState.idle()
        self._snapshot = None
        self._publish()

    def _schedule(self, input: Any) -> asyncio.Task[ExecutionResult]:
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        task = loop.create_task(self.execute(input))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def refetch(self) -> asyncio.Task[ExecutionResult] | None:
        """Re-run with the last input. Does nothing before the first execution."""
        if self._closed or self._last_input is UNSET:
            return None
        return self._schedule(self._last_input)

    def _on_refetch(self, event: RefetchEvent) -> None:
        if self._closed or not self.enabled or self._last_input is UNSET or self._loop is None:
            return
        if not self.key.startswith(event.key):
            return

        logger.debug("hook_refetch_scheduled", key=self.key, published_key=event.key)
        self._loop.call_soon(self._schedule, self._last_input)

    async def wait(self) -> None:
        """Wait for executions scheduled by the hook itself to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def close(self) -> None:
        """Stop listening for refetches and cancel scheduled executions."""
        self._closed = True
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._tasks):
            task.cancel()
        self._listeners.clear()


def use_server_action(
    action: ActionCallable,
    *,
    input: Any = UNSET,
    action_key: Sequence[str] | None = None,
    enabled: bool = True,
    on_start: Callable[..., Any] | None = None,
    on_success: Callable[..., Any] | None = None,
    on_error: Callable[..., Any] | None = None,
    bus: RefetchBus | None = None,
) -> ServerActionHook:
    """Create a hook for `action`.

    When `input` is given and the hook is enabled, an execution with that
    input is scheduled on the running event loop right away, so the call
    must then happen inside a coroutine.
    """
    hook = ServerActionHook(
        action,
        action_key=action_key,
        enabled=enabled,
        on_start=on_start,
        on_success=on_success,
        on_error=on_error,
        bus=bus,
    )
    if input is not UNSET and enabled:
        hook._last_input = input
        hook._schedule(input)
    return hook

"""Helpers for calling user-supplied procedures, handlers and callbacks."""

from __future__ import annotations

import asyncio
import inspect
from collections.abc import Callable
from typing import Any

from budaction.commons.observability import get_logger


logger = get_logger(__name__)

# Strong references to fire-and-forget tasks until they finish
_background_tasks: set[asyncio.Task[Any]] = set()


def accepted_kwargs(fn: Callable[..., Any], kwargs: dict[str, Any]) -> dict[str, Any]:
    """Keep only the keyword arguments `fn` can receive.

    A callable declaring `**kwargs` receives everything.
    """
    try:
        signature = inspect.signature(fn)
    except (TypeError, ValueError):
        return kwargs

    params = signature.parameters.values()
    if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in params):
        return kwargs

    names = {
        p.name
        for p in params
        if p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
    }
    return {key: value for key, value in kwargs.items() if key in names}


async def invoke(fn: Callable[..., Any], **kwargs: Any) -> Any:
    """Call a sync or async callable with the keyword arguments it accepts."""
    result = fn(**accepted_kwargs(fn, kwargs))
    if inspect.isawaitable(result):
        result = await result
    return result


async def invoke_callback(fn: Callable[..., Any] | None, event: str, **kwargs: Any) -> None:
    """Run a lifecycle callback, logging instead of propagating its failures.

    Callbacks observe a result; they never change it.
    """
    if fn is None:
        return
    try:
        await invoke(fn, **kwargs)
    except Exception as e:
        logger.warning("action_callback_failed", callback=event, error=str(e), exc_info=True)


def fire_and_forget(fn: Callable[..., Any] | None, event: str, **kwargs: Any) -> asyncio.Task[None] | None:
    """Schedule a callback on the running loop without waiting for it."""
    if fn is None:
        return None
    task = asyncio.ensure_future(invoke_callback(fn, event, **kwargs))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def callable_name(fn: Any) -> str:
    return getattr(fn, "__qualname__", None) or getattr(fn, "__name__", None) or type(fn).__name__

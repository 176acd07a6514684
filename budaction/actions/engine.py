"""Execution engine for server actions.

`execute` runs one call of an action: input validation, the procedure chain
fold, the handler, the timeout race, output validation, retries and
lifecycle callbacks. Every outcome is returned as `(data, None)` or
`(None, ErrorObject)`; nothing raised by user code escapes.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Union

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from budaction.commons.config import settings
from budaction.commons.constants import NON_RETRYABLE_CODES, ErrorCode, InputType
from budaction.commons.observability import get_logger

from .definition import ActionDefinition, Procedure, RequestMeta, RetryPolicy
from .errors import ErrorObject, classify_error
from .utils import fire_and_forget, invoke, invoke_callback
from .validation import SchemaValidator, ValidationFailure, flatten_form, merge_input


logger = get_logger(__name__)

ExecutionResult = Union[tuple[Any, None], tuple[None, ErrorObject]]


class AttemptFailed(Exception):
    """Internal carrier for a classified attempt failure."""

    def __init__(self, error: ErrorObject) -> None:
        super().__init__(error.message)
        self.error = error

    @property
    def retryable(self) -> bool:
        return self.error.code not in NON_RETRYABLE_CODES


@dataclass(frozen=True)
class ParsedInputs:
    """Validated input for the action and for each chain link."""

    raw: Any
    action_input: Any
    procedure_inputs: tuple[Any, ...]


def _validate(validator: SchemaValidator | None, value: Any, fallback: Any) -> Any:
    if validator is None:
        return fallback
    outcome = validator.validate(value)
    if isinstance(outcome, ValidationFailure):
        raise AttemptFailed(ErrorObject.from_validation(ErrorCode.INPUT_PARSE_ERROR, outcome))
    return outcome.value


def parse_inputs(action: ActionDefinition, raw_input: Any) -> ParsedInputs:
    """Validate the raw input against the action and chain input schemas.

    Raises:
        AttemptFailed: With an `INPUT_PARSE_ERROR` on the first failing schema.
    """
    action_input = _validate(action.input_schema, raw_input, None)
    procedure_inputs = tuple(_validate(p.input_schema, raw_input, action_input) for p in action.chain)
    return ParsedInputs(raw=raw_input, action_input=action_input, procedure_inputs=procedure_inputs)


def _resolve_retry_policy(action: ActionDefinition) -> RetryPolicy:
    if action.retry_policy is not None:
        return action.retry_policy
    return RetryPolicy(max_attempts=settings.action_retry_max_attempts, delay=settings.action_retry_delay_ms)


def _resolve_timeout(action: ActionDefinition) -> int | None:
    return action.timeout_ms if action.timeout_ms is not None else settings.action_default_timeout_ms


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, AttemptFailed) and exc.retryable


class _RetryDelay:
    """tenacity wait strategy delegating to a `RetryPolicy`."""

    def __init__(self, policy: RetryPolicy) -> None:
        self.policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        # retry_state.attempt_number is the attempt that just failed; tenacity
        # may compute the wait before checking the stop condition
        if retry_state.attempt_number >= self.policy.max_attempts:
            return 0
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        error = exc.error if isinstance(exc, AttemptFailed) else classify_error(exc)
        try:
            return self.policy.get_delay_ms(retry_state.attempt_number + 1, error) / 1000
        except Exception as e:
            logger.warning(
                "action_retry_delay_failed",
                next_attempt=retry_state.attempt_number + 1,
                error=str(e),
                exc_info=True,
            )
            return 0


def _log_retry(action: ActionDefinition):
    def before_sleep(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.info(
            "action_retry_scheduled",
            action=action.name,
            failed_attempt=retry_state.attempt_number,
            code=exc.error.code if isinstance(exc, AttemptFailed) else None,
            delay_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
        )

    return before_sleep


async def _run_chain_and_handler(
    action: ActionDefinition, inputs: ParsedInputs, initial_ctx: Any, meta: RequestMeta
) -> Any:
    ctx = initial_ctx
    procedure: Procedure
    for procedure, procedure_input in zip(action.chain, inputs.procedure_inputs):
        try:
            ctx = await invoke(procedure.handler, input=procedure_input, ctx=ctx, meta=meta, request=meta.request)
        except AttemptFailed:
            raise
        except Exception as e:
            raise AttemptFailed(classify_error(e)) from e

        if procedure.output_schema is not None:
            outcome = procedure.output_schema.validate(ctx)
            if isinstance(outcome, ValidationFailure):
                raise AttemptFailed(ErrorObject.from_validation(ErrorCode.OUTPUT_PARSE_ERROR, outcome))
            ctx = outcome.value

    try:
        return await invoke(action.handler, input=inputs.action_input, ctx=ctx, meta=meta, request=meta.request)
    except AttemptFailed:
        raise
    except Exception as e:
        raise AttemptFailed(classify_error(e)) from e


def _discard_late_result(action_name: str):
    def callback(task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        exc = task.exception()
        logger.debug(
            "action_late_result_discarded",
            action=action_name,
            failed=exc is not None,
            error=str(exc) if exc is not None else None,
        )

    return callback


async def _race_timeout(action: ActionDefinition, timeout_ms: int, coro: Any) -> Any:
    task = asyncio.ensure_future(coro)
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout_ms / 1000)
    except asyncio.CancelledError:
        task.cancel()
        raise

    if task in done:
        return task.result()

    task.add_done_callback(_discard_late_result(action.name))
    if action.cancel_on_timeout:
        task.cancel()
    logger.warning("action_attempt_timed_out", action=action.name, timeout_ms=timeout_ms)
    raise AttemptFailed(ErrorObject.timeout(timeout_ms))


async def _run_attempt(
    action: ActionDefinition, inputs: ParsedInputs, initial_ctx: Any, meta: RequestMeta, timeout_ms: int | None
) -> Any:
    for procedure in action.chain:
        fire_and_forget(procedure.callbacks.on_start, "on_start", input=inputs.action_input, raw_input=inputs.raw)
    fire_and_forget(action.callbacks.on_start, "on_start", input=inputs.action_input, raw_input=inputs.raw)

    body = _run_chain_and_handler(action, inputs, initial_ctx, meta)
    if timeout_ms is not None:
        data = await _race_timeout(action, timeout_ms, body)
    else:
        data = await body

    if action.output_schema is not None:
        outcome = action.output_schema.validate(data)
        if isinstance(outcome, ValidationFailure):
            error = ErrorObject.from_validation(ErrorCode.OUTPUT_PARSE_ERROR, outcome)
            await invoke_callback(action.on_output_parse_error, "on_output_parse_error", error=error, data=data)
            raise AttemptFailed(error)
        data = outcome.value
    return data


async def _complete_success(action: ActionDefinition, inputs: ParsedInputs, data: Any) -> None:
    callbacks = [p.callbacks for p in action.chain] + [action.callbacks]
    for cb in callbacks:
        await invoke_callback(cb.on_success, "on_success", data=data, input=inputs.action_input, raw_input=inputs.raw)
    for cb in callbacks:
        await invoke_callback(
            cb.on_complete,
            "on_complete",
            is_success=True,
            is_error=False,
            status="success",
            data=data,
            error=None,
            input=inputs.action_input,
            raw_input=inputs.raw,
        )


async def _complete_error(action: ActionDefinition, raw_input: Any, action_input: Any, error: ErrorObject) -> None:
    callbacks = [p.callbacks for p in action.chain] + [action.callbacks]
    for cb in callbacks:
        await invoke_callback(cb.on_error, "on_error", error=error, input=action_input, raw_input=raw_input)
    for cb in callbacks:
        await invoke_callback(
            cb.on_complete,
            "on_complete",
            is_success=False,
            is_error=True,
            status="error",
            data=None,
            error=error,
            input=action_input,
            raw_input=raw_input,
        )


async def execute(
    action: ActionDefinition,
    raw_input: Any = None,
    *,
    override_input: Mapping[str, Any] | None = None,
    ctx: Any = None,
    request: Any = None,
) -> ExecutionResult:
    """Run an action and return `(data, None)` or `(None, ErrorObject)`.

    Args:
        action: The action to run.
        raw_input: Unvalidated input. Form mappings are flattened first when
            the action declares `input_type="form"`.
        override_input: Keys overlaid on a mapping input before validation.
        ctx: Initial context for the first chain link. Defaults to `{}`.
        request: Transport request forwarded to procedures and handlers.

    Returns:
        The result tuple.
    """
    if action.input_type == InputType.FORM:
        raw_input = flatten_form(raw_input)
    merged_input = merge_input(raw_input, override_input)

    try:
        inputs = parse_inputs(action, merged_input)
    except AttemptFailed as e:
        logger.debug("action_input_rejected", action=action.name, error=e.error.message)
        await invoke_callback(action.on_input_parse_error, "on_input_parse_error", error=e.error, raw_input=merged_input)
        await _complete_error(action, merged_input, None, e.error)
        return None, e.error

    policy = _resolve_retry_policy(action)
    timeout_ms = _resolve_timeout(action)
    initial_ctx = {} if ctx is None else ctx

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=_RetryDelay(policy),
            retry=retry_if_exception(_is_retryable),
            before_sleep=_log_retry(action),
            reraise=True,
        ):
            with attempt:
                attempt_number = attempt.retry_state.attempt_number
                meta = RequestMeta(attempt=attempt_number, request=request)
                try:
                    data = await _run_attempt(action, inputs, initial_ctx, meta, timeout_ms)
                except AttemptFailed as e:
                    logger.debug(
                        "action_attempt_failed",
                        action=action.name,
                        attempt=attempt_number,
                        max_attempts=policy.max_attempts,
                        code=e.error.code,
                        error=e.error.message,
                    )
                    raise
    except AttemptFailed as e:
        logger.info("action_failed", action=action.name, code=e.error.code, error=e.error.message)
        await _complete_error(action, inputs.raw, inputs.action_input, e.error)
        return None, e.error

    await _complete_success(action, inputs, data)
    return data, None

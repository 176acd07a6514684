"""Action and procedure definitions.

Actions are assembled with immutable builders:

    is_authed = create_server_action_procedure().handler(check_session)
    is_admin = create_server_action_procedure(is_authed).handler(check_admin)

    get_post = (
        is_admin.create_server_action()
        .input(GetPostInput)
        .timeout(1000)
        .retry(max_attempts=3, delay=100)
        .handler(load_post)
    )

    data, err = await get_post({"post_id": "42"})

Every builder method returns a new builder, and extending a procedure chain
copies it, so a parent chain can be reused by any number of actions.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any, Union

from budaction.commons.constants import InputType
from budaction.commons.exceptions import ActionDefinitionError

from .utils import callable_name
from .validation import SchemaValidator


if TYPE_CHECKING:
    from .errors import ErrorObject

    ExecutionResult = Union[tuple[Any, None], tuple[None, ErrorObject]]


DelayFn = Callable[[int, "ErrorObject"], int]


@dataclass(frozen=True)
class RetryPolicy:
    """Retry policy for action execution.

    Attributes:
        max_attempts: Total attempts including the first one. Inclusive.
        delay: Milliseconds to wait before each retry, or a function of
            `(attempt_number, error)` returning milliseconds. The attempt
            number passed to the function is the attempt about to start, so
            the first retry receives 2.
    """

    max_attempts: int = 1
    delay: int | DelayFn = 0

    def __post_init__(self) -> None:
        if not isinstance(self.max_attempts, int) or self.max_attempts < 1:
            raise ActionDefinitionError(
                "max_attempts must be an integer >= 1", details={"max_attempts": self.max_attempts}
            )
        if not callable(self.delay) and self.delay < 0:
            raise ActionDefinitionError("delay must be >= 0", details={"delay": self.delay})

    def get_delay_ms(self, attempt_number: int, error: ErrorObject) -> int:
        """Delay before `attempt_number` starts."""
        if callable(self.delay):
            return max(0, int(self.delay(attempt_number, error)))
        return int(self.delay)


@dataclass(frozen=True)
class RequestMeta:
    """Per-attempt metadata handed to procedures and handlers."""

    attempt: int = 1
    request: Any = None  # transport request (starlette Request) when dispatched over HTTP


@dataclass(frozen=True)
class Callbacks:
    """Lifecycle callbacks. Each may be sync or async.

    Keyword arguments offered (a callback receives the ones it declares):
        on_start: input, raw_input
        on_success: data, input, raw_input
        on_error: error, input, raw_input
        on_complete: is_success, is_error, status, data, error, input, raw_input
    """

    on_start: Callable[..., Any] | None = None
    on_success: Callable[..., Any] | None = None
    on_error: Callable[..., Any] | None = None
    on_complete: Callable[..., Any] | None = None


@dataclass(frozen=True)
class Procedure:
    """One link of a procedure chain.

    The handler receives any of `input`, `ctx`, `meta` and `request` and
    returns the context for the next link.
    """

    handler: Callable[..., Any]
    input_schema: SchemaValidator | None = None
    output_schema: SchemaValidator | None = None
    callbacks: Callbacks = field(default_factory=Callbacks)
    name: str = ""


@dataclass(frozen=True)
class ActionDefinition:
    """Immutable description of a server action.

    Calling the definition runs it through the execution engine and returns
    `(data, None)` or `(None, ErrorObject)`.
    """

    handler: Callable[..., Any]
    chain: tuple[Procedure, ...] = ()
    input_schema: SchemaValidator | None = None
    output_schema: SchemaValidator | None = None
    input_type: InputType = InputType.JSON
    retry_policy: RetryPolicy | None = None
    timeout_ms: int | None = None
    cancel_on_timeout: bool = False
    callbacks: Callbacks = field(default_factory=Callbacks)
    on_input_parse_error: Callable[..., Any] | None = None
    on_output_parse_error: Callable[..., Any] | None = None
    name: str = ""

    async def __call__(
        self,
        input: Any = None,
        override_input: Mapping[str, Any] | None = None,
        *,
        ctx: Any = None,
        request: Any = None,
    ) -> ExecutionResult:
        # Import here to avoid circular imports
        from .engine import execute

        return await execute(self, input, override_input=override_input, ctx=ctx, request=request)


def _as_validator(schema: Any) -> SchemaValidator | None:
    if schema is None or isinstance(schema, SchemaValidator):
        return schema
    return SchemaValidator(schema)


@dataclass(frozen=True)
class ProcedureChain:
    """A built, reusable chain of procedures.

    New actions and procedures extend the chain by copying it.
    """

    procedures: tuple[Procedure, ...] = ()

    def __len__(self) -> int:
        return len(self.procedures)

    def create_server_action(self) -> ActionBuilder:
        """Start an action whose handler runs after this chain."""
        return ActionBuilder(chain=self.procedures)

    def create_procedure(self) -> ProcedureBuilder:
        """Start a procedure that runs after this chain."""
        return ProcedureBuilder(parent=self.procedures)


@dataclass(frozen=True)
class ProcedureBuilder:
    """Builder for one chain link appended to an existing chain."""

    parent: tuple[Procedure, ...] = ()
    input_schema: SchemaValidator | None = None
    output_schema: SchemaValidator | None = None
    callbacks: Callbacks = field(default_factory=Callbacks)

    def input(self, schema: Any) -> ProcedureBuilder:
        return replace(self, input_schema=_as_validator(schema))

    def output(self, schema: Any) -> ProcedureBuilder:
        return replace(self, output_schema=_as_validator(schema))

    def on_start(self, fn: Callable[..., Any]) -> ProcedureBuilder:
        return replace(self, callbacks=replace(self.callbacks, on_start=fn))

    def on_success(self, fn: Callable[..., Any]) -> ProcedureBuilder:
        return replace(self, callbacks=replace(self.callbacks, on_success=fn))

    def on_error(self, fn: Callable[..., Any]) -> ProcedureBuilder:
        return replace(self, callbacks=replace(self.callbacks, on_error=fn))

    def on_complete(self, fn: Callable[..., Any]) -> ProcedureBuilder:
        return replace(self, callbacks=replace(self.callbacks, on_complete=fn))

    def handler(self, fn: Callable[..., Any | Awaitable[Any]]) -> ProcedureChain:
        if not callable(fn):
            raise ActionDefinitionError("procedure handler must be callable", details={"handler": repr(fn)})
        procedure = Procedure(
            handler=fn,
            input_schema=self.input_schema,
            output_schema=self.output_schema,
            callbacks=self.callbacks,
            name=callable_name(fn),
        )
        return ProcedureChain(procedures=(*self.parent, procedure))


@dataclass(frozen=True)
class ActionBuilder:
    """Builder for an `ActionDefinition`."""

    chain: tuple[Procedure, ...] = ()
    input_schema: SchemaValidator | None = None
    output_schema: SchemaValidator | None = None
    input_type: InputType = InputType.JSON
    retry_policy: RetryPolicy | None = None
    timeout_ms: int | None = None
    cancel_on_timeout_: bool = False
    callbacks: Callbacks = field(default_factory=Callbacks)
    on_input_parse_error_: Callable[..., Any] | None = None
    on_output_parse_error_: Callable[..., Any] | None = None
    name_: str = ""

    def input(self, schema: Any, input_type: InputType | str = InputType.JSON) -> ActionBuilder:
        """Declare the input schema and whether raw input arrives as JSON or form data."""
        return replace(self, input_schema=_as_validator(schema), input_type=InputType(input_type))

    def output(self, schema: Any) -> ActionBuilder:
        return replace(self, output_schema=_as_validator(schema))

    def retry(
        self,
        policy: RetryPolicy | None = None,
        *,
        max_attempts: int | None = None,
        delay: int | DelayFn = 0,
    ) -> ActionBuilder:
        """Attach a retry policy, either prebuilt or from keyword arguments."""
        if policy is None:
            if max_attempts is None:
                raise ActionDefinitionError("retry requires a RetryPolicy or max_attempts")
            policy = RetryPolicy(max_attempts=max_attempts, delay=delay)
        return replace(self, retry_policy=policy)

    def timeout(self, timeout_ms: int, cancel_on_timeout: bool = False) -> ActionBuilder:
        """Fail attempts that take longer than `timeout_ms` milliseconds.

        The abandoned attempt keeps running unless `cancel_on_timeout` is set;
        its result is discarded either way.
        """
        if timeout_ms is None or timeout_ms <= 0:
            raise ActionDefinitionError("timeout must be a positive number of ms", details={"timeout": timeout_ms})
        return replace(self, timeout_ms=int(timeout_ms), cancel_on_timeout_=cancel_on_timeout)

    def on_start(self, fn: Callable[..., Any]) -> ActionBuilder:
        return replace(self, callbacks=replace(self.callbacks, on_start=fn))

    def on_success(self, fn: Callable[..., Any]) -> ActionBuilder:
        return replace(self, callbacks=replace(self.callbacks, on_success=fn))

    def on_error(self, fn: Callable[..., Any]) -> ActionBuilder:
        return replace(self, callbacks=replace(self.callbacks, on_error=fn))

    def on_complete(self, fn: Callable[..., Any]) -> ActionBuilder:
        return replace(self, callbacks=replace(self.callbacks, on_complete=fn))

    def on_input_parse_error(self, fn: Callable[..., Any]) -> ActionBuilder:
        return replace(self, on_input_parse_error_=fn)

    def on_output_parse_error(self, fn: Callable[..., Any]) -> ActionBuilder:
        return replace(self, on_output_parse_error_=fn)

    def name(self, name: str) -> ActionBuilder:
        """Name used in logs. Defaults to the handler's qualified name."""
        return replace(self, name_=name)

    def handler(self, fn: Callable[..., Any | Awaitable[Any]]) -> ActionDefinition:
        if not callable(fn):
            raise ActionDefinitionError("action handler must be callable", details={"handler": repr(fn)})
        return ActionDefinition(
            handler=fn,
            chain=self.chain,
            input_schema=self.input_schema,
            output_schema=self.output_schema,
            input_type=self.input_type,
            retry_policy=self.retry_policy,
            timeout_ms=self.timeout_ms,
            cancel_on_timeout=self.cancel_on_timeout_,
            callbacks=self.callbacks,
            on_input_parse_error=self.on_input_parse_error_,
            on_output_parse_error=self.on_output_parse_error_,
            name=self.name_ or callable_name(fn),
        )


def create_server_action() -> ActionBuilder:
    """Start building an action with an empty procedure chain."""
    return ActionBuilder()


def create_server_action_procedure(parent: ProcedureChain | None = None) -> ProcedureBuilder:
    """Start building a procedure, optionally appended to `parent`'s chain."""
    return ProcedureBuilder(parent=parent.procedures if parent is not None else ())

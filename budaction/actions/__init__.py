"""Server actions module.

Usage:
    from budaction.actions import create_server_action

    increment = create_server_action().input(IncrementInput).handler(lambda input: input.number + 1)

    data, err = await increment({"number": 5})
"""

from .definition import (
    ActionBuilder,
    ActionDefinition,
    Callbacks,
    Procedure,
    ProcedureBuilder,
    ProcedureChain,
    RequestMeta,
    RetryPolicy,
    create_server_action,
    create_server_action_procedure,
)
from .engine import ExecutionResult, execute
from .errors import ErrorObject, classify_error, get_error_status
from .validation import SchemaValidator, ValidationFailure, ValidationIssue, ValidationSuccess, validate

__all__ = [
    # Builders
    "create_server_action",
    "create_server_action_procedure",
    "ActionBuilder",
    "ProcedureBuilder",
    "ProcedureChain",
    # Definitions
    "ActionDefinition",
    "Procedure",
    "Callbacks",
    "RetryPolicy",
    "RequestMeta",
    # Execution
    "execute",
    "ExecutionResult",
    # Errors
    "ErrorObject",
    "classify_error",
    "get_error_status",
    # Validation
    "SchemaValidator",
    "ValidationIssue",
    "ValidationSuccess",
    "ValidationFailure",
    "validate",
]

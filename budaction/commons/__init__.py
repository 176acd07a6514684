"""Commons module - shared config, constants, exceptions and logging."""

from budaction.commons.config import app_settings, settings
from budaction.commons.constants import (
    ErrorCode,
    HttpMethod,
    InputType,
    InvocationStatus,
)
from budaction.commons.exceptions import (
    ActionDefinitionError,
    ActionError,
    BudActionException,
    DuplicateRouteError,
    RouteConfigurationError,
)

__all__ = [
    "app_settings",
    "settings",
    "ErrorCode",
    "HttpMethod",
    "InputType",
    "InvocationStatus",
    "ActionError",
    "BudActionException",
    "ActionDefinitionError",
    "RouteConfigurationError",
    "DuplicateRouteError",
]

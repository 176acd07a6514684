"""budaction: typed server actions with HTTP routing and client invocation state."""

from budaction.__about__ import __version__
from budaction.actions import (
    ActionDefinition,
    ErrorObject,
    RetryPolicy,
    create_server_action,
    create_server_action_procedure,
    execute,
)
from budaction.client import RefetchBus, create_action_key_factory, use_server_action
from budaction.commons.constants import ErrorCode
from budaction.commons.exceptions import ActionError
from budaction.routing import ActionClient, create_route_handlers, create_router, mount, setup_api_handler

__all__ = [
    "__version__",
    "create_server_action",
    "create_server_action_procedure",
    "execute",
    "ActionDefinition",
    "RetryPolicy",
    "ErrorObject",
    "ErrorCode",
    "ActionError",
    "create_router",
    "create_route_handlers",
    "setup_api_handler",
    "mount",
    "ActionClient",
    "use_server_action",
    "RefetchBus",
    "create_action_key_factory",
]

"""Client-side invocation state and refetching for server actions."""

from .bus import RefetchBus, RefetchEvent, create_action_key_factory, get_action_key, refetch_bus
from .hook import ServerActionHook, use_server_action
from .state import InvocationState

__all__ = [
    "use_server_action",
    "ServerActionHook",
    "InvocationState",
    "RefetchBus",
    "RefetchEvent",
    "refetch_bus",
    "create_action_key_factory",
    "get_action_key",
]

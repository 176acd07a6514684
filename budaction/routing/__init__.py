"""HTTP routing for server actions.

Usage:
    from budaction.routing import create_route_handlers, create_router, mount

    router = create_router(path_prefix="/api").post("/posts/{post_id}", update_post)
    mount(app, create_route_handlers(router))
"""

from .adapter import (
    ParsedRequest,
    RouteHandlers,
    RouteResult,
    create_route_handlers,
    mount,
    setup_api_handler,
)
from .client import ActionClient, RemoteAction
from .router import ActionRouter, RouteEntry, RouteMetadata, create_router

__all__ = [
    # Registry
    "create_router",
    "ActionRouter",
    "RouteEntry",
    "RouteMetadata",
    # Adapter
    "RouteHandlers",
    "ParsedRequest",
    "RouteResult",
    "create_route_handlers",
    "setup_api_handler",
    "mount",
    # Remote invocation
    "ActionClient",
    "RemoteAction",
]

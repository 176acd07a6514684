"""Route registry mapping HTTP verb + path pairs to actions.

Usage:
    router = (
        create_router(path_prefix="/api")
        .get("/posts", list_posts)
        .post("/posts", create_post, {"tags": ["posts"]})
        .delete("/posts/{post_id}", delete_post)
    )

Paths collide when they are equal after every `{...}` placeholder is
collapsed to one token, so `/posts/{id}` and `/posts/{post_id}` on the same
method are rejected at registration time.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Union

from pydantic import BaseModel, ConfigDict, Field

from budaction.actions.definition import ActionDefinition
from budaction.commons.config import settings
from budaction.commons.constants import ALL_METHODS, HttpMethod
from budaction.commons.exceptions import DuplicateRouteError, RouteConfigurationError
from budaction.commons.observability import get_logger

from .utils import build_path, normalize_prefix, standardize_path


logger = get_logger(__name__)


class RouteExample(BaseModel):
    request: dict[str, Any] | None = None
    response: Any = None


class RouteMetadata(BaseModel):
    """Documentation-only metadata stored alongside a route.

    None of these fields change how a request is matched or dispatched.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    enabled: bool = True
    summary: str | None = None
    description: str | None = None
    protect: bool = False
    tags: list[str] = Field(default_factory=list)
    headers: list[dict[str, Any]] = Field(default_factory=list)
    content_types: list[str] = Field(default_factory=list, alias="contentTypes")
    deprecated: bool = False
    example: RouteExample | None = None
    response_headers: dict[str, Any] = Field(default_factory=dict, alias="responseHeaders")

    def merged_over(self, defaults: RouteMetadata | None) -> RouteMetadata:
        """Shallow-merge the fields set on this instance over `defaults`."""
        if defaults is None:
            return self
        return defaults.model_copy(update=self.model_dump(exclude_unset=True))


MetadataLike = Union[RouteMetadata, Mapping[str, Any], None]


def _as_metadata(metadata: MetadataLike) -> RouteMetadata | None:
    if metadata is None or isinstance(metadata, RouteMetadata):
        return metadata
    return RouteMetadata.model_validate(dict(metadata))


@dataclass(frozen=True)
class RouteEntry:
    """A registered route."""

    method: str
    path: str
    action: ActionDefinition
    metadata: RouteMetadata

    @property
    def key(self) -> str:
        return standardize_path(self.path, self.method)


class ActionRouter:
    """Builder accumulating routes for a set of actions.

    Every registration method returns the router so calls can be chained.
    """

    def __init__(
        self,
        path_prefix: str | None = None,
        entries: Iterable[RouteEntry] | None = None,
        defaults: MetadataLike = None,
    ) -> None:
        self.path_prefix = normalize_prefix(path_prefix)
        self.defaults = _as_metadata(defaults)
        self._entries: list[RouteEntry] = []
        self._keys: dict[str, RouteEntry] = {}

        for entry in entries or ():
            self._add(entry)

    @property
    def entries(self) -> tuple[RouteEntry, ...]:
        return tuple(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self):
        return iter(self._entries)

    def _add(self, entry: RouteEntry) -> None:
        existing = self._keys.get(entry.key)
        if existing is not None:
            raise DuplicateRouteError(entry.method, entry.path, existing.path)
        self._keys[entry.key] = entry
        self._entries.append(entry)

    def register(
        self,
        method: HttpMethod | str,
        path: str,
        action: ActionDefinition,
        metadata: MetadataLike = None,
    ) -> ActionRouter:
        """Register `action` under `method` + `path`.

        Raises:
            RouteConfigurationError: If the method is unsupported or the path
                is malformed.
            DuplicateRouteError: If the route collides with an existing one.
        """
        try:
            method_value = HttpMethod(method.upper() if isinstance(method, str) else method).value
        except ValueError as e:
            raise RouteConfigurationError(f"Unsupported method: {method}", method=str(method), path=path) from e

        if not isinstance(action, ActionDefinition):
            raise RouteConfigurationError(
                f"Route [{method_value}] {path} must point to an ActionDefinition", method=method_value, path=path
            )

        route_metadata = (_as_metadata(metadata) or RouteMetadata()).merged_over(self.defaults)
        entry = RouteEntry(
            method=method_value,
            path=build_path(path, method_value, self.path_prefix),
            action=action,
            metadata=route_metadata,
        )
        self._add(entry)
        logger.debug("route_registered", method=entry.method, path=entry.path, action=action.name)
        return self

    def get(self, path: str, action: ActionDefinition, metadata: MetadataLike = None) -> ActionRouter:
        return self.register(HttpMethod.GET, path, action, metadata)

    def post(self, path: str, action: ActionDefinition, metadata: MetadataLike = None) -> ActionRouter:
        return self.register(HttpMethod.POST, path, action, metadata)

    def put(self, path: str, action: ActionDefinition, metadata: MetadataLike = None) -> ActionRouter:
        return self.register(HttpMethod.PUT, path, action, metadata)

    def patch(self, path: str, action: ActionDefinition, metadata: MetadataLike = None) -> ActionRouter:
        return self.register(HttpMethod.PATCH, path, action, metadata)

    def delete(self, path: str, action: ActionDefinition, metadata: MetadataLike = None) -> ActionRouter:
        return self.register(HttpMethod.DELETE, path, action, metadata)

    def all(self, path: str, action: ActionDefinition, metadata: MetadataLike = None) -> ActionRouter:
        """Register `action` for GET, POST, DELETE, PUT and PATCH."""
        for method in ALL_METHODS:
            self.register(method, path, action, metadata)
        return self


def create_router(
    path_prefix: str | None = None,
    defaults: MetadataLike = None,
    extend: ActionRouter | Sequence[ActionRouter] | None = None,
) -> ActionRouter:
    """Create a router, optionally seeded with the routes of other routers.

    Extended routes are copied by reference and keep the paths they were
    registered with; duplicates across the merged set raise immediately.

    Args:
        path_prefix: Prefix for routes registered on the new router. Defaults
            to `ROUTER_PATH_PREFIX`.
        defaults: Metadata shallow-merged under per-route metadata.
        extend: Router or routers whose entries are merged in.
    """
    routers: Sequence[ActionRouter]
    if extend is None:
        routers = ()
    elif isinstance(extend, ActionRouter):
        routers = (extend,)
    else:
        routers = extend

    entries = [entry for router in routers for entry in router.entries]
    prefix = settings.router_path_prefix if path_prefix is None else path_prefix
    return ActionRouter(path_prefix=prefix, entries=entries, defaults=defaults)

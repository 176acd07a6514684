"""Request adapter dispatching Starlette/FastAPI requests to routed actions.

Usage:
    handlers = create_route_handlers(router)
    mount(app, handlers)

or, for structured results instead of responses:

    handlers = create_route_handlers(router, response_type="json")
    result = await handlers.handle(request)
    if result.is_error:
        ...
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from budaction.actions.definition import ActionDefinition
from budaction.actions.engine import ExecutionResult
from budaction.actions.errors import ErrorObject, classify_error
from budaction.actions.validation import flatten_form
from budaction.commons.constants import FORM_DATA_CONTENT_TYPE, MULTI_PART_CONTENT_TYPE, HttpMethod
from budaction.commons.observability import configure_structlog, get_logger

from .router import ActionRouter, RouteEntry, create_router
from .utils import accepts_request_body, match_path


logger = get_logger(__name__)

ResponseType = Literal["response", "json"]


@dataclass(frozen=True)
class ParsedRequest:
    """A request matched to a route, with its assembled input."""

    entry: RouteEntry
    input: Any
    params: dict[str, str] = field(default_factory=dict)
    search_params: dict[str, str] = field(default_factory=dict)
    body: Any = None

    @property
    def action(self) -> ActionDefinition:
        return self.entry.action


@dataclass(frozen=True)
class RouteResult:
    """Structured outcome returned when the adapter runs in "json" mode."""

    is_error: bool
    is_success: bool
    status: int
    data: Any = None
    error: ErrorObject | None = None

    @classmethod
    def success(cls, data: Any) -> RouteResult:
        return cls(is_error=False, is_success=True, status=200, data=data)

    @classmethod
    def failure(cls, error: ErrorObject, status: int | None = None) -> RouteResult:
        return cls(is_error=True, is_success=False, status=status or error.status, error=error)

    def to_response(self) -> Response:
        if self.is_error and self.error is not None:
            return JSONResponse(self.error.to_wire(), status_code=self.status)
        return JSONResponse(jsonable_encoder(self.data), status_code=self.status)


async def _read_body(request: Request) -> Any:
    """Parse the request body by content type; unreadable bodies contribute nothing."""
    content_type = request.headers.get("content-type", "")
    try:
        if content_type.startswith(FORM_DATA_CONTENT_TYPE) or content_type.startswith(MULTI_PART_CONTENT_TYPE):
            form = await request.form()
            return flatten_form(form)
        return await request.json()
    except Exception as e:
        logger.debug("request_body_unparsed", path=request.url.path, content_type=content_type, error=str(e))
        return None


def assemble_input(search_params: Mapping[str, Any], body: Any, params: Mapping[str, str]) -> Any:
    """Merge query, body and path values; later sources win.

    A body that is not a mapping becomes the whole input when there are no
    query or path values, and is ignored otherwise. Returns None when nothing
    was collected.
    """
    if body is not None and not isinstance(body, Mapping):
        return body if not search_params and not params else {**search_params, **params} or None

    final = {**search_params, **(body or {}), **params}
    return final or None


class RouteHandlers:
    """Dispatches requests to the actions of a router.

    Args:
        router: The routes to dispatch to.
        response_type: "response" returns Starlette responses, "json" returns
            `RouteResult` values.
    """

    def __init__(self, router: ActionRouter, response_type: ResponseType = "response") -> None:
        if response_type not in ("response", "json"):
            raise ValueError(f"Unknown response_type: {response_type}")
        self.router = router
        self.response_type = response_type

    def find_route(self, method: str, path: str) -> tuple[RouteEntry, dict[str, str]] | None:
        """First route matching `method` and `path`, with its path parameters."""
        method = method.upper()
        for entry in self.router.entries:
            if entry.method != method:
                continue
            params = match_path(entry.path, path)
            if params is not None:
                return entry, params
        return None

    async def parse(self, request: Request) -> ParsedRequest | None:
        """Match the request and assemble the action input.

        Returns:
            The parsed request, or None when no route matches.
        """
        found = self.find_route(request.method, request.url.path)
        if found is None:
            logger.debug("route_not_found", method=request.method, path=request.url.path)
            return None
        entry, params = found

        search_params = dict(request.query_params.items())
        body = await _read_body(request) if accepts_request_body(request.method) else None

        return ParsedRequest(
            entry=entry,
            input=assemble_input(search_params, body, params),
            params=params,
            search_params=search_params,
            body=body,
        )

    async def dispatch(self, parsed: ParsedRequest, request: Request | None = None) -> ExecutionResult:
        """Run the matched action. Never raises for action failures."""
        try:
            return await parsed.action(parsed.input, request=request)
        except Exception as e:
            logger.exception("action_dispatch_failed", action=parsed.action.name, path=parsed.entry.path)
            return None, classify_error(e)

    async def handle_structured(self, request: Request) -> RouteResult | None:
        parsed = await self.parse(request)
        if parsed is None:
            return None

        data, error = await self.dispatch(parsed, request)
        if error is not None:
            logger.info(
                "action_request_failed",
                method=parsed.entry.method,
                path=parsed.entry.path,
                code=error.code,
                status=error.status,
            )
            return RouteResult.failure(error)
        return RouteResult.success(data)

    async def respond(self, request: Request) -> Response:
        """Handle the request and always produce a Starlette response."""
        result = await self.handle_structured(request)
        if result is None:
            return Response("", status_code=404)
        return result.to_response()

    async def handle(self, request: Request) -> Response | RouteResult:
        """Handle the request in the configured response mode.

        In "json" mode an unmatched request yields a `RouteResult` with
        status 404 and no error object.
        """
        if self.response_type == "response":
            return await self.respond(request)

        result = await self.handle_structured(request)
        if result is None:
            return RouteResult(is_error=True, is_success=False, status=404)
        return result

    __call__ = handle


def create_route_handlers(router: ActionRouter, response_type: ResponseType = "response") -> RouteHandlers:
    return RouteHandlers(router, response_type=response_type)


def setup_api_handler(
    path: str, action: ActionDefinition, response_type: ResponseType = "response"
) -> RouteHandlers:
    """Route one action on every method of `path`.

    Example:
        handlers = setup_api_handler("/posts/{post_id}", update_post)
    """
    router = create_router(path_prefix="").all(path, action)
    return RouteHandlers(router, response_type=response_type)


def mount(app: FastAPI, handlers: RouteHandlers, path_prefix: str | None = None) -> None:
    """Add a catch-all route to `app` that dispatches through `handlers`.

    Args:
        app: FastAPI application instance.
        handlers: The route handlers to dispatch to.
        path_prefix: Mount point; defaults to the router's prefix.
    """
    configure_structlog()
    prefix = handlers.router.path_prefix if path_prefix is None else path_prefix.rstrip("/")

    async def dispatch_action(request: Request) -> Response:
        return await handlers.respond(request)

    app.add_api_route(
        f"{prefix}/{{action_path:path}}",
        dispatch_action,
        methods=[method.value for method in HttpMethod],
        include_in_schema=False,
    )
    logger.info("action_router_mounted", prefix=prefix or "/", routes=len(handlers.router))

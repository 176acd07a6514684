"""HTTP client for actions exposed through the request adapter.

A `RemoteAction` is awaitable like an `ActionDefinition` and returns the
same `(data, None)` / `(None, ErrorObject)` tuple, so it can be handed to
`use_server_action` in place of an in-process action.

Usage:
    async with ActionClient("http://localhost:8000/api") as client:
        get_post = client.get("/posts/{post_id}")
        data, err = await get_post({"post_id": "42"})
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import httpx
from fastapi.encoders import jsonable_encoder

from budaction.actions.engine import ExecutionResult
from budaction.actions.errors import ErrorObject
from budaction.commons.config import settings
from budaction.commons.constants import ErrorCode, HttpMethod
from budaction.commons.observability import get_logger

from .utils import fill_path, path_param_names, strip_trailing_slash


logger = get_logger(__name__)


def _split_path_params(path: str, payload: Any) -> tuple[dict[str, Any], Any]:
    """Take the values for `path`'s placeholders out of `payload`."""
    names = path_param_names(path)
    if not names:
        return {}, payload
    if not isinstance(payload, Mapping):
        raise KeyError(names[0])

    remaining = dict(payload)
    params = {name: remaining.pop(name) for name in names}
    return params, remaining


def _decode_body(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


class RemoteAction:
    """One routed action, invoked over HTTP."""

    def __init__(self, client: ActionClient, method: HttpMethod | str, path: str) -> None:
        self.client = client
        self.method = HttpMethod(method.upper() if isinstance(method, str) else method).value
        self.path = path
        self.name = f"{self.method} {path}"

    async def __call__(self, input: Any = None) -> ExecutionResult:
        return await self.client.call(self.method, self.path, input)

    def __repr__(self) -> str:
        return f"RemoteAction({self.name!r})"


class ActionClient:
    """Calls routed actions with an httpx `AsyncClient`.

    Args:
        base_url: URL the route paths are appended to, usually the server
            address plus the router prefix.
        client: Client to send requests with. When omitted one is created
            and closed by `aclose`.
        headers: Headers sent with every request of an owned client.
        timeout: Request timeout in seconds. Defaults to
            `REMOTE_TIMEOUT_SECONDS`.
    """

    def __init__(
        self,
        base_url: str = "",
        client: httpx.AsyncClient | None = None,
        headers: Mapping[str, str] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            headers=dict(headers or {}),
            timeout=settings.remote_timeout_seconds if timeout is None else timeout,
        )

    async def __aenter__(self) -> ActionClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    def action(self, method: HttpMethod | str, path: str) -> RemoteAction:
        return RemoteAction(self, method, path)

    def get(self, path: str) -> RemoteAction:
        return self.action(HttpMethod.GET, path)

    def post(self, path: str) -> RemoteAction:
        return self.action(HttpMethod.POST, path)

    def put(self, path: str) -> RemoteAction:
        return self.action(HttpMethod.PUT, path)

    def patch(self, path: str) -> RemoteAction:
        return self.action(HttpMethod.PATCH, path)

    def delete(self, path: str) -> RemoteAction:
        return self.action(HttpMethod.DELETE, path)

    async def call(self, method: HttpMethod | str, path: str, input: Any = None) -> ExecutionResult:
        """Send one request and convert the response into a result tuple.

        Path placeholders are filled from the input and removed from it. GET
        sends the rest as query parameters, every other method as a JSON body.
        Transport failures are returned as `TIMEOUT` or `ERROR`, never raised.
        """
        method = method.value if isinstance(method, HttpMethod) else method.upper()
        payload = jsonable_encoder(input) if input is not None else None

        try:
            params, payload = _split_path_params(path, payload)
        except KeyError as e:
            return None, ErrorObject(
                code=ErrorCode.INPUT_PARSE_ERROR.value,
                message=f"Missing path parameter: {e.args[0]}",
                data={"path": path},
            )

        url = f"{self.base_url}{strip_trailing_slash(fill_path(path, params))}"
        request_kwargs: dict[str, Any] = {}
        if method == HttpMethod.GET.value:
            if isinstance(payload, Mapping):
                request_kwargs["params"] = {k: v for k, v in payload.items() if v is not None}
        elif payload is not None and payload != {}:
            request_kwargs["json"] = payload

        try:
            response = await self._client.request(method, url, **request_kwargs)
        except httpx.TimeoutException as e:
            logger.warning("remote_action_timeout", method=method, url=url)
            return None, ErrorObject(code=ErrorCode.TIMEOUT.value, message=f"Request timed out: {e!s}", data=url)
        except httpx.HTTPError as e:
            logger.warning("remote_action_transport_error", method=method, url=url, error=str(e))
            return None, ErrorObject(code=ErrorCode.ERROR.value, message=f"Request failed: {e!s}", data=url)

        body = _decode_body(response)
        if response.is_success:
            return body, None

        if response.status_code == 404 and body is None:
            return None, ErrorObject(
                code=ErrorCode.NOT_FOUND.value,
                message=f"No action routed at [{method}] {path}",
                data={"url": url},
            )

        logger.debug("remote_action_failed", method=method, url=url, status=response.status_code)
        return None, ErrorObject.from_wire(body, response.status_code)

"""Tests for the request adapter."""

from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi import FastAPI, status
from fastapi.testclient import TestClient
from pydantic import BaseModel
from starlette.requests import Request

from budaction.actions import create_server_action, create_server_action_procedure
from budaction.commons.constants import ErrorCode
from budaction.commons.exceptions import ActionError
from budaction.routing import RouteResult, create_route_handlers, create_router, mount, setup_api_handler


class IncrementInput(BaseModel):
    number: int


class UpdatePostInput(BaseModel):
    post_id: str
    title: str
    draft: bool = False


def make_request(
    method: str,
    path: str,
    query: str = "",
    body: bytes = b"",
    content_type: str | None = None,
) -> Request:
    """Build a Starlette request without a server."""
    headers = [(b"content-type", content_type.encode())] if content_type else []
    scope = {
        "type": "http",
        "method": method,
        "path": path,
        "root_path": "",
        "scheme": "http",
        "query_string": query.encode(),
        "headers": headers,
        "server": ("testserver", 80),
    }

    async def receive() -> dict[str, Any]:
        return {"type": "http.request", "body": body, "more_body": False}

    return Request(scope, receive)


def json_request(method: str, path: str, payload: Any, query: str = "") -> Request:
    return make_request(method, path, query, json.dumps(payload).encode(), "application/json")


@pytest.fixture
def echo():
    return create_server_action().handler(lambda meta: meta.request.method)


@pytest.fixture
def update_post():
    return create_server_action().input(UpdatePostInput).handler(lambda input: input.model_dump())


@pytest.fixture
def increment():
    return create_server_action().input(IncrementInput).handler(lambda input: input.number + 1)


class TestParse:
    """Tests for matching requests and assembling input."""

    @pytest.mark.asyncio
    async def test_input_precedence(self, update_post) -> None:
        """Query < body < path params."""
        handlers = create_route_handlers(create_router(path_prefix="/api").post("/posts/{post_id}", update_post))
        request = json_request("POST", "/api/posts/42", {"post_id": "body", "title": "from body"}, "title=q&draft=1")

        parsed = await handlers.parse(request)

        assert parsed.entry.path == "/api/posts/{post_id}"
        assert parsed.params == {"post_id": "42"}
        assert parsed.search_params == {"title": "q", "draft": "1"}
        assert parsed.input == {"post_id": "42", "title": "from body", "draft": "1"}

    @pytest.mark.asyncio
    async def test_get_ignores_body(self, echo) -> None:
        handlers = create_route_handlers(create_router().get("/posts", echo))

        parsed = await handlers.parse(json_request("GET", "/posts", {"ignored": True}, "page=2"))

        assert parsed.body is None
        assert parsed.input == {"page": "2"}

    @pytest.mark.asyncio
    async def test_nothing_collected_is_none(self, echo) -> None:
        handlers = create_route_handlers(create_router().delete("/posts", echo))

        parsed = await handlers.parse(make_request("DELETE", "/posts"))

        assert parsed.input is None

    @pytest.mark.asyncio
    async def test_malformed_body_contributes_nothing(self, echo) -> None:
        handlers = create_route_handlers(create_router().post("/posts/{post_id}", echo))

        parsed = await handlers.parse(make_request("POST", "/posts/1", body=b"{not json", content_type="application/json"))

        assert parsed.input == {"post_id": "1"}

    @pytest.mark.asyncio
    async def test_form_body(self, echo) -> None:
        handlers = create_route_handlers(create_router().post("/posts", echo))
        request = make_request(
            "POST", "/posts", body=b"title=hello&tag=a&tag=b", content_type="application/x-www-form-urlencoded"
        )

        parsed = await handlers.parse(request)

        assert parsed.input == {"title": "hello", "tag": ["a", "b"]}

    @pytest.mark.asyncio
    async def test_non_mapping_body_becomes_input(self, echo) -> None:
        handlers = create_route_handlers(create_router().post("/numbers", echo))

        parsed = await handlers.parse(json_request("POST", "/numbers", [1, 2, 3]))

        assert parsed.input == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_no_match(self, echo) -> None:
        handlers = create_route_handlers(create_router().get("/posts", echo))

        assert await handlers.parse(make_request("POST", "/posts")) is None
        assert await handlers.parse(make_request("GET", "/users")) is None

    @pytest.mark.asyncio
    async def test_first_match_wins(self) -> None:
        literal = create_server_action().handler(lambda: "literal")
        param = create_server_action().handler(lambda: "param")
        handlers = create_route_handlers(create_router().get("/posts/latest", literal).get("/posts/{post_id}", param))

        parsed = await handlers.parse(make_request("GET", "/posts/latest"))

        assert parsed.action is literal


class TestHandleStructured:
    """Tests for the "json" response mode."""

    @pytest.mark.asyncio
    async def test_success(self, increment) -> None:
        handlers = create_route_handlers(create_router().post("/increment", increment), response_type="json")

        result = await handlers.handle(json_request("POST", "/increment", {"number": 5}))

        assert isinstance(result, RouteResult)
        assert result.is_success is True
        assert result.status == 200
        assert result.data == 6

    @pytest.mark.asyncio
    async def test_parse_error(self, increment) -> None:
        handlers = create_route_handlers(create_router().post("/increment", increment), response_type="json")

        result = await handlers(json_request("POST", "/increment", {"number": "x"}))

        assert result.is_error is True
        assert result.status == 400
        assert result.error.code == "INPUT_PARSE_ERROR"

    @pytest.mark.asyncio
    async def test_not_found(self, increment) -> None:
        handlers = create_route_handlers(create_router().post("/increment", increment), response_type="json")

        result = await handlers.handle(make_request("GET", "/missing"))

        assert result.status == 404
        assert result.error is None

    def test_unknown_response_type(self) -> None:
        with pytest.raises(ValueError):
            create_route_handlers(create_router(), response_type="xml")


class TestResponses:
    """Tests for the default response mode."""

    @pytest.mark.asyncio
    async def test_success_response(self, increment) -> None:
        handlers = create_route_handlers(create_router().post("/increment", increment))

        response = await handlers.handle(json_request("POST", "/increment", {"number": 5}))

        assert response.status_code == 200
        assert json.loads(response.body) == 6

    @pytest.mark.asyncio
    async def test_empty_404(self, increment) -> None:
        handlers = create_route_handlers(create_router().post("/increment", increment))

        response = await handlers.handle(make_request("GET", "/increment"))

        assert response.status_code == 404
        assert response.body == b""

    @pytest.mark.asyncio
    async def test_error_response_body(self, increment) -> None:
        handlers = create_route_handlers(create_router().post("/increment", increment))

        response = await handlers.handle(json_request("POST", "/increment", {}))
        body = json.loads(response.body)

        assert response.status_code == 400
        assert body["code"] == "INPUT_PARSE_ERROR"
        assert "number" in body["fieldErrors"]


class TestMount:
    """Tests for serving a router from a FastAPI app."""

    @pytest.fixture
    def client(self, update_post, increment) -> TestClient:
        def require_token(request: Request) -> dict[str, Any]:
            token = request.headers.get("authorization")
            if token != "Bearer secret":
                raise ActionError(ErrorCode.NOT_AUTHORIZED, "Missing token")
            return {"user": "ada"}

        authed = create_server_action_procedure().handler(require_token)
        whoami = authed.create_server_action().handler(lambda ctx: ctx)

        def explode() -> None:
            raise RuntimeError("kaboom")

        router = (
            create_router(path_prefix="/api")
            .post("/increment", increment)
            .patch("/posts/{post_id}", update_post)
            .get("/me", whoami)
            .get("/explode", create_server_action().handler(explode))
        )
        app = FastAPI()
        mount(app, create_route_handlers(router))
        return TestClient(app)

    def test_end_to_end_increment(self, client: TestClient) -> None:
        response = client.post("/api/increment", json={"number": 5})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == 6

    def test_path_params_override_body(self, client: TestClient) -> None:
        response = client.patch("/api/posts/7?draft=true", json={"post_id": "ignored", "title": "Hello"})

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"post_id": "7", "title": "Hello", "draft": True}

    def test_procedure_error_status(self, client: TestClient) -> None:
        response = client.get("/api/me")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.json()["code"] == "NOT_AUTHORIZED"

        ok = client.get("/api/me", headers={"Authorization": "Bearer secret"})
        assert ok.json() == {"user": "ada"}

    def test_unexpected_error_is_500(self, client: TestClient) -> None:
        response = client.get("/api/explode")

        assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
        assert response.json() == {"code": "ERROR", "message": "kaboom", "data": "kaboom"}

    def test_unrouted_path_is_404(self, client: TestClient) -> None:
        response = client.delete("/api/increment")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.content == b""


class TestSetupApiHandler:
    """Tests for single-action handlers."""

    @pytest.mark.asyncio
    async def test_every_method_routes_to_action(self, echo) -> None:
        handlers = setup_api_handler("/echo", echo, response_type="json")

        for method in ("GET", "POST", "PUT", "PATCH", "DELETE"):
            result = await handlers.handle(make_request(method, "/echo"))
            assert result.data == method

        assert len(handlers.router) == 5

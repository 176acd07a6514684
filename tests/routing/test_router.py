"""Tests for the route registry."""

from __future__ import annotations

import pytest

from budaction.actions import create_server_action
from budaction.commons.exceptions import DuplicateRouteError, RouteConfigurationError
from budaction.routing import ActionRouter, RouteMetadata, create_router


@pytest.fixture
def action():
    return create_server_action().handler(lambda: "ok")


class TestRegistration:
    """Tests for adding routes."""

    def test_verb_helpers_register_routes(self, action) -> None:
        router = (
            create_router(path_prefix="/api")
            .get("/posts", action)
            .post("/posts", action)
            .put("/posts/{post_id}", action)
            .patch("/posts/{post_id}", action)
            .delete("/posts/{post_id}", action)
        )

        assert [(entry.method, entry.path) for entry in router] == [
            ("GET", "/api/posts"),
            ("POST", "/api/posts"),
            ("PUT", "/api/posts/{post_id}"),
            ("PATCH", "/api/posts/{post_id}"),
            ("DELETE", "/api/posts/{post_id}"),
        ]
        assert len(router) == 5

    def test_all_registers_every_method_in_order(self, action) -> None:
        router = create_router().all("/posts", action)

        assert [entry.method for entry in router.entries] == ["GET", "POST", "DELETE", "PUT", "PATCH"]

    def test_register_accepts_lowercase_method(self, action) -> None:
        router = create_router().register("get", "/posts", action)
        assert router.entries[0].method == "GET"

    def test_unsupported_method(self, action) -> None:
        with pytest.raises(RouteConfigurationError, match="Unsupported method"):
            create_router().register("OPTIONS", "/posts", action)

    def test_action_must_be_definition(self) -> None:
        with pytest.raises(RouteConfigurationError):
            create_router().get("/posts", lambda: "not an action")


class TestPathRules:
    """Tests for path validation and normalization."""

    @pytest.mark.parametrize("path", ["posts", "/posts with space", "/posts?draft=true"])
    def test_invalid_paths(self, action, path: str) -> None:
        with pytest.raises(RouteConfigurationError):
            create_router().get(path, action)

    def test_trailing_slash_is_dropped(self, action) -> None:
        assert create_router().get("/posts/", action).entries[0].path == "/posts"

    @pytest.mark.parametrize(("prefix", "expected"), [("/api/", "/api/posts"), ("/", "/posts"), ("", "/posts")])
    def test_prefix_normalization(self, action, prefix: str, expected: str) -> None:
        assert create_router(path_prefix=prefix).get("/posts", action).entries[0].path == expected

    def test_root_path(self, action) -> None:
        assert create_router().get("/", action).entries[0].path == "/"


class TestDuplicates:
    """Tests for duplicate route detection."""

    def test_same_shape_with_different_param_names(self, action) -> None:
        router = create_router().get("/posts/{id}", action)

        with pytest.raises(DuplicateRouteError) as exc_info:
            router.get("/posts/{post_id}", action)

        assert exc_info.value.existing_path == "/posts/{id}"

    def test_same_path_different_method_is_allowed(self, action) -> None:
        router = create_router().get("/posts/{id}", action).delete("/posts/{id}", action)
        assert len(router) == 2

    def test_all_after_single_method_conflicts(self, action) -> None:
        router = create_router().post("/posts", action)
        with pytest.raises(DuplicateRouteError):
            router.all("/posts", action)

    def test_duplicates_across_extended_routers(self, action) -> None:
        first = create_router().get("/posts/{a}", action)
        second = create_router().get("/posts/{b}", action)

        with pytest.raises(DuplicateRouteError):
            create_router(extend=[first, second])

    def test_duplicate_with_extended_route(self, action) -> None:
        base = create_router().get("/posts", action)
        router = create_router(extend=base)

        with pytest.raises(DuplicateRouteError):
            router.get("/posts", action)


class TestExtend:
    """Tests for merging routers."""

    def test_extended_entries_keep_their_paths(self, action) -> None:
        users = create_router(path_prefix="/users").get("/", action)
        posts = create_router(path_prefix="/posts").get("/{post_id}", action)

        router = create_router(path_prefix="/api", extend=[users, posts]).get("/health", action)

        assert [entry.path for entry in router] == ["/users", "/posts/{post_id}", "/api/health"]
        assert router.entries[0] is users.entries[0]

    def test_extending_does_not_change_sources(self, action) -> None:
        base = create_router().get("/posts", action)
        create_router(extend=base).post("/posts", action)

        assert len(base) == 1

    def test_router_instance(self, action) -> None:
        assert isinstance(create_router(), ActionRouter)


class TestMetadata:
    """Tests for documentation metadata."""

    def test_defaults_merge_under_route_metadata(self, action) -> None:
        router = create_router(defaults={"tags": ["posts"], "protect": True}).get(
            "/posts", action, {"summary": "List posts", "protect": False}
        )
        metadata = router.entries[0].metadata

        assert metadata.tags == ["posts"]
        assert metadata.summary == "List posts"
        assert metadata.protect is False

    def test_metadata_aliases(self, action) -> None:
        router = create_router().get("/posts", action, {"contentTypes": ["application/json"]})
        assert router.entries[0].metadata.content_types == ["application/json"]

    def test_metadata_model_is_accepted(self, action) -> None:
        router = create_router().get("/posts", action, RouteMetadata(deprecated=True))
        assert router.entries[0].metadata.deprecated is True

    def test_default_metadata(self, action) -> None:
        metadata = create_router().get("/posts", action).entries[0].metadata
        assert metadata.enabled is True
        assert metadata.tags == []

"""Path helpers for the action router.

Matching is plain segment comparison: a `{name}` segment binds any
non-empty request segment, every other segment must match literally.
"""

from __future__ import annotations

import re
from urllib.parse import quote

from budaction.commons.constants import BODY_METHODS, PATH_PARAM_TOKEN
from budaction.commons.exceptions import RouteConfigurationError


_PARAM_RE = re.compile(r"\{[^}]+\}")


def normalize_prefix(path_prefix: str | None) -> str:
    """Drop the trailing slash of a prefix; a bare `/` becomes empty."""
    if not path_prefix or path_prefix == "/":
        return ""
    if path_prefix.endswith("/"):
        return path_prefix[:-1]
    return path_prefix


def strip_trailing_slash(path: str) -> str:
    if path.endswith("/") and path != "/":
        return path.rstrip("/") or "/"
    return path


def build_path(path: str, method: str, path_prefix: str = "") -> str:
    """Join prefix and path and validate the result.

    Raises:
        RouteConfigurationError: If the path does not start with `/`, or
            contains a space or a `?`.
    """
    if not path.startswith("/"):
        raise RouteConfigurationError(f"Path [{method}]: {path} must start with '/'", method=method, path=path)

    full = f"{path_prefix}{path}" if path_prefix else path

    if " " in full:
        raise RouteConfigurationError(f"Path [{method}]: {full} contains a space", method=method, path=full)

    if "?" in full:
        raise RouteConfigurationError(
            f"Path [{method}]: {full} contains a question mark. Do not include query params in the path",
            method=method,
            path=full,
        )

    return strip_trailing_slash(full)


def standardize_path(path: str, method: str) -> str:
    """Key used for duplicate detection: placeholders collapse to one token."""
    return f"{_PARAM_RE.sub(PATH_PARAM_TOKEN, path)}<{method.upper()}>"


def has_params(path: str) -> bool:
    return "{" in path and "}" in path


def is_param_segment(segment: str) -> bool:
    return len(segment) > 2 and segment.startswith("{") and segment.endswith("}")


def match_path(route_path: str, request_path: str) -> dict[str, str] | None:
    """Match a request path against a route path.

    Returns:
        The bound path parameters (empty for a literal match), or None when
        the paths do not match.
    """
    request_path = strip_trailing_slash(request_path.split("?", 1)[0] or "/")

    if route_path == request_path:
        return {}

    if not has_params(route_path):
        return None

    route_segments = route_path.split("/")
    request_segments = request_path.split("/")
    if len(route_segments) != len(request_segments):
        return None

    params: dict[str, str] = {}
    for route_segment, request_segment in zip(route_segments, request_segments):
        if is_param_segment(route_segment):
            if not request_segment:
                return None
            params[route_segment[1:-1]] = request_segment
        elif route_segment != request_segment:
            return None
    return params


def fill_path(path: str, params: dict[str, object]) -> str:
    """Substitute `{name}` segments with URL-quoted values from `params`.

    Raises:
        KeyError: If a placeholder has no value.
    """
    return _PARAM_RE.sub(lambda m: quote(str(params[m.group(0)[1:-1]]), safe=""), path)


def path_param_names(path: str) -> list[str]:
    return [m.group(0)[1:-1] for m in _PARAM_RE.finditer(path)]


def accepts_request_body(method: str) -> bool:
    return method.upper() in BODY_METHODS

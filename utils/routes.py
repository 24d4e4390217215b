from __future__ import annotations
import string
from typing import NamedTuple
from urllib.parse import quote


class RouteDef(NamedTuple):
    method: str
    path: str


# (controller, action) -> route. Routers register from this table and the
# HAL builders resolve hrefs from it.
ROUTES: dict[tuple[str, str], RouteDef] = {
    ("root", "get_root"): RouteDef("GET", "/"),
    ("sitemap", "get_sitemap"): RouteDef("GET", "/sitemap"),

    ("auth", "federate"): RouteDef("POST", "/auth/federate"),
    ("auth", "verify"): RouteDef("POST", "/auth/verify"),
    ("auth", "revoke"): RouteDef("POST", "/auth/revoke"),

    ("users", "get_user"): RouteDef("GET", "/users/{user_id}"),
    ("users", "update_user"): RouteDef("PUT", "/users/{user_id}"),

    ("sessions", "get_sessions"): RouteDef("POST", "/users/{user_id}/sessions/list"),
    ("sessions", "delete_sessions"): RouteDef("POST", "/users/{user_id}/sessions/delete"),

    ("api_keys", "get_api_keys"): RouteDef("POST", "/users/{user_id}/api-keys/list"),
    ("api_keys", "create_api_key"): RouteDef("POST", "/users/{user_id}/api-keys/create"),
    ("api_keys", "delete_api_keys"): RouteDef("POST", "/users/{user_id}/api-keys/delete"),
}


def route(controller: str, action: str) -> RouteDef:
    try:
        return ROUTES[(controller, action)]
    except KeyError:
        raise KeyError(f"No route registered for {controller}.{action}") from None


def path_params(path: str) -> list[str]:
    return [name for _, name, _, _ in string.Formatter().parse(path) if name]


def route_path(controller: str, action: str) -> str:
    """The path template, for use as a router path."""
    return route(controller, action).path


def build_href(controller: str, action: str, **params: str) -> str:
    """Fill a route's path template. Every parameter must be used and supplied."""
    path = route(controller, action).path
    expected = set(path_params(path))

    unknown = set(params) - expected
    if unknown:
        raise ValueError(f"Unknown parameters for {controller}.{action}: {sorted(unknown)}")
    missing = expected - set(params)
    if missing:
        raise ValueError(f"Missing parameters for {controller}.{action}: {sorted(missing)}")

    return path.format(**{k: quote(str(v), safe="") for k, v in params.items()})

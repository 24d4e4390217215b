"""
Link relation lookup over HAL documents.

Relations are always looked up by name; hrefs come from the document, never
from a route table on the client side.
"""
from __future__ import annotations
import re
from typing import Any, Mapping, Optional, Sequence, Union
from urllib.parse import quote

from models.hal import HalObject

Rel = Union[str, Sequence[str]]

_PATH_PARAM = re.compile(r"\{([^}?&]+)\}")
_QUERY_PARAMS = re.compile(r"\{\?([^}]+)\}")
_QUERY_CONTINUATION = re.compile(r"\{&([^}]+)\}")


def _candidates(rel: Rel) -> list[str]:
    return [rel] if isinstance(rel, str) else list(rel)


def _first(link: Any) -> Optional[dict[str, Any]]:
    if isinstance(link, list):
        return link[0] if link else None
    return link


def find_link(resource: HalObject, rel: Rel) -> Optional[dict[str, Any]]:
    """First link found among the candidate relations, in the order given."""
    links = resource.get("_links") or {}
    for candidate in _candidates(rel):
        link = _first(links.get(candidate))
        if link:
            return link
    return None


def get_href(resource: HalObject, rel: Rel, params: Optional[Mapping[str, Any]] = None) -> Optional[str]:
    link = find_link(resource, rel)
    if link is None:
        return None
    if link.get("templated") and params:
        return expand_template(link["href"], params)
    return link["href"]


def get_title(link: Any) -> Optional[str]:
    link = _first(link)
    return link.get("title") if link else None


def _encode(value: Any) -> str:
    return quote(str(value), safe="")


def _query(keys: str, params: Mapping[str, Any]) -> list[str]:
    names = [key.strip() for key in keys.split(",")]
    return [f"{_encode(name)}={_encode(params[name])}" for name in names if params.get(name) is not None]


def expand_template(template: str, params: Mapping[str, Any]) -> str:
    """
    Expand `{name}` path parameters plus `{?a,b}` and `{&a,b}` query forms.

    Unresolved path parameters are left in place; unresolved query
    parameters are dropped.
    """
    def path_param(match: re.Match) -> str:
        value = params.get(match.group(1))
        return _encode(value) if value is not None else match.group(0)

    def query_params(match: re.Match) -> str:
        pairs = _query(match.group(1), params)
        return "?" + "&".join(pairs) if pairs else ""

    def query_continuation(match: re.Match) -> str:
        pairs = _query(match.group(1), params)
        return "&" + "&".join(pairs) if pairs else ""

    result = _PATH_PARAM.sub(path_param, template)
    result = _QUERY_PARAMS.sub(query_params, result)
    return _QUERY_CONTINUATION.sub(query_continuation, result)


def has_capability(resource: HalObject, rel: Rel) -> bool:
    """True when any candidate names a link or a template."""
    templates = resource.get("_templates") or {}
    return find_link(resource, rel) is not None or any(c in templates for c in _candidates(rel))


def get_available_relations(resource: HalObject) -> list[str]:
    return list((resource.get("_links") or {}).keys())


def find_link_by_type(resource: HalObject, rel: Rel, expected_type: str) -> Optional[dict[str, Any]]:
    """The link for `rel` if its media type matches; untyped links always match."""
    link = find_link(resource, rel)
    if link is None:
        return None
    if not link.get("type"):
        return link
    return link if link["type"] == expected_type else None

"""
Navigation trail over visited hypermedia resources.

The trail is rebuilt from each resource's own `_links.self` and the
sitemap's group structure; there is no client-side route table.
"""
from __future__ import annotations
import logging
import re
import time
from dataclasses import dataclass, field
from typing import Literal, Optional
from urllib.parse import urlparse

from client.links import get_title
from client.sitemap import Sitemap
from models.hal import HalObject
from models.navigation import NavEntry, NavItem

logger = logging.getLogger(__name__)

MAX_HISTORY = 50
DASHBOARD_PATHS = ("/", "/dashboard")
DEFAULT_TITLE = "Resource"

NavigationSource = Literal["menu", "link", "browser"]
TrackAction = Literal["skip", "noop", "reset", "push"]


@dataclass
class NavigationHistoryItem:
    resource: HalObject
    source: NavigationSource
    timestamp: float = field(default_factory=time.time)
    parent_groups: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Breadcrumb:
    label: str
    href: Optional[str] = None
    is_last: bool = False
    is_group: bool = False


# -----------------------------------------------------------------------------
# Paths and titles
# -----------------------------------------------------------------------------
def _path(href: str) -> str:
    return urlparse(href).path or "/"


def is_dashboard(href: str) -> bool:
    return _path(href) in DASHBOARD_PATHS


def self_href(resource: HalObject) -> Optional[str]:
    link = (resource.get("_links") or {}).get("self")
    if isinstance(link, list):
        link = link[0] if link else None
    return link.get("href") if link else None


def matches_path(template: str, href: str) -> bool:
    """`{param}` segments in `template` match any single path segment of `href`."""
    pattern = "".join(
        "[^/]+" if part.startswith("{") else re.escape(part)
        for part in re.split(r"(\{[^}]+\})", _path(template))
    )
    return re.fullmatch(pattern, _path(href)) is not None


def derive_title(href: str) -> str:
    """`/api-keys/list` -> "Api Keys"; `/user_sessions` -> "User Sessions"."""
    segments = [s for s in _path(href).split("/") if s]
    if not segments:
        return DEFAULT_TITLE
    segment = segments[-2] if segments[-1] == "list" and len(segments) > 1 else segments[-1]
    words = [w for w in re.split(r"[-_]", segment) if w]
    return " ".join(w.capitalize() for w in words) or DEFAULT_TITLE


def extract_title_from_resource(resource: HalObject, href: str) -> str:
    return get_title((resource.get("_links") or {}).get("self")) or derive_title(href)


def _nav_target(item: NavItem, sitemap: Sitemap) -> Optional[str]:
    if item.type == "link":
        link = sitemap.links.get(item.rel)
        return link.get("href") if link else None
    template = sitemap.templates.get(item.rel)
    return template.get("target") if template else None


def find_parent_groups(href: str, sitemap: Optional[Sitemap]) -> list[str]:
    """Titles of the sitemap groups enclosing the item that resolves to `href`, outermost first."""
    if sitemap is None:
        return []

    def walk(entries: list[NavEntry], trail: list[str]) -> Optional[list[str]]:
        for entry in entries:
            if isinstance(entry, NavItem):
                target = _nav_target(entry, sitemap)
                if target and matches_path(target, href):
                    return trail
            else:
                found = walk(entry.items, trail + [entry.title])
                if found is not None:
                    return found
        return None

    return walk(sitemap.nav, []) or []


# -----------------------------------------------------------------------------
# History
# -----------------------------------------------------------------------------
class NavigationHistory:
    """
    Bounded trail of visited resources, oldest first.

    The menu and skip flags are one-shot: reading either one clears it.
    """

    def __init__(self, max_items: int = MAX_HISTORY) -> None:
        self.max_items = max_items
        self.items: list[NavigationHistoryItem] = []
        self._menu_navigation = False
        self._skip_next = False

    def __len__(self) -> int:
        return len(self.items)

    @property
    def last(self) -> Optional[NavigationHistoryItem]:
        return self.items[-1] if self.items else None

    def push_resource(self, resource: HalObject, source: NavigationSource = "link") -> None:
        last = self.last
        if last is not None and self_href(last.resource) == self_href(resource):
            return
        self.items = (self.items + [NavigationHistoryItem(resource=resource, source=source)])[-self.max_items:]

    def reset_history(
        self,
        resource: HalObject,
        source: NavigationSource = "menu",
        parent_groups: Optional[list[str]] = None,
    ) -> None:
        self.items = [NavigationHistoryItem(resource=resource, source=source, parent_groups=list(parent_groups or []))]

    def pop_history(self) -> None:
        if len(self.items) > 1:
            self.items = self.items[:-1]

    def clear_history(self) -> None:
        self.items = []

    def truncate_history(self, index: int) -> None:
        """Keep entries up to and including `index`, e.g. after a breadcrumb click."""
        self.items = self.items[: index + 1]

    def mark_next_navigation_as_menu(self) -> None:
        self._menu_navigation = True

    def consume_menu_navigation(self) -> bool:
        flag, self._menu_navigation = self._menu_navigation, False
        return flag

    def mark_next_navigation_skip(self) -> None:
        self._skip_next = True

    def should_skip_next_navigation(self) -> bool:
        flag, self._skip_next = self._skip_next, False
        return flag


class HalResourceTracker:
    """Feeds loaded resources into a NavigationHistory."""

    def __init__(self, history: NavigationHistory) -> None:
        self.history = history
        self.previous_href: Optional[str] = None
        self.is_initial_mount = True

    def track(
        self,
        resource: HalObject,
        pathname: str,
        is_menu_navigation: bool = False,
        sitemap: Optional[Sitemap] = None,
    ) -> TrackAction:
        if self.history.should_skip_next_navigation():
            return "skip"

        templates = resource.get("_templates") or {}
        current_href = self_href(resource) or (templates.get("self") or {}).get("target") or pathname

        if current_href == self.previous_href:
            return "noop"

        if self_href(resource) is None:
            title = extract_title_from_resource(resource, current_href)
            resource = {
                **resource,
                "_links": {**(resource.get("_links") or {}), "self": {"href": current_href, "title": title}},
            }

        menu = is_menu_navigation or self.history.consume_menu_navigation()
        last = self.history.last

        if menu:
            self.history.reset_history(resource, "menu", find_parent_groups(current_href, sitemap))
            action: TrackAction = "reset"
        elif last is None or (is_dashboard(current_href) and self.is_initial_mount):
            self.history.reset_history(resource, "link")
            action = "reset"
        elif is_dashboard(current_href):
            self.history.reset_history(resource, "link")
            action = "reset"
        elif current_href != self_href(last.resource):
            self.history.push_resource(resource, "link")
            action = "push"
        else:
            action = "noop"

        logger.debug("Navigation %s: %s", action, current_href)
        self.previous_href = current_href
        self.is_initial_mount = False
        return action


# -----------------------------------------------------------------------------
# Breadcrumbs
# -----------------------------------------------------------------------------
def build_breadcrumbs(
    history: list[NavigationHistoryItem],
    sitemap: Optional[Sitemap],
    current_pathname: str,
) -> list[Breadcrumb]:
    """
    Dashboard first, then each visited resource preceded by its sitemap groups.

    When the current page has not reached the history yet the trail ends at
    the last known entry; no placeholder crumb is added for it.
    """
    current_path = _path(current_pathname)
    dashboard_only = not history or (len(history) == 1 and is_dashboard(current_path))
    crumbs = [Breadcrumb(label="Dashboard", href=None if dashboard_only else "/dashboard", is_last=dashboard_only)]

    if not history or sitemap is None:
        return crumbs

    visited = [self_href(item.resource) for item in history]
    current_in_history = any(href is not None and _path(href) == current_path for href in visited)
    seen_groups: set[str] = set()

    for item in history:
        href = self_href(item.resource)
        if href is None or is_dashboard(href):
            continue

        for group in item.parent_groups:
            if group not in seen_groups:
                seen_groups.add(group)
                crumbs.append(Breadcrumb(label=group, is_group=True))

        is_current = current_in_history and _path(href) == current_path
        label = get_title((item.resource.get("_links") or {}).get("self")) or DEFAULT_TITLE
        crumbs.append(Breadcrumb(label=label, href=None if is_current else href, is_last=is_current))

    return crumbs

from __future__ import annotations
import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from pydantic import TypeAdapter, ValidationError as PydanticValidationError

from client.entry_point import EntryPoint
from client.hal_forms import HalFormsClient
from models.navigation import NavEntry, NavItem

logger = logging.getLogger(__name__)

_nav_adapter = TypeAdapter(list[NavEntry])


class SitemapUnavailableError(Exception):
    """The API does not advertise a sitemap, or returned one without `_nav`."""


@dataclass
class Sitemap:
    nav: list[NavEntry]
    links: dict[str, Any] = field(default_factory=dict)
    templates: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ResolvedNavItem:
    href: str
    title: str
    type: str
    method: str = "GET"


@dataclass
class MenuEntry:
    """One rendered menu node: a direct link or a group of links."""
    label: str
    href: Optional[str] = None
    method: str = "GET"
    rel: Optional[str] = None
    items: list["MenuEntry"] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Navigation transforms
# -----------------------------------------------------------------------------
def resolve_nav_item(item: NavItem, links: dict[str, Any], templates: dict[str, Any]) -> Optional[ResolvedNavItem]:
    if item.type == "link":
        link = links.get(item.rel)
        if not link:
            logger.warning("Sitemap link %r not found", item.rel)
            return None
        return ResolvedNavItem(href=link["href"], title=item.title or link.get("title") or item.rel, type="link")

    template = templates.get(item.rel)
    if not template:
        logger.warning("Sitemap template %r not found", item.rel)
        return None
    return ResolvedNavItem(
        href=template["target"],
        title=item.title or template.get("title") or item.rel,
        type="template",
        method=(template.get("method") or "POST").upper(),
    )


def _is_navigable(resolved: ResolvedNavItem) -> bool:
    # links, GET templates, and POST collection listings
    if resolved.type == "link" or resolved.method == "GET":
        return True
    return resolved.method == "POST" and resolved.href.endswith("/list")


def transform_navigation(nav: list[NavEntry], links: dict[str, Any], templates: dict[str, Any]) -> list[MenuEntry]:
    """
    Resolve a `_nav` tree into menu entries.

    Unresolvable or non-navigable items are dropped, nested groups are
    flattened into their parent and empty groups disappear.
    """
    result: list[MenuEntry] = []

    for entry in nav:
        if isinstance(entry, NavItem):
            resolved = resolve_nav_item(entry, links, templates)
            if resolved and _is_navigable(resolved):
                result.append(MenuEntry(label=resolved.title, href=resolved.href, method=resolved.method, rel=entry.rel))
            continue

        children: list[MenuEntry] = []
        for child in entry.items:
            if isinstance(child, NavItem):
                resolved = resolve_nav_item(child, links, templates)
                if resolved and _is_navigable(resolved):
                    children.append(MenuEntry(label=resolved.title, href=resolved.href, method=resolved.method, rel=child.rel))
            else:
                for nested in transform_navigation([child], links, templates):
                    children.extend(nested.items if nested.href is None else [nested])

        if children:
            result.append(MenuEntry(label=entry.title, items=children))
        else:
            logger.debug("Dropping empty navigation group %r", entry.title)

    return result


def fallback_navigation() -> list[MenuEntry]:
    """Static menu shown while the sitemap cannot be loaded."""
    return [
        MenuEntry(label="Dashboard", href="/dashboard"),
        MenuEntry(label="My Account", items=[
            MenuEntry(label="API Keys", href="/api-keys"),
            MenuEntry(label="Sessions", href="/sessions"),
        ]),
    ]


# -----------------------------------------------------------------------------
# Loader
# -----------------------------------------------------------------------------
@dataclass
class SitemapState:
    sitemap: Optional[Sitemap] = None
    navigation: list[MenuEntry] = field(default_factory=list)
    error: Optional[Exception] = None
    last_fetched: Optional[float] = None


class SitemapLoader:
    """
    Discovers the sitemap through the entry point and keeps it cached.

    Failed fetches are retried with a linearly growing delay
    (retry_delay x attempt) up to `max_retries` times.
    """

    def __init__(
        self,
        entry_point: EntryPoint,
        hal_client: HalFormsClient,
        ttl: float = 300,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.entry_point = entry_point
        self.hal_client = hal_client
        self.ttl = ttl
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self._sleep = sleep
        self._clock = clock
        self.state = SitemapState()

    async def _fetch_once(self) -> Sitemap:
        href = await self.entry_point.get_link_href("sitemap")
        if not href:
            raise SitemapUnavailableError("Sitemap capability not available from API")

        response = await self.hal_client.get(href)
        if "_nav" not in response:
            raise SitemapUnavailableError("Invalid sitemap response: missing _nav")

        try:
            nav = _nav_adapter.validate_python(response["_nav"])
        except PydanticValidationError as e:
            raise SitemapUnavailableError(f"Invalid sitemap navigation: {e}") from e

        return Sitemap(nav=nav, links=response.get("_links") or {}, templates=response.get("_templates") or {})

    async def fetch_sitemap(self) -> Sitemap:
        """Fetch with retries; the last failure propagates."""
        attempt = 0
        while True:
            try:
                return await self._fetch_once()
            except Exception as e:
                if attempt >= self.max_retries:
                    logger.error("Sitemap fetch failed after %d retries: %s", self.max_retries, e)
                    raise
                attempt += 1
                delay = self.retry_delay * attempt
                logger.warning("Sitemap fetch failed (attempt %d/%d), retrying in %.1fs: %s",
                               attempt, self.max_retries, delay, e)
                await self._sleep(delay)

    def _cache_valid(self) -> bool:
        last = self.state.last_fetched
        return last is not None and (self._clock() - last) < self.ttl

    async def load(self, force_refresh: bool = False) -> SitemapState:
        """
        Current sitemap state. A failed load keeps the error on the state and
        swaps in the fallback navigation.
        """
        if not force_refresh and self._cache_valid():
            return self.state

        try:
            sitemap = await self.fetch_sitemap()
        except Exception as e:
            logger.error("Sitemap load failed: %s", e)
            self.state = SitemapState(
                sitemap=self.state.sitemap,
                navigation=fallback_navigation(),
                error=e,
                last_fetched=self.state.last_fetched,
            )
            return self.state

        self.state = SitemapState(
            sitemap=sitemap,
            navigation=transform_navigation(sitemap.nav, sitemap.links, sitemap.templates),
            last_fetched=self._clock(),
        )
        logger.info("Sitemap loaded with %d navigation groups", len(self.state.navigation))
        return self.state

    async def refresh(self) -> SitemapState:
        return await self.load(force_refresh=True)

    def invalidate(self) -> None:
        """Forget the cached sitemap; call when the signed in user changes."""
        self.state = SitemapState()

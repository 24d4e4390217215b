from __future__ import annotations
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional

import httpx

from client import links
from client.errors import FetchError
from models.hal import HalObject

logger = logging.getLogger(__name__)

ACCEPT = "application/hal+json, application/json"


@dataclass
class _CachedEntryPoint:
    data: HalObject
    timestamp: float


class EntryPoint:
    """
    Root document of the API and the capabilities it advertises.

    The document is cached for `cache_ttl` seconds. Changing the auth token
    or base URL drops the cache, since capabilities depend on both.
    """

    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        default_headers: Optional[Mapping[str, str]] = None,
        cache_ttl: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url
        self.default_headers: dict[str, str] = dict(default_headers or {})
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._cache: Optional[_CachedEntryPoint] = None
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def aclose(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> "EntryPoint":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------
    def _cache_valid(self) -> bool:
        return self._cache is not None and (self._clock() - self._cache.timestamp) < self.cache_ttl

    async def fetch(self, force_refresh: bool = False) -> HalObject:
        if not force_refresh and self._cache_valid():
            return self._cache.data

        headers = {"Accept": ACCEPT, **self.default_headers}
        response = await self._http.get(self.base_url, headers=headers)
        if not response.is_success:
            raise FetchError(response.status_code, response.reason_phrase, self.base_url, response.text)

        data = response.json()
        self._cache = _CachedEntryPoint(data=data, timestamp=self._clock())
        logger.debug("Fetched entry point %s", self.base_url)
        return data

    def get_cached_data(self) -> Optional[HalObject]:
        return self._cache.data if self._cache_valid() else None

    def clear_cache(self) -> None:
        self._cache = None

    # -------------------------------------------------------------------------
    # Capabilities
    # -------------------------------------------------------------------------
    async def get_link_href(self, rel: links.Rel, params: Optional[Mapping[str, Any]] = None) -> Optional[str]:
        return links.get_href(await self.fetch(), rel, params)

    async def has_capability(self, rel: links.Rel) -> bool:
        return links.has_capability(await self.fetch(), rel)

    async def get_capabilities(self) -> list[str]:
        return links.get_available_relations(await self.fetch())

    async def get_template_target(self, name: str) -> Optional[str]:
        template = ((await self.fetch()).get("_templates") or {}).get(name)
        return template.get("target") if template else None

    async def has_template(self, name: str) -> bool:
        return name in ((await self.fetch()).get("_templates") or {})

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------
    def set_auth_token(self, value: str) -> None:
        """`value` is the full Authorization header, e.g. "SessionToken abc.123"."""
        self.default_headers["Authorization"] = value
        self.clear_cache()

    def clear_auth_token(self) -> None:
        self.default_headers.pop("Authorization", None)
        self.clear_cache()

    def set_base_url(self, base_url: str) -> None:
        self.base_url = base_url
        self.clear_cache()

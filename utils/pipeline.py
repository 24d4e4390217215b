from __future__ import annotations
import hashlib
import logging
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Sequence
from uuid import uuid4

from fastapi import Request, Response
from fastapi.routing import APIRoute

from utils.errors import HttpError
from utils.etag import check_etag_match, generate_etag, not_modified, set_etag_headers

logger = logging.getLogger(__name__)

CallNext = Callable[[Request], Awaitable[Response]]


class Stage:
    """One step of a route's request pipeline."""

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        return await call_next(request)


# -----------------------------------------------------------------------------
# Route class
# -----------------------------------------------------------------------------
class PipelineRoute(APIRoute):
    """APIRoute that runs its handler through an ordered tuple of stages."""

    stages: tuple[Stage, ...] = ()

    def get_route_handler(self) -> Callable[[Request], Awaitable[Response]]:
        handler = super().get_route_handler()
        stages = self.stages

        async def run(request: Request) -> Response:
            async def dispatch(index: int, req: Request) -> Response:
                if index == len(stages):
                    return await handler(req)
                return await stages[index](req, lambda r: dispatch(index + 1, r))

            return await dispatch(0, request)

        return run


def pipeline(*stages: Stage) -> type[PipelineRoute]:
    """Build a route class running `stages` in order, outermost first."""
    return type("PipelineRoute", (PipelineRoute,), {"stages": tuple(stages)})


# -----------------------------------------------------------------------------
# Logging
# -----------------------------------------------------------------------------
class LogStage(Stage):

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        trace_id = request.headers.get("x-amzn-trace-id") or uuid4().hex
        request.state.trace_id = trace_id
        started = time.perf_counter()
        logger.info("-> %s %s trace=%s", request.method, request.url.path, trace_id)

        try:
            response = await call_next(request)
        except HttpError as e:
            elapsed = (time.perf_counter() - started) * 1000
            log = logger.error if e.status_code >= 500 else logger.warning
            log("<- %s %s %d %.1fms trace=%s: %s",
                request.method, request.url.path, e.status_code, elapsed, trace_id, e.detail)
            raise
        except Exception:
            elapsed = (time.perf_counter() - started) * 1000
            logger.exception("<- %s %s failed %.1fms trace=%s",
                             request.method, request.url.path, elapsed, trace_id)
            raise

        elapsed = (time.perf_counter() - started) * 1000
        logger.info("<- %s %s %d %.1fms trace=%s",
                    request.method, request.url.path, response.status_code, elapsed, trace_id)
        response.headers["X-Trace-Id"] = trace_id
        return response


# -----------------------------------------------------------------------------
# Response cache
# -----------------------------------------------------------------------------
@dataclass
class CachedResponse:
    etag: str
    body: bytes
    status_code: int
    media_type: Optional[str]
    stored_at: float
    headers: dict[str, str] = field(default_factory=dict)


class ResponseCache:
    """In-memory response store shared by every CacheStage."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self.clock = clock
        self._entries: dict[str, CachedResponse] = {}

    def get(self, key: str, ttl: float) -> Optional[CachedResponse]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self.clock() - entry.stored_at >= ttl:
            del self._entries[key]
            return None
        return entry

    def put(self, key: str, entry: CachedResponse) -> None:
        self._entries[key] = entry

    def evict_older_than(self, ttl: float) -> None:
        now = self.clock()
        for key in [k for k, e in self._entries.items() if now - e.stored_at >= ttl]:
            del self._entries[key]

    def invalidate_user(self, user_id: str) -> int:
        prefix = f"/users/{user_id}"

        def owned(key: str) -> bool:
            path = key.split("|", 1)[0].split(" ", 1)[1]
            return path == prefix or path.startswith(prefix + "/")

        stale = [k for k in self._entries if owned(k)]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Invalidated %d cached responses for user %s", len(stale), user_id)
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


response_cache = ResponseCache()


class CacheStage(Stage):
    """
    ETag cache for read-style endpoints.

    Entries are keyed by method, path, body hash, the `vary` headers and the
    verified principal an earlier AuthStage left on `request.state`, so
    different credentials or clients never share an entry. Only 2xx
    responses are kept.
    """

    def __init__(
        self,
        ttl: int,
        vary: Sequence[str] = ("authorization", "cookie"),
        cache: Optional[ResponseCache] = None,
    ) -> None:
        self.ttl = ttl
        self.vary = tuple(h.lower() for h in vary)
        self.cache = cache or response_cache

    async def _key(self, request: Request) -> str:
        body = await request.body()
        parts = [f"{request.method} {request.url.path}", hashlib.sha256(body).hexdigest()]
        parts.extend(request.headers.get(name, "") for name in self.vary)
        parts.append(getattr(request.state, "principal", ""))
        return "|".join(parts)

    def _respond(self, request: Request, entry: CachedResponse, hit: bool) -> Response:
        if check_etag_match(request, entry.etag):
            response = not_modified(entry.etag, self.ttl)
        else:
            response = Response(
                content=entry.body,
                status_code=entry.status_code,
                media_type=entry.media_type,
                headers=entry.headers,
            )
            set_etag_headers(response, entry.etag, self.ttl)
        response.headers["X-Cache"] = "HIT" if hit else "MISS"
        return response

    async def __call__(self, request: Request, call_next: CallNext) -> Response:
        self.cache.evict_older_than(self.ttl)
        key = await self._key(request)

        entry = self.cache.get(key, self.ttl)
        if entry is not None:
            return self._respond(request, entry, hit=True)

        response = await call_next(request)
        body = getattr(response, "body", None)
        if not (200 <= response.status_code < 300) or body is None:
            return response

        passthrough = {
            k: v for k, v in response.headers.items()
            if k.lower() not in ("content-length", "content-type", "etag", "cache-control")
        }
        entry = CachedResponse(
            etag=generate_etag(body),
            body=body,
            status_code=response.status_code,
            media_type=response.media_type,
            stored_at=self.cache.clock(),
            headers=passthrough,
        )
        self.cache.put(key, entry)
        return self._respond(request, entry, hit=False)

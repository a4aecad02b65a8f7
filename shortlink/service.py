"""Resolution Service - create, redirect and stats operations.

This module composes the code generator, the durable link store, the local
expiring cache and the background task supervisor into the three operations
exposed over HTTP.

Architecture Overview
=====================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    ResolutionService                        │
    │  ┌─────────────────┐  ┌─────────────────┐  ┌──────────────┐ │
    │  │ CodeGenerator   │  │  ExpiringCache  │  │TaskSupervisor│ │
    │  │ • dedup lookup  │  │ • code -> url   │  │ • visit INCR │ │
    │  │ • random code   │  │ • TTL expiry    │  │ • fault log  │ │
    │  └─────────────────┘  └─────────────────┘  └──────────────┘ │
    └─────────────────────────────────────────────────────────────┘
                │                                       │
                ▼                                       ▼
    ┌─────────────────────────────────────────────────────────────┐
    │                  LinkStore (Redis)                          │
    └─────────────────────────────────────────────────────────────┘

Request Flow Diagrams
=====================

Create Flow
-----------
::
    ┌─────────────┐
    │ generate()  │
    │ dedup check │
    └──────┬──────┘
    NEW?   │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────────┐
│ Reuse   │  │ put_mapping │──── fail ──► raise, nothing claimed
│ code    │  └──────┬──────┘
└─────────┘         ▼
             ┌─────────────┐
             │ claim_dedup │──── lost ──► reuse winner
             └──────┬──────┘
                    ▼ won
             ┌─────────────┐
             │ cache.set() │
             └─────────────┘

Redirect Flow
-------------
::
    ┌─────────────┐
    │ cache.get() │
    └──────┬──────┘
    HIT?   │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            │
┌─────────────┐  │
│ get_mapping │  │   not found -> website/<code> (cached)
│ + cache.set │  │   store down -> website/<code> (not cached)
└──────┬──────┘  │
       ▼         ▼
    ┌─────────────┐
    │ merge query │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ spawn visit │
    │ increment   │
    └─────────────┘

Key Behaviours
===============
- Creating the same long URL twice returns the same short URL; concurrent
  creates agree on one code through the store's dedup claim.
- A redirect never fails: unknown codes resolve to ``<website>/<code>``.
- Visit counting runs in the background and its failures never reach the
  caller.
"""

__all__ = ["LinkStats", "ResolutionService", "merge_query"]

import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Union

from prometheus_client import Counter, Histogram

from shortlink.enums import CacheStatus, RequestStatus
from shortlink.exceptions import LinkNotFoundError, StoreUnavailableError

if TYPE_CHECKING:
    from shortlink.dependencies import RequestContext


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

LINK_CREATION_REQUESTS_TOTAL = Counter(
    "shortlink_creation_requests_total",
    "Total link creation requests",
    ["status", "reused"],
)
LINK_CREATION_DURATION = Histogram(
    "shortlink_creation_duration_seconds",
    "Time taken to create short links",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0],
)
REDIRECT_REQUESTS_TOTAL = Counter(
    "shortlink_redirect_requests_total",
    "Total redirect requests by lookup outcome",
    ["cache"],
)
STATS_REQUESTS_TOTAL = Counter(
    "shortlink_stats_requests_total",
    "Total stats requests",
    ["status"],
)


# ============================================================================
# DATA STRUCTURES
# ============================================================================


@dataclass(frozen=True)
class LinkStats:
    short_url: str
    long_url: str
    visits: int


def merge_query(target: str, query_string: str) -> str:
    """Append a raw query string to ``target``.

    Example:
        >>> merge_query("http://h/p", "x=1")
        'http://h/p?x=1'
        >>> merge_query("http://h/p?y=2", "x=1")
        'http://h/p?y=2&x=1'
    """
    if not query_string:
        return target
    separator = "&" if "?" in target else "?"
    return f"{target}{separator}{query_string}"


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================


class ResolutionService:
    """Orchestrates link creation, redirect resolution and stats reporting.

    The service holds no state of its own; it is built per request from the
    RequestContext and works against the shared resources of the
    application context.

    Example:
        >>> service = ResolutionService.from_context(ctx)
        >>> short_url = await service.create("https://example.com/page")
        >>> target = await service.resolve("abc123", "utm_source=mail")
    """

    def __init__(self, ctx: "RequestContext"):
        self._settings = ctx.settings
        self._store = ctx.app.store
        self._cache = ctx.app.cache
        self._generator = ctx.app.generator
        self._tasks = ctx.app.tasks
        self._logger: Union[logging.Logger, logging.LoggerAdapter] = ctx.logger
        self._ctx = ctx

    @classmethod
    def from_context(cls, ctx: "RequestContext") -> "ResolutionService":
        return cls(ctx)

    @property
    def website(self) -> str:
        return self._settings.base.website

    def short_url(self, short_code: str, domain: Optional[str] = None) -> str:
        return f"{domain or self.website}/{short_code}"

    # ========================================================================
    # PUBLIC API METHODS
    # ========================================================================

    async def create(self, long_url: str, custom_domain: Optional[str] = None) -> str:
        """Shorten ``long_url`` and return its short URL.

        Args:
            long_url: URL to shorten, stored verbatim
            custom_domain: Optional domain replacing the configured website in
                the returned URL (the code is the same either way)

        Returns:
            str: ``<custom_domain or website>/<code>``

        Raises:
            StoreUnavailableError: If the store fails while checking or
                writing the mapping; nothing is cached in that case.
        """
        start_time = time.perf_counter()
        try:
            generated = await self._generator.generate(long_url, self._settings.base.length)
            code = generated.code
            if generated.is_new:
                code = await self._commit(generated.code, generated.url_hash, long_url)
            reused = code != generated.code or not generated.is_new
        except StoreUnavailableError as exc:
            LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)
            LINK_CREATION_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR, reused="false").inc()
            self._logger.error(f"Link creation failed for {long_url}: {exc}")
            raise

        LINK_CREATION_DURATION.observe(time.perf_counter() - start_time)
        LINK_CREATION_REQUESTS_TOTAL.labels(
            status=RequestStatus.SUCCESS, reused="true" if reused else "false"
        ).inc()
        self._logger.debug(f"Link {code} -> {long_url} (reused={reused})")
        return self.short_url(code, custom_domain)

    async def resolve(self, short_code: str, query_string: str = "") -> str:
        """Resolve ``short_code`` to its redirect target and count the visit.

        Args:
            short_code: Code taken from the request path
            query_string: Raw query string of the request, merged into the target

        Returns:
            str: Redirect target; ``<website>/<code>`` when the code is unknown
        """
        target = self._cache.get(short_code)
        if target is not None:
            status = CacheStatus.HIT
        else:
            target, status = await self._lookup(short_code)

        REDIRECT_REQUESTS_TOTAL.labels(cache=status).inc()
        self._tasks.spawn(self._store.increment_visits(short_code), name=f"visit:{short_code}")
        return merge_query(target, query_string)

    async def stats(self, short_code: str) -> LinkStats:
        """Return the mapping and visit count of ``short_code``.

        Raises:
            LinkNotFoundError: If the code has no mapping.
            StoreUnavailableError: If the store request fails.
        """
        try:
            long_url = await self._store.get_mapping(short_code)
            visits = await self._store.get_visits(short_code)
        except LinkNotFoundError:
            STATS_REQUESTS_TOTAL.labels(status=RequestStatus.NOT_FOUND).inc()
            raise
        except StoreUnavailableError:
            STATS_REQUESTS_TOTAL.labels(status=RequestStatus.ERROR).inc()
            raise

        STATS_REQUESTS_TOTAL.labels(status=RequestStatus.SUCCESS).inc()
        return LinkStats(short_url=self.short_url(short_code), long_url=long_url, visits=visits)

    # ========================================================================
    # PRIVATE HELPER METHODS
    # ========================================================================

    async def _commit(self, code: str, url_hash: str, long_url: str) -> str:
        """Persist a freshly generated code, then claim the URL's dedup entry.

        The mapping is written first so the dedup index never points at a
        code without one. A mapping left behind by a lost claim belongs to a
        code nobody was handed out.

        Returns:
            str: The code that owns the URL; differs from ``code`` when a
            concurrent create claimed the URL first.
        """
        await self._store.put_mapping(code, long_url)

        owner = await self._store.claim_dedup(url_hash, code)
        if owner != code:
            self._logger.info(f"Concurrent create for {long_url} resolved to existing code {owner}")
            return owner

        self._cache.set(code, long_url, self._settings.cache_ttl_seconds)
        return code

    async def _lookup(self, short_code: str) -> tuple[str, CacheStatus]:
        fallback = self.short_url(short_code)
        try:
            long_url = await self._store.get_mapping(short_code)
        except LinkNotFoundError:
            self._logger.info(f"Unknown short code {short_code}, falling back to {fallback}")
            self._cache.set(short_code, fallback, self._settings.cache_ttl_seconds)
            return fallback, CacheStatus.FALLBACK
        except StoreUnavailableError as exc:
            self._logger.warning(f"Store lookup for {short_code} failed, redirecting to {fallback}: {exc}")
            return fallback, CacheStatus.FALLBACK

        self._cache.set(short_code, long_url, self._settings.cache_ttl_seconds)
        return long_url, CacheStatus.MISS

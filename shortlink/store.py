"""Durable link store backed by Redis.

This module provides the persistent side of the resolution layer: the
short code -> long URL mapping, the dedup index of already shortened URLs and
the per-code visit counters. Every operation is a single Redis command; no
multi-key transactions are used.

Data Layout
===========
::
    short:short:<code>  (STRING)  long URL, no expiry
    short:link          (HASH)    md5(long URL) -> short code
    short:stats:<code>  (STRING)  visit counter (INCR)

Flow Diagram — claim_dedup()
============================
::
    ┌─────────────┐
    │ HSETNX      │◄──── owner vanished, retry once
    │ link h code │                 │
    └──────┬──────┘                 │
    SET?   │                        │
    ┌─────┴─────┐                   │
    │ YES        │ NO               │
    ▼            ▼                  │
┌─────────┐  ┌─────────┐            │
│ Return  │  │ HGET    │── None ────┘
│ code    │  │ owner   │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Create**::
    client = redis.Redis(host="127.0.0.1", port=6379, decode_responses=True)
    store = LinkStore(client)

**Step 2 — Write and read mappings**::
    await store.put_mapping("abc123", "https://example.com")
    long_url = await store.get_mapping("abc123")

**Step 3 — Count visits**::
    await store.increment_visits("abc123")
    visits = await store.get_visits("abc123")

Key Behaviours
===============
- Redis failures surface as StoreUnavailableError, except in
  ``increment_visits`` where they are logged and discarded.
- ``get_mapping`` raises LinkNotFoundError for unknown codes.
- ``get_visits`` returns 0 for codes that were never visited.

Classes:
    LinkStore:  Async adapter over a ``redis.asyncio.Redis`` client.
"""

__all__ = ["LinkStore", "create_redis_client"]

import functools
import logging
from collections.abc import Awaitable, Callable
from typing import Any, Optional, TypeVar

import redis.asyncio as redis
from prometheus_client import Counter
from redis.exceptions import RedisError

from shortlink.config import Settings
from shortlink.exceptions import LinkNotFoundError, StoreUnavailableError
from shortlink.keys import LinkKeySchema

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

CLAIM_ATTEMPTS = 2

STORE_ERRORS_TOTAL = Counter(
    "shortlink_store_errors_total",
    "Redis requests that failed, by store operation",
    ["operation"],
)
VISIT_INCREMENT_FAILURES_TOTAL = Counter(
    "shortlink_visit_increment_failures_total",
    "Visit counter increments that failed and were discarded",
)


def handle_store_error(method: F) -> F:
    """Wrap store coroutines so Redis failures raise StoreUnavailableError."""

    @functools.wraps(method)
    async def wrapper(self: "LinkStore", *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except RedisError as e:
            STORE_ERRORS_TOTAL.labels(operation=method.__name__).inc()
            raise StoreUnavailableError(f"Redis request {method.__name__} failed: {e}") from e

    return wrapper  # type: ignore[return-value]


def create_redis_client(settings: Settings) -> redis.Redis:
    return redis.Redis(
        host=settings.redis.addr,
        port=settings.redis.port,
        password=settings.redis.pwd or None,
        db=settings.redis.db,
        socket_timeout=settings.redis.socket_timeout,
        encoding="utf-8",
        decode_responses=True,
    )


class LinkStore:
    """Redis-based store for link mappings, the dedup index and visit counters.

    Attributes:
        redis (redis.Redis):
            Async Redis client with ``decode_responses=True``.
        keys (LinkKeySchema):
            Key schema helper for namespaced Redis keys.
    """

    def __init__(
        self,
        client: redis.Redis,
        keys: Optional[LinkKeySchema] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.redis = client
        self.keys = keys or LinkKeySchema()
        self._logger = logger or logging.getLogger("shortlink.store")

    @classmethod
    def from_settings(cls, settings: Settings, logger: Optional[logging.Logger] = None) -> "LinkStore":
        return cls(create_redis_client(settings), LinkKeySchema(settings.redis.prefix), logger)

    @handle_store_error
    async def put_mapping(self, short_code: str, long_url: str) -> None:
        await self.redis.set(self.keys.mapping_key(short_code), long_url)

    @handle_store_error
    async def get_mapping(self, short_code: str) -> str:
        """Return the long URL stored for ``short_code``.

        Raises:
            LinkNotFoundError: If no mapping exists for the code.
            StoreUnavailableError: If the Redis request fails.
        """
        long_url = await self.redis.get(self.keys.mapping_key(short_code))
        if long_url is None:
            raise LinkNotFoundError(f"Short URL with code '{short_code}' not found.")
        return long_url

    @handle_store_error
    async def put_dedup(self, url_hash: str, short_code: str) -> None:
        await self.redis.hset(self.keys.known_urls_key(), url_hash, short_code)

    @handle_store_error
    async def get_dedup(self, url_hash: str) -> Optional[str]:
        return await self.redis.hget(self.keys.known_urls_key(), url_hash)

    @handle_store_error
    async def claim_dedup(self, url_hash: str, short_code: str) -> str:
        """Register ``short_code`` for ``url_hash`` unless another code already owns it.

        Returns:
            str: ``short_code`` if the claim won, otherwise the existing owner.

        Raises:
            StoreUnavailableError: If the Redis request fails, or the entry
                is removed between every HSETNX and HGET attempt.
        """
        key = self.keys.known_urls_key()
        for _ in range(CLAIM_ATTEMPTS):
            if await self.redis.hsetnx(key, url_hash, short_code):
                return short_code
            owner = await self.redis.hget(key, url_hash)
            if owner is not None:
                return owner
            # The owner was deleted between HSETNX and HGET; claim again.
        raise StoreUnavailableError(f"Dedup entry {url_hash} changed during {CLAIM_ATTEMPTS} claim attempts")

    async def increment_visits(self, short_code: str) -> None:
        try:
            await self.redis.incr(self.keys.visits_key(short_code))
        except RedisError as e:
            VISIT_INCREMENT_FAILURES_TOTAL.inc()
            self._logger.warning(f"Visit increment failed for {short_code}: {e}")

    @handle_store_error
    async def get_visits(self, short_code: str) -> int:
        value = await self.redis.get(self.keys.visits_key(short_code))
        return int(value) if value is not None else 0

    async def ping(self) -> bool:
        try:
            return bool(await self.redis.ping())
        except RedisError as e:
            self._logger.error(f"Redis ping to {self._describe()} failed: {e}")
            return False

    async def close(self) -> None:
        await self.redis.aclose()

    def _describe(self) -> str:
        info = self.redis.connection_pool.connection_kwargs
        return f"{info.get('host')}:{info.get('port')}/{info.get('db')}"

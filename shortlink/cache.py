"""Process-local expiring cache for short code lookups.

The cache sits in front of the durable store on the redirect hot path. Every
entry lives for a fixed TTL from its last ``set``; expiry is driven both by a
timer scheduled on the running event loop and by a deadline check on access.

Flow Diagram — set() / expiry
=============================
::
    ┌─────────────┐
    │ set(k, v)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Cancel timer│
    │ of old entry│
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Store entry │
    │ + deadline  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ call_later  │
    │ (ttl)       │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ _expire():  │
    │ remove only │
    │ if current  │
    └─────────────┘

Key Behaviours
===============
- Overwriting a key replaces its pending expiry, so an older timer can never
  evict a newer value.
- ``get`` evicts entries past their deadline even if the timer has not fired
  (or no loop was running when the entry was set).
- All methods are synchronous and run on the event loop thread, so each call
  is atomic with respect to other coroutines.
"""

__all__ = ["ExpiringCache"]

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Generic, Optional, TypeVar

V = TypeVar("V")


@dataclass
class _Entry(Generic[V]):
    value: V
    expires_at: float
    handle: Optional[asyncio.TimerHandle] = field(default=None, repr=False)

    def cancel(self) -> None:
        if self.handle is not None:
            self.handle.cancel()
            self.handle = None


class ExpiringCache(Generic[V]):
    """Key/value cache whose entries disappear a fixed TTL after insertion.

    Example:
        >>> cache = ExpiringCache(default_ttl=600)
        >>> cache.set("abc123", "https://example.com/page")
        >>> cache.get("abc123")
        'https://example.com/page'
    """

    def __init__(self, default_ttl: float, clock: Callable[[], float] = time.monotonic) -> None:
        if default_ttl <= 0:
            raise ValueError(f"default_ttl must be positive, got {default_ttl!r}")
        self._default_ttl = default_ttl
        self._clock = clock
        self._entries: dict[str, _Entry[V]] = {}

    @property
    def default_ttl(self) -> float:
        return self._default_ttl

    def set(self, key: str, value: V, ttl: Optional[float] = None) -> None:
        """Store ``value`` under ``key`` for ``ttl`` seconds.

        Args:
            key: Cache key (a short code).
            value: Value to store; replaces any previous value for the key.
            ttl: Lifetime in seconds; defaults to the cache's ``default_ttl``.
        """
        ttl = self._default_ttl if ttl is None else ttl
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl!r}")

        previous = self._entries.get(key)
        if previous is not None:
            previous.cancel()

        entry = _Entry(value=value, expires_at=self._clock() + ttl)
        self._entries[key] = entry
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No loop to schedule on; the deadline check in get() still applies.
            return
        entry.handle = loop.call_later(ttl, self._expire, key, entry)

    def get(self, key: str) -> Optional[V]:
        """Return the cached value, or None if absent or expired."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if self._clock() >= entry.expires_at:
            self._remove(key, entry)
            return None
        return entry.value

    def delete(self, key: str) -> bool:
        entry = self._entries.pop(key, None)
        if entry is None:
            return False
        entry.cancel()
        return True

    def clear(self) -> None:
        for entry in self._entries.values():
            entry.cancel()
        self._entries.clear()

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.get(key) is not None

    def __len__(self) -> int:
        return len(self._entries)

    def _expire(self, key: str, entry: _Entry[V]) -> None:
        entry.handle = None
        self._remove(key, entry)

    def _remove(self, key: str, entry: _Entry[V]) -> None:
        if self._entries.get(key) is entry:
            entry.cancel()
            del self._entries[key]

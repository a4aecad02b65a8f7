"""Expiring local cache behaviour tests."""

import asyncio

import pytest

from shortlink.cache import ExpiringCache


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.mark.asyncio
async def test_set_and_get() -> None:
    cache = ExpiringCache(default_ttl=60)
    cache.set("abc123", "https://www.google.com")

    assert cache.get("abc123") == "https://www.google.com"
    assert "abc123" in cache
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_get_missing_key() -> None:
    cache = ExpiringCache(default_ttl=60)
    assert cache.get("nonexistent") is None
    assert "nonexistent" not in cache


@pytest.mark.asyncio
async def test_set_overwrites_value() -> None:
    cache = ExpiringCache(default_ttl=60)
    cache.set("abc123", "https://old.example.com")
    cache.set("abc123", "https://new.example.com")

    assert cache.get("abc123") == "https://new.example.com"
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_entry_visible_until_ttl() -> None:
    cache = ExpiringCache(default_ttl=60)
    cache.set("abc123", "https://www.python.org", ttl=0.3)

    await asyncio.sleep(0.1)
    assert cache.get("abc123") == "https://www.python.org"


@pytest.mark.asyncio
async def test_entry_removed_after_ttl() -> None:
    cache = ExpiringCache(default_ttl=60)
    cache.set("abc123", "https://www.python.org", ttl=0.05)

    await asyncio.sleep(0.15)
    # Removed by the timer, not only hidden by get()
    assert len(cache) == 0
    assert cache.get("abc123") is None


@pytest.mark.asyncio
async def test_overwrite_replaces_pending_expiry() -> None:
    cache = ExpiringCache(default_ttl=60)
    cache.set("abc123", "https://first.example.com", ttl=0.3)
    await asyncio.sleep(0.15)
    cache.set("abc123", "https://second.example.com", ttl=0.3)

    # The first timer would have fired by now.
    await asyncio.sleep(0.2)
    assert cache.get("abc123") == "https://second.example.com"

    await asyncio.sleep(0.25)
    assert cache.get("abc123") is None


@pytest.mark.asyncio
async def test_delete_cancels_entry() -> None:
    cache = ExpiringCache(default_ttl=60)
    cache.set("abc123", "https://www.github.com", ttl=0.05)

    assert cache.delete("abc123") is True
    assert cache.delete("abc123") is False

    cache.set("abc123", "https://www.example.com", ttl=1)
    await asyncio.sleep(0.1)
    assert cache.get("abc123") == "https://www.example.com"


@pytest.mark.asyncio
async def test_clear() -> None:
    cache = ExpiringCache(default_ttl=60)
    for i in range(5):
        cache.set(f"code{i}", f"https://example.com/{i}")

    cache.clear()
    assert len(cache) == 0
    assert cache.get("code0") is None


@pytest.mark.asyncio
async def test_distinct_keys_expire_independently() -> None:
    cache = ExpiringCache(default_ttl=60)
    cache.set("short", "https://example.com/short", ttl=0.05)
    cache.set("long", "https://example.com/long", ttl=1)

    await asyncio.sleep(0.15)
    assert cache.get("short") is None
    assert cache.get("long") == "https://example.com/long"


def test_lazy_expiry_without_event_loop() -> None:
    clock = FakeClock()
    cache = ExpiringCache(default_ttl=10, clock=clock)
    cache.set("abc123", "https://example.com")

    clock.now += 9.9
    assert cache.get("abc123") == "https://example.com"

    clock.now += 0.1
    assert cache.get("abc123") is None
    assert len(cache) == 0


def test_default_ttl_used_when_omitted() -> None:
    clock = FakeClock()
    cache = ExpiringCache(default_ttl=5, clock=clock)
    cache.set("abc123", "https://example.com")

    clock.now += 6
    assert cache.get("abc123") is None
    assert cache.default_ttl == 5


def test_invalid_ttl() -> None:
    with pytest.raises(ValueError):
        ExpiringCache(default_ttl=0)

    cache = ExpiringCache(default_ttl=1)
    with pytest.raises(ValueError):
        cache.set("abc123", "https://example.com", ttl=-1)

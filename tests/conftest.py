"""Shared pytest fixtures for API, service and store tests."""

import asyncio
import logging
from collections.abc import AsyncGenerator, Callable
from types import SimpleNamespace
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from redis.exceptions import ConnectionError as RedisConnectionError

from shortlink.config import BaseSection, RedisSection, Settings
from shortlink.dependencies import AppContext, RequestContext, get_app_context
from shortlink.main import create_app
from shortlink.store import LinkStore

WEBSITE = "http://example.com"


def make_settings(**base_overrides) -> Settings:
    base = {"website": WEBSITE, "port": 8080, "length": 6, "cache_time": 1}
    base.update(base_overrides)
    return Settings(
        base=BaseSection(**base),
        redis=RedisSection(addr="127.0.0.1", port=6379, pwd=""),
    )


test_settings = make_settings()
app = create_app(test_settings)


class FakeRedis:
    """In-memory stand-in for the string and hash commands of ``redis.asyncio.Redis``.

    Commands listed in ``failing`` raise a redis ConnectionError.
    With ``yield_after_read`` set, ``hget`` gives up the event loop after
    reading, so concurrent callers interleave between a read and their next
    write the way they do against a real server.
    """

    def __init__(self) -> None:
        self.strings: dict[str, str] = {}
        self.hashes: dict[str, dict[str, str]] = {}
        self.failing: set[str] = set()
        self.yield_after_read = False
        self.closed = False
        self.connection_pool = SimpleNamespace(
            connection_kwargs={"host": "127.0.0.1", "port": 6379, "db": 0}
        )

    def _check(self, command: str) -> None:
        if command in self.failing:
            raise RedisConnectionError(f"{command} failed: connection refused")

    async def get(self, key: str) -> Optional[str]:
        self._check("get")
        return self.strings.get(key)

    async def set(self, key: str, value: str) -> bool:
        self._check("set")
        self.strings[key] = str(value)
        return True

    async def incr(self, key: str) -> int:
        self._check("incr")
        value = int(self.strings.get(key, "0")) + 1
        self.strings[key] = str(value)
        return value

    async def hget(self, key: str, field: str) -> Optional[str]:
        self._check("hget")
        value = self.hashes.get(key, {}).get(field)
        if self.yield_after_read:
            await asyncio.sleep(0)
        return value

    async def hset(self, key: str, field: str, value: str) -> int:
        self._check("hset")
        bucket = self.hashes.setdefault(key, {})
        created = field not in bucket
        bucket[field] = str(value)
        return int(created)

    async def hsetnx(self, key: str, field: str, value: str) -> bool:
        self._check("hsetnx")
        bucket = self.hashes.setdefault(key, {})
        if field in bucket:
            return False
        bucket[field] = str(value)
        return True

    async def hdel(self, key: str, field: str) -> int:
        self._check("hdel")
        return int(self.hashes.get(key, {}).pop(field, None) is not None)

    async def ping(self) -> bool:
        self._check("ping")
        return True

    async def aclose(self) -> None:
        self.closed = True


async def wait_for(predicate: Callable[[], bool], timeout: float = 1.0, interval: float = 0.01) -> bool:
    """Poll ``predicate`` until it holds or ``timeout`` elapses."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            return False
        await asyncio.sleep(interval)
    return True


@pytest.fixture
def settings() -> Settings:
    return test_settings


@pytest.fixture
def fake_redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def store(fake_redis: FakeRedis) -> LinkStore:
    return LinkStore(fake_redis)


@pytest_asyncio.fixture
async def app_context(settings: Settings, store: LinkStore) -> AsyncGenerator[AppContext, None]:
    context = AppContext.build(settings, store=store, logger=logging.getLogger("shortlink"))
    yield context
    await context.tasks.wait_idle()
    context.cache.clear()


@pytest.fixture
def request_context(app_context: AppContext) -> RequestContext:
    return RequestContext(app=app_context, client_ip="127.0.0.1", user_agent="pytest")


@pytest_asyncio.fixture
async def client(app_context: AppContext) -> AsyncGenerator[AsyncClient, None]:
    app.dependency_overrides[get_app_context] = lambda: app_context

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()

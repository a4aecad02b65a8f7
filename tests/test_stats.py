"""Stats endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from conftest import WEBSITE, wait_for


@pytest.mark.asyncio
async def test_stats_valid_code(client: AsyncClient) -> None:
    create_resp = await client.post("/shorten", json={"long_url": "https://www.google.com"})
    short_url = create_resp.json()["short_url"]
    short_code = short_url.rsplit("/", 1)[-1]

    response = await client.get(f"/stats/{short_code}")
    assert response.status_code == 200
    assert response.json() == {
        "short_url": f"{WEBSITE}/{short_code}",
        "long_url": "https://www.google.com",
        "visit_count": 0,
    }


@pytest.mark.asyncio
async def test_stats_ignores_diy_domain(client: AsyncClient) -> None:
    create_resp = await client.post(
        "/shorten", json={"long_url": "https://www.github.com", "diy_domain": "https://gh.link"}
    )
    short_code = create_resp.json()["short_url"].rsplit("/", 1)[-1]

    response = await client.get(f"/stats/{short_code}")
    assert response.json()["short_url"] == f"{WEBSITE}/{short_code}"


@pytest.mark.asyncio
async def test_stats_invalid_code(client: AsyncClient) -> None:
    response = await client.get("/stats/nonexistent")
    assert response.status_code == 404
    assert "visit_count" not in response.json()


@pytest.mark.asyncio
async def test_stats_after_redirects(client: AsyncClient, fake_redis) -> None:
    create_resp = await client.post("/shorten", json={"long_url": "https://www.python.org"})
    short_code = create_resp.json()["short_url"].rsplit("/", 1)[-1]

    for _ in range(4):
        await client.get(f"/{short_code}", follow_redirects=False)

    # Visits are counted in the background.
    assert await wait_for(lambda: fake_redis.strings.get(f"short:stats:{short_code}") == "4")

    response = await client.get(f"/stats/{short_code}")
    assert response.json()["visit_count"] == 4


@pytest.mark.asyncio
async def test_stats_store_failure(client: AsyncClient, fake_redis) -> None:
    fake_redis.failing = {"get"}

    response = await client.get("/stats/abc123")
    assert response.status_code == 500

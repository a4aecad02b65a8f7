"""Shorten endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from conftest import WEBSITE


@pytest.mark.asyncio
async def test_shorten_valid_url(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"long_url": "https://www.google.com"})
    assert response.status_code == 200
    data = response.json()
    assert data["short_url"].startswith(f"{WEBSITE}/")
    assert len(data["short_url"].rsplit("/", 1)[-1]) == 6


@pytest.mark.asyncio
async def test_shorten_same_url_twice(client: AsyncClient) -> None:
    first = await client.post("/shorten", json={"long_url": "https://www.github.com"})
    second = await client.post("/shorten", json={"long_url": "https://www.github.com"})
    assert first.json()["short_url"] == second.json()["short_url"]


@pytest.mark.asyncio
async def test_shorten_with_diy_domain(client: AsyncClient) -> None:
    plain = await client.post("/shorten", json={"long_url": "https://www.python.org"})
    custom = await client.post(
        "/shorten",
        json={"long_url": "https://www.python.org", "diy_domain": "https://py.link"},
    )
    assert custom.status_code == 200
    code = plain.json()["short_url"].rsplit("/", 1)[-1]
    assert custom.json()["short_url"] == f"https://py.link/{code}"


@pytest.mark.asyncio
async def test_shorten_empty_diy_domain_uses_website(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"long_url": "https://www.python.org/doc", "diy_domain": ""})
    assert response.json()["short_url"].startswith(f"{WEBSITE}/")


@pytest.mark.asyncio
async def test_shorten_accepts_non_uri_text(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"long_url": "not-a-url"})
    assert response.status_code == 200


@pytest.mark.asyncio
async def test_shorten_missing_url(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_shorten_empty_url(client: AsyncClient) -> None:
    response = await client.post("/shorten", json={"long_url": ""})
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_shorten_malformed_body(client: AsyncClient) -> None:
    response = await client.post(
        "/shorten", content="not json", headers={"Content-Type": "application/json"}
    )
    assert response.status_code == 400


@pytest.mark.asyncio
async def test_shorten_store_failure(client: AsyncClient, fake_redis) -> None:
    fake_redis.failing = {"set"}

    response = await client.post("/shorten", json={"long_url": "https://www.example.com/fail"})
    assert response.status_code == 500
    assert response.json()["detail"] == "Failed to save short URL"

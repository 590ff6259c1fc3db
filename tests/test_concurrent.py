"""Tests that the server handles multiple concurrent connections correctly.

Requests run as concurrent tasks on one event loop. These tests assert that
many simultaneous requests succeed, that short codes stay unique, and that a
subnet's quota holds when its requests arrive together.
"""

import asyncio
import pytest


@pytest.mark.asyncio
class TestConcurrentConnections:
    """Prove the server handles many simultaneous requests."""

    async def test_concurrent_health_requests(self, client):
        """Many concurrent GET /api/health requests all succeed."""
        concurrency = 50
        tasks = [client.get("/api/health") for _ in range(concurrency)]
        responses = await asyncio.gather(*tasks, return_exceptions=True)

        for i, r in enumerate(responses):
            if isinstance(r, Exception):
                pytest.fail(f"Request {i} raised: {r}")
            assert r.status_code == 200, f"Request {i}: status {r.status_code}"
            assert r.json()["status"] == "ok"

    async def test_concurrent_shorten_from_many_subnets(self, client):
        """Concurrent creations from distinct subnets all succeed with unique codes."""
        concurrency = 30
        urls = [f"https://example.com/concurrent/{i}" for i in range(concurrency)]
        tasks = [
            client.post(
                "/api/shorten",
                json={"url": url},
                headers={"X-Forwarded-For": f"10.0.{i}.1"},
            )
            for i, url in enumerate(urls)
        ]
        responses = await asyncio.gather(*tasks, return_exceptions=True)

        short_codes = []
        for i, r in enumerate(responses):
            if isinstance(r, Exception):
                pytest.fail(f"Request {i} raised: {r}")
            assert r.status_code == 200, f"Request {i}: status {r.status_code} body={r.text}"
            data = r.json()
            assert data["original_url"] == urls[i]
            short_codes.append(data["short_code"])

        assert len(short_codes) == len(set(short_codes)), "All short_codes must be unique under concurrency"

    async def test_concurrent_shorten_one_subnet_respects_limit(self, client):
        """Twenty-five simultaneous creations from one /24 admit exactly ten."""
        tasks = [
            client.post(
                "/api/shorten",
                json={"url": f"https://example.com/burst/{i}"},
                headers={"X-Forwarded-For": f"203.0.113.{i + 1}"},
            )
            for i in range(25)
        ]
        responses = await asyncio.gather(*tasks)

        statuses = [r.status_code for r in responses]
        assert statuses.count(200) == 10
        assert statuses.count(429) == 15

        stats = (await client.get("/api/stats")).json()
        assert stats["database_total"] == 10

    async def test_concurrent_stats_requests(self, client):
        """Many concurrent GET /api/stats requests all succeed."""
        concurrency = 40
        tasks = [client.get("/api/stats") for _ in range(concurrency)]
        responses = await asyncio.gather(*tasks, return_exceptions=True)

        for i, r in enumerate(responses):
            if isinstance(r, Exception):
                pytest.fail(f"Request {i} raised: {r}")
            assert r.status_code == 200, f"Request {i}: status {r.status_code}"
            data = r.json()
            assert "cache" in data
            assert "rate_limit" in data

    async def test_concurrent_redirect_requests(self, client):
        """Create one short URL, then many concurrent redirect (GET /{code}) requests all succeed."""
        create_resp = await client.post(
            "/api/shorten",
            json={"url": "https://example.com/redirect-target"},
        )
        assert create_resp.status_code == 200
        short_code = create_resp.json()["short_code"]

        tasks = [
            client.get(f"/{short_code}", follow_redirects=False)
            for _ in range(20)
        ]
        responses = await asyncio.gather(*tasks, return_exceptions=True)

        for i, r in enumerate(responses):
            if isinstance(r, Exception):
                pytest.fail(f"Request {i} raised: {r}")
            assert r.status_code == 302, f"Request {i}: status {r.status_code}"
            assert r.headers.get("location") == "https://example.com/redirect-target"

"""Tests for service layer."""

import asyncio
from datetime import timedelta

import pytest

from shortener.exceptions import (
    LinkNotFoundError,
    RateLimitExceededError,
    ShortCodeGenerationError,
    StoreError,
    ValidationError,
)
from shortener.shortcode import ShortCodeGenerator

from conftest import START_TIME, make_link


CLIENT_IP = "203.0.113.7"


@pytest.mark.asyncio
class TestShortLinkService:
    """Test short link service."""

    async def test_create_link(self, service, store, cache, sample_urls):
        """Test creating short URL."""
        result = await service.create_link(sample_urls[0], CLIENT_IP)
        link = result.link

        assert ShortCodeGenerator.is_valid_code(link.short_code)
        assert link.original_url == sample_urls[0]
        assert link.created_at == START_TIME
        assert link.expires_at == START_TIME + timedelta(days=365)
        assert link.creator_ip == CLIENT_IP
        assert link.creator_subnet == "203.0.113.0/24"
        assert store.links[link.short_code] == link
        assert link.short_code in cache

    async def test_quota_after_create(self, service, clock, sample_urls):
        await service.create_link(sample_urls[0], CLIENT_IP)
        clock.advance(hours=1)

        result = await service.create_link(sample_urls[1], "203.0.113.99")

        assert result.quota.subnet == "203.0.113.0/24"
        assert result.quota.limit == 10
        assert result.quota.remaining == 8
        assert result.quota.reset_in == timedelta(hours=23)

    async def test_resolve_from_cache(self, service, store, sample_urls):
        result = await service.create_link(sample_urls[0], CLIENT_IP)
        store.failing = True

        assert await service.resolve(result.link.short_code) == sample_urls[0]

    async def test_resolve_from_store_after_cache_loss(self, service, cache, sample_urls):
        result = await service.create_link(sample_urls[0], CLIENT_IP)
        cache.clear()

        assert await service.resolve(result.link.short_code) == sample_urls[0]
        assert result.link.short_code in cache

    async def test_resolve_unknown(self, service):
        with pytest.raises(LinkNotFoundError):
            await service.resolve("ABC123")

    async def test_resolve_store_failure(self, service, store):
        store.failing = True

        with pytest.raises(StoreError):
            await service.resolve("ABC123")

    async def test_expired_link_is_deleted_on_access(self, service, store, clock):
        store.links["old123"] = make_link("old123", "https://example.com", START_TIME - timedelta(days=366))

        with pytest.raises(LinkNotFoundError):
            await service.resolve("old123")
        assert "old123" not in store.links

        # A second lookup behaves the same
        with pytest.raises(LinkNotFoundError):
            await service.resolve("old123")

    async def test_link_expires_after_retention(self, service, clock, sample_urls):
        result = await service.create_link(sample_urls[0], CLIENT_IP)
        code = result.link.short_code

        clock.advance(days=365)

        with pytest.raises(LinkNotFoundError):
            await service.resolve(code)
        assert code not in service.cache

    async def test_invalid_url_rejected(self, service, rate_limiter):
        with pytest.raises(ValidationError):
            await service.create_link("ftp://example.com/file", CLIENT_IP)

        state = await rate_limiter.get_state("203.0.113.0/24")
        assert state.count == 0
        assert state.reserved == 0

    async def test_rate_limit(self, service, sample_urls):
        for i in range(10):
            await service.create_link(f"{sample_urls[0]}?n={i}", f"203.0.113.{i + 1}")

        with pytest.raises(RateLimitExceededError) as exc_info:
            await service.create_link(sample_urls[1], "203.0.113.200")

        error = exc_info.value
        assert error.subnet == "203.0.113.0/24"
        assert error.client_ip == "203.0.113.200"
        assert error.limit == 10
        assert error.retry_after == timedelta(hours=24)

        # A neighbouring /24 is still allowed
        await service.create_link(sample_urls[1], "203.0.114.1")

    async def test_collision_retry(self, service, store, sample_urls):
        store.pending_conflicts = 3

        result = await service.create_link(sample_urls[0], CLIENT_IP)

        assert store.pending_conflicts == 0
        assert result.link.short_code in store.links

    async def test_collision_retries_exhausted(self, service, store, rate_limiter, sample_urls):
        store.pending_conflicts = service.max_collision_retries + 1

        with pytest.raises(ShortCodeGenerationError):
            await service.create_link(sample_urls[0], CLIENT_IP)

        state = await rate_limiter.get_state("203.0.113.0/24")
        assert (state.count, state.reserved) == (0, 0)

    async def test_store_failure_releases_reservation(self, service, store, rate_limiter, sample_urls):
        await service.create_link(sample_urls[0], CLIENT_IP)
        store.failing = True

        with pytest.raises(StoreError):
            await service.create_link(sample_urls[1], CLIENT_IP)

        state = await rate_limiter.get_state("203.0.113.0/24")
        assert (state.count, state.reserved) == (1, 0)

    async def test_warm_cache(self, service, store, cache):
        for i in range(3):
            code = f"warm{i}A"
            store.links[code] = make_link(code, f"https://example.com/{i}", START_TIME - timedelta(days=1))
        store.links["old99A"] = make_link("old99A", "https://example.com/old", START_TIME - timedelta(days=400))

        assert await service.warm_cache() == 3
        assert len(cache) == 3
        assert "old99A" not in cache

    async def test_list_active(self, service, cache, sample_urls):
        result = await service.create_link(sample_urls[0], CLIENT_IP)
        cache.insert("gone1A", "https://example.com/gone", START_TIME - timedelta(seconds=1))

        active = service.list_active()

        assert list(active.items) == [result.link.short_code]
        assert active.server_time == START_TIME
        assert len(cache) == 2

    async def test_get_statistics(self, service, sample_urls):
        await service.create_link(sample_urls[0], CLIENT_IP)
        await service.create_link(sample_urls[1], "198.51.100.4")

        stats = await service.get_statistics()

        assert stats["server_time"] == "2026-01-01T12:00:00Z"
        assert stats["cache"] == {"total": 2, "active": 2, "expired": 0}
        assert stats["rate_limit"]["max_per_subnet"] == 10
        assert stats["rate_limit"]["cooldown_hours"] == 24
        assert stats["rate_limit"]["total_tracked_subnets"] == 2
        assert stats["rate_limit"]["subnets_in_cooldown"] == 0
        assert stats["database_total"] == 2
        assert stats["database_active"] == 2
        assert stats["unique_creator_subnets"] == 2
        assert stats["cleanup_schedule"] == "every 1 hour"
        assert stats["last_cleanup"] is None

    async def test_get_statistics_without_store(self, service, store):
        store.failing = True

        stats = await service.get_statistics()

        assert "database_total" not in stats
        assert "database_active" not in stats
        assert stats["cache"]["total"] == 0

    async def test_health(self, service):
        health = await service.health()

        assert health["status"] == "ok"
        assert health["cache_len"] == 0
        assert health["max_per_subnet"] == 10
        assert health["cooldown_hours"] == 24
        assert health["expiry_days"] == 365

    async def test_close(self, service, store):
        await service.close()
        assert store.closed

    async def test_expired_link_store_delete_failure_is_not_found(self, service, store):
        store.links["old123"] = make_link("old123", "https://example.com", START_TIME - timedelta(days=366))

        async def failing_delete(short_code):
            raise StoreError("store unavailable")

        store.delete_link = failing_delete

        with pytest.raises(LinkNotFoundError):
            await service.resolve("old123")
        assert "old123" in store.links

    async def test_cancel_during_commit_still_charges(self, service, store, rate_limiter, sample_urls):
        """A request cancelled after its link is stored is charged and holds no reservation."""
        stored = asyncio.Event()
        proceed = asyncio.Event()
        insert_link = store.insert_link

        async def paused_insert(link):
            await insert_link(link)
            stored.set()
            await proceed.wait()

        store.insert_link = paused_insert
        task = asyncio.create_task(service.create_link(sample_urls[0], CLIENT_IP))
        await stored.wait()

        # Hold the limiter so commit is blocked when the request is cancelled
        await rate_limiter._lock.acquire()
        proceed.set()
        for _ in range(5):
            await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        rate_limiter._lock.release()
        for _ in range(5):
            await asyncio.sleep(0)

        state = await rate_limiter.get_state("203.0.113.0/24")
        assert (state.count, state.reserved) == (1, 0)
        assert len(store.links) == 1
        assert await rate_limiter.sweep(START_TIME + timedelta(days=2)) == 1

    async def test_cooldown_starts_when_last_link_is_stored(self, service, store, clock, rate_limiter, sample_urls):
        insert_link = store.insert_link

        async def slow_insert(link):
            clock.advance(minutes=30)
            await insert_link(link)

        store.insert_link = slow_insert
        for i in range(10):
            await service.create_link(f"{sample_urls[0]}?n={i}", CLIENT_IP)

        state = await rate_limiter.get_state("203.0.113.0/24")
        assert clock.now == START_TIME + timedelta(hours=5)
        assert state.cooldown_until == clock.now + timedelta(hours=24)

    async def test_concurrent_creates_report_exact_quota(self, service, store, sample_urls):
        insert_link = store.insert_link

        async def yielding_insert(link):
            await asyncio.sleep(0)
            await insert_link(link)

        store.insert_link = yielding_insert
        results = await asyncio.gather(
            service.create_link(sample_urls[0], "203.0.113.7"),
            service.create_link(sample_urls[1], "203.0.113.8"),
        )

        assert sorted(r.quota.remaining for r in results) == [8, 9]

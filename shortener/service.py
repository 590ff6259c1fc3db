"""Business logic service for URL shortener."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from .shortcode import ShortCodeGenerator
from .database.base import LinkStoreBase
from .database.cache import CacheEntry, LinkCache
from .database.models import ShortLink
from .cleanup import CleanupScheduler
from .common.logging_config import get_logger
from .common.validators import is_valid_url
from .exceptions import (
    LinkNotFoundError,
    RateLimitExceededError,
    ShortCodeConflictError,
    ShortCodeGenerationError,
    StoreError,
    ValidationError,
)
from .expiry import DEFAULT_EXPIRY_DAYS, expiry_from, format_timestamp, utcnow
from .rate_limit import RateLimitDecision, SubnetRateLimiter, classify_subnet


CACHE_LOAD_BATCH = 500


@dataclass(frozen=True)
class QuotaSnapshot:
    """Subnet quota as seen right after a successful creation."""

    subnet: str
    limit: int
    remaining: int
    reset_in: timedelta


@dataclass(frozen=True)
class CreateResult:
    link: ShortLink
    quota: QuotaSnapshot


@dataclass(frozen=True)
class ActiveLinks:
    items: Dict[str, CacheEntry]
    server_time: datetime


class ShortLinkService:
    """Service layer composing cache, rate limiter and store."""

    def __init__(
        self,
        store: LinkStoreBase,
        cache: Optional[LinkCache] = None,
        rate_limiter: Optional[SubnetRateLimiter] = None,
        short_code_generator: Optional[ShortCodeGenerator] = None,
        logger: Optional[logging.Logger] = None,
        expiry_days: int = DEFAULT_EXPIRY_DAYS,
        max_collision_retries: int = 5,
        cleanup: Optional[CleanupScheduler] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize URL shortener service.

        Args:
            store: Persistent link store
            cache: Local cache (a fresh one if not given)
            rate_limiter: Subnet rate limiter (defaults bound to `store`)
            short_code_generator: Optional short code generator
            logger: Optional logger
            expiry_days: Retention window for new links
            max_collision_retries: Regenerations allowed on code collision
            cleanup: Scheduler whose timing is reported in statistics
            clock: Source of the current time
        """
        self.store = store
        self.cache = cache if cache is not None else LinkCache()
        self.logger = logger or get_logger("service")
        if rate_limiter is None:
            rate_limiter = SubnetRateLimiter(store, logger=self.logger)
        self.rate_limiter = rate_limiter
        self.generator = short_code_generator or ShortCodeGenerator()
        self.expiry_days = expiry_days
        self.max_collision_retries = max_collision_retries
        self.cleanup = cleanup
        self.clock = clock

    async def warm_cache(self) -> int:
        """Load every unexpired stored link into the cache.

        Returns:
            Number of cached links
        """
        now = self.clock()
        loaded = 0
        batch: List[ShortLink] = []
        async for link in self.store.iter_active(now):
            batch.append(link)
            if len(batch) >= CACHE_LOAD_BATCH:
                loaded += self.cache.bulk_load(batch)
                batch = []
        if batch:
            loaded += self.cache.bulk_load(batch)

        self.logger.info(f"Loaded {loaded} active items to cache")
        return loaded

    async def create_link(self, original_url: str, client_ip: str) -> CreateResult:
        """Create a new short link on behalf of a client.

        Args:
            original_url: The original long URL
            client_ip: Address of the requesting client

        Returns:
            The stored link and the subnet's remaining quota

        Raises:
            RateLimitExceededError: If the client's subnet is over quota
            ValidationError: If the URL is not an http(s) URL
            StoreError: If the store fails
        """
        subnet = classify_subnet(client_ip)
        now = self.clock()

        decision = await self.rate_limiter.check_and_reserve(subnet, now)
        if not decision.allowed:
            self.logger.warning(f"Rate limit exceeded for subnet {subnet} (client {client_ip})")
            raise RateLimitExceededError(
                subnet=subnet,
                client_ip=client_ip,
                limit=decision.limit,
                retry_after=decision.retry_after,
                cooldown_until=decision.cooldown_until,
            )

        try:
            is_valid, error = is_valid_url(original_url)
            if not is_valid:
                raise ValidationError(f"Invalid URL: {error}")

            link = await self._insert_with_unique_code(original_url, client_ip, subnet, now)
        except BaseException:
            await asyncio.shield(self.rate_limiter.release(subnet))
            raise

        self.cache.insert(link.short_code, link.original_url, link.expires_at)
        # The link is stored; charge it even if this request is cancelled now
        await asyncio.shield(self.rate_limiter.commit(subnet, self.clock()))

        self.logger.info(f"Created short URL: {link.short_code} -> {link.original_url} (subnet {subnet})")
        return CreateResult(link=link, quota=self._quota_after_create(decision, now))

    async def resolve(self, short_code: str) -> str:
        """Get the destination of a short code.

        Args:
            short_code: The short code to lookup

        Returns:
            Original URL

        Raises:
            LinkNotFoundError: If the code is unknown or expired
            StoreError: If the store fails on a cache miss
        """
        now = self.clock()

        entry = self.cache.lookup(short_code, now)
        if entry is not None:
            self.logger.debug(f"Cache hit for {short_code}")
            return entry.original_url

        link = await self.store.find_link(short_code)
        if link is None:
            self.logger.warning(f"Short code not found: {short_code}")
            raise LinkNotFoundError(short_code)

        if link.is_expired(now):
            try:
                await self.store.delete_link(short_code)
                self.logger.info(f"Deleted expired short URL on access: {short_code}")
            except StoreError as e:
                self.logger.error(f"Failed to delete expired short URL {short_code}: {e}")
            raise LinkNotFoundError(short_code)

        self.cache.insert(link.short_code, link.original_url, link.expires_at)
        self.logger.debug(f"Retrieved URL from store: {short_code} -> {link.original_url}")
        return link.original_url

    def list_active(self) -> ActiveLinks:
        """Unexpired cached links; the cache is not modified."""
        now = self.clock()
        return ActiveLinks(items=self.cache.active_items(now), server_time=now)

    async def get_statistics(self) -> Dict[str, Any]:
        """Get service statistics.

        Store figures that cannot be read are left out rather than failing
        the whole report.

        Returns:
            Dictionary with statistics
        """
        now = self.clock()
        cache_counts = self.cache.counts(now)
        limiter = await self.rate_limiter.snapshot(now)

        stats: Dict[str, Any] = {
            "server_time": format_timestamp(now),
            "cache": {
                "total": cache_counts.total,
                "active": cache_counts.active,
                "expired": cache_counts.expired,
            },
            "rate_limit": {
                "max_per_subnet": self.rate_limiter.max_per_subnet,
                "cooldown_hours": self._cooldown_hours(),
                "total_tracked_subnets": limiter.tracked_subnets,
                "subnets_in_cooldown": limiter.subnets_in_cooldown,
                "limit_based_on": "subnet /24 (IPv4), /64 (IPv6)",
            },
        }

        for key, query in (
            ("database_total", lambda: self.store.count_links()),
            ("database_active", lambda: self.store.count_links(active_at=now)),
            ("unique_creator_subnets", lambda: self.store.count_unique_subnets()),
        ):
            try:
                stats[key] = await query()
            except StoreError as e:
                self.logger.error(f"Statistics: {key} unavailable: {e}")

        if self.cleanup is not None:
            next_run = self.cleanup.next_run_at
            last_run = self.cleanup.last_run_at
            stats["cleanup_schedule"] = self.cleanup.describe()
            stats["next_cleanup"] = format_timestamp(next_run) if next_run else None
            stats["last_cleanup"] = format_timestamp(last_run) if last_run else None

        return stats

    async def health(self) -> Dict[str, Any]:
        """Liveness snapshot from in-process state only."""
        now = self.clock()
        limiter = await self.rate_limiter.snapshot(now)
        return {
            "status": "ok",
            "cache_len": len(self.cache),
            "rate_limit_subnets": limiter.tracked_subnets,
            "rate_limit_strategy": "per subnet /24 (IPv4), /64 (IPv6)",
            "max_per_subnet": self.rate_limiter.max_per_subnet,
            "cooldown_hours": self._cooldown_hours(),
            "expiry_days": self.expiry_days,
            "server_time": format_timestamp(now),
        }

    async def _insert_with_unique_code(
        self,
        original_url: str,
        client_ip: str,
        subnet: str,
        now: datetime,
    ) -> ShortLink:
        """Persist a link, regenerating the code when the store reports a collision.

        Raises:
            ShortCodeGenerationError: If every attempt collided
        """
        expires_at = expiry_from(now, self.expiry_days)

        for attempt in range(self.max_collision_retries + 1):
            code = self.generator.generate()
            if code in self.cache:
                self.logger.debug(f"Generated code {code} is cached, regenerating")
                continue

            link = ShortLink(
                short_code=code,
                original_url=original_url,
                created_at=now,
                expires_at=expires_at,
                creator_ip=client_ip,
                creator_subnet=subnet,
            )
            try:
                await self.store.insert_link(link)
            except ShortCodeConflictError:
                self.logger.debug(f"Short code collision on {code} (attempt {attempt + 1})")
                continue
            return link

        raise ShortCodeGenerationError("Unable to generate unique short code after multiple attempts")

    def _quota_after_create(self, decision: RateLimitDecision, now: datetime) -> QuotaSnapshot:
        remaining = max(0, decision.limit - decision.count - decision.reserved - 1)
        reset_in = self.rate_limiter.window - (now - decision.window_start)
        return QuotaSnapshot(
            subnet=decision.subnet,
            limit=decision.limit,
            remaining=remaining,
            reset_in=reset_in,
        )

    def _cooldown_hours(self):
        hours = self.rate_limiter.cooldown.total_seconds() / 3600
        return int(hours) if hours.is_integer() else hours

    async def close(self) -> None:
        """Close service connections."""
        await self.store.close()

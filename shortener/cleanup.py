"""Periodic removal of expired links and stale rate-limit entries."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from .database.base import LinkStoreBase
from .database.cache import LinkCache
from .common.logging_config import get_logger
from .expiry import utcnow
from .rate_limit import SubnetRateLimiter


@dataclass
class CleanupReport:
    """What one cleanup pass removed, and which phases failed."""

    started_at: datetime
    deleted_links: Optional[int] = None
    cache_removed: Optional[int] = None
    subnets_removed: Optional[int] = None
    errors: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


class CleanupScheduler:
    """Long-lived background task sweeping the store, cache and rate limiter.

    One pass deletes expired links from the store, then sweeps the cache,
    then the rate limiter. Phases are independent: a failing phase is logged
    and the remaining phases still run.
    """

    def __init__(
        self,
        store: LinkStoreBase,
        cache: LinkCache,
        rate_limiter: SubnetRateLimiter,
        interval: timedelta = timedelta(hours=1),
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        """Initialize cleanup scheduler.

        Args:
            store: Persistent store holding the links
            cache: Local cache to sweep
            rate_limiter: Rate limiter to sweep
            interval: Delay between passes
            logger: Optional logger
            clock: Source of the current time
        """
        self.store = store
        self.cache = cache
        self.rate_limiter = rate_limiter
        self.interval = interval
        self.logger = logger or get_logger("cleanup")
        self.clock = clock

        self.last_run_at: Optional[datetime] = None
        self.last_report: Optional[CleanupReport] = None
        self._task: Optional[asyncio.Task] = None
        self._run_lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def next_run_at(self) -> Optional[datetime]:
        if self.last_run_at is None:
            return None
        return self.last_run_at + self.interval

    def describe(self) -> str:
        """Human-readable schedule, e.g. 'every 1 hour'."""
        seconds = int(self.interval.total_seconds())
        for unit, size in (("hour", 3600), ("minute", 60)):
            if seconds >= size and seconds % size == 0:
                amount = seconds // size
                return f"every {amount} {unit}" + ("s" if amount != 1 else "")
        return f"every {seconds} seconds"

    async def run_once(self) -> CleanupReport:
        """Run one cleanup pass.

        Never raises for phase failures; they are logged and listed in the
        report.
        """
        async with self._run_lock:
            now = self.clock()
            report = CleanupReport(started_at=now)
            self.logger.info("Running cleanup...")

            try:
                report.deleted_links = await self.store.delete_expired(now)
            except Exception as e:
                self.logger.error(f"Cleanup: deleting expired links failed: {e}", exc_info=True)
                report.errors.append(f"store: {type(e).__name__}")

            try:
                report.cache_removed = self.cache.sweep(now)
            except Exception as e:
                self.logger.error(f"Cleanup: cache sweep failed: {e}", exc_info=True)
                report.errors.append(f"cache: {type(e).__name__}")

            try:
                report.subnets_removed = await self.rate_limiter.sweep(now)
            except Exception as e:
                self.logger.error(f"Cleanup: rate limit sweep failed: {e}", exc_info=True)
                report.errors.append(f"rate_limit: {type(e).__name__}")

            self.last_run_at = now
            self.last_report = report

            self.logger.info(
                f"Cleanup complete. Database: {report.deleted_links} deleted, "
                f"Cache: {report.cache_removed} cleaned, "
                f"Subnets: {report.subnets_removed} removed"
            )
            return report

    async def _loop(self, run_immediately: bool) -> None:
        delay = 0.0 if run_immediately else self.interval.total_seconds()
        while True:
            try:
                await asyncio.sleep(delay)
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                self.logger.error(f"Error in cleanup loop: {e}", exc_info=True)
            delay = self.interval.total_seconds()

    def start(self, run_immediately: bool = True) -> None:
        """Start the background task; a running task is left alone.

        Args:
            run_immediately: Run a pass right away instead of after one interval
        """
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop(run_immediately))
        self.logger.info(f"Periodic cleanup scheduled ({self.describe()})")

    async def stop(self) -> None:
        """Cancel the background task and wait for it to finish."""
        if self._task is None:
            return
        if not self._task.done():
            self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        self.logger.info("Periodic cleanup stopped")

"""Subnet-scoped rate limiting for short link creation."""

import asyncio
import ipaddress
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .database.base import LinkStoreBase
from .common.logging_config import get_logger


DEFAULT_MAX_PER_SUBNET = 10
DEFAULT_COOLDOWN = timedelta(hours=24)
DEFAULT_WINDOW = timedelta(hours=24)


def classify_subnet(raw_address: str) -> str:
    """Collapse a client address to its rate-limiting subnet key.

    IPv4 addresses (including IPv4-mapped IPv6) map to their /24, IPv6
    addresses to their /64. Anything unparseable is its own key.

    Args:
        raw_address: Client address as received

    Returns:
        Subnet key such as "203.0.113.0/24" or "2001:0db8:0000:0001::/64"
    """
    address = (raw_address or "").strip()
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return address

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped

    packed = ip.packed
    if isinstance(ip, ipaddress.IPv4Address):
        return f"{packed[0]}.{packed[1]}.{packed[2]}.0/24"

    groups = ":".join(packed[i:i + 2].hex() for i in range(0, 8, 2))
    return f"{groups}::/64"


@dataclass
class SubnetRateState:
    """Quota accounting for one subnet.

    `reservations` holds the admission time of each creation still in flight.
    """

    count: int
    window_start: datetime
    cooldown_until: Optional[datetime] = None
    reservations: List[datetime] = field(default_factory=list)

    @property
    def reserved(self) -> int:
        return len(self.reservations)

    def expire_reservations(self, now: datetime, timeout: timedelta) -> int:
        """Drop reservations taken at least `timeout` before `now`.

        Returns:
            Number of dropped reservations
        """
        live = [taken for taken in self.reservations if now - taken < timeout]
        dropped = len(self.reservations) - len(live)
        self.reservations = live
        return dropped


@dataclass(frozen=True)
class RateLimitDecision:
    """Outcome of an admission check.

    `count` and `window_start` describe the subnet's committed usage before
    this request and `reserved` the other creations still in flight, for
    quota reporting.
    """

    allowed: bool
    subnet: str
    count: int
    window_start: datetime
    limit: int
    retry_after: timedelta = timedelta(0)
    cooldown_until: Optional[datetime] = None
    reserved: int = 0


@dataclass(frozen=True)
class RateLimitSnapshot:
    tracked_subnets: int
    subnets_in_cooldown: int


class SubnetRateLimiter:
    """Per-subnet creation quota with cooldown.

    Admission reserves a slot in the same critical section as the check, so
    concurrent requests cannot overshoot the limit. A reservation becomes a
    charged creation on commit() or is dropped by release() when the request
    fails afterwards. A reservation that is neither committed nor released
    within `reservation_timeout` lapses and stops counting.

    A subnet seen for the first time is seeded from the store's count of its
    creations in the trailing window. That read happens under the lock, so it
    is on the critical path for first-time subnets only.
    """

    def __init__(
        self,
        store: LinkStoreBase,
        max_per_subnet: int = DEFAULT_MAX_PER_SUBNET,
        cooldown: timedelta = DEFAULT_COOLDOWN,
        window: timedelta = DEFAULT_WINDOW,
        reservation_timeout: timedelta = timedelta(seconds=5),
        logger: Optional[logging.Logger] = None,
    ):
        """Initialize rate limiter.

        Args:
            store: Store used to seed first-seen subnets
            max_per_subnet: Creations allowed per subnet per window
            cooldown: Lockout once the limit is reached
            window: Accounting window length
            reservation_timeout: How long a reservation stays in flight
                before it lapses
            logger: Optional logger
        """
        self.store = store
        self.max_per_subnet = max_per_subnet
        self.cooldown = cooldown
        self.window = window
        self.reservation_timeout = reservation_timeout
        self.logger = logger or get_logger("rate_limit")

        self._states: Dict[str, SubnetRateState] = {}
        self._lock = asyncio.Lock()

    async def check_and_reserve(self, subnet: str, now: datetime) -> RateLimitDecision:
        """Check the subnet's quota and reserve one creation if allowed.

        Raises:
            StoreError: If seeding a first-seen subnet fails
        """
        async with self._lock:
            state = self._states.get(subnet)
            if state is None:
                count = await self.store.count_created_since(subnet, now - self.window)
                state = SubnetRateState(count=count, window_start=now)
                self._states[subnet] = state
                self.logger.debug(f"Seeded rate limit for {subnet} with {count} recent creations")

            self._expire_reservations(subnet, state, now)

            if now - state.window_start >= self.window:
                state.count = 0
                state.window_start = now
                state.cooldown_until = None

            if state.cooldown_until is not None:
                if now < state.cooldown_until:
                    return self._deny(subnet, state, state.cooldown_until - now, state.cooldown_until)
                state.cooldown_until = None

            if state.count >= self.max_per_subnet:
                state.cooldown_until = now + self.cooldown
                self.logger.warning(f"Subnet {subnet} reached its limit, cooldown until {state.cooldown_until}")
                return self._deny(subnet, state, self.cooldown, state.cooldown_until)

            if state.count + state.reserved >= self.max_per_subnet:
                retry_after = state.reservations[0] + self.reservation_timeout - now
                return self._deny(subnet, state, retry_after, now + retry_after)

            decision = RateLimitDecision(
                allowed=True,
                subnet=subnet,
                count=state.count,
                window_start=state.window_start,
                limit=self.max_per_subnet,
                reserved=state.reserved,
            )
            state.reservations.append(now)
            return decision

    async def commit(self, subnet: str, now: datetime) -> None:
        """Charge a reserved creation to the subnet.

        Reaching the limit starts the cooldown at `now`.
        """
        async with self._lock:
            state = self._states.get(subnet)
            if state is None:
                return
            if state.reservations:
                state.reservations.pop(0)
            state.count += 1
            if state.count >= self.max_per_subnet:
                state.cooldown_until = now + self.cooldown
                self.logger.info(f"Subnet {subnet} used its last slot, cooldown until {state.cooldown_until}")

    async def release(self, subnet: str) -> None:
        """Drop a reservation without charging the subnet."""
        async with self._lock:
            state = self._states.get(subnet)
            if state is not None and state.reservations:
                state.reservations.pop(0)

    async def sweep(self, now: datetime) -> int:
        """Forget subnets whose window is older than the window length.

        Lapsed reservations are dropped first; subnets with reservations
        still in flight are kept.

        Returns:
            Number of removed subnet entries
        """
        async with self._lock:
            stale = []
            for subnet, state in self._states.items():
                self._expire_reservations(subnet, state, now)
                if now - state.window_start > self.window and not state.reservations:
                    stale.append(subnet)
            for subnet in stale:
                del self._states[subnet]

        if stale:
            self.logger.info(f"Rate limit cleanup: removed {len(stale)} old subnet entries")
        return len(stale)

    async def snapshot(self, now: datetime) -> RateLimitSnapshot:
        async with self._lock:
            in_cooldown = sum(
                1
                for state in self._states.values()
                if state.cooldown_until is not None and now < state.cooldown_until
            )
            return RateLimitSnapshot(
                tracked_subnets=len(self._states),
                subnets_in_cooldown=in_cooldown,
            )

    async def get_state(self, subnet: str) -> Optional[SubnetRateState]:
        """Copy of a subnet's state, or None if it is not tracked."""
        async with self._lock:
            state = self._states.get(subnet)
            if state is None:
                return None
            return SubnetRateState(
                count=state.count,
                window_start=state.window_start,
                cooldown_until=state.cooldown_until,
                reservations=list(state.reservations),
            )

    def __len__(self) -> int:
        return len(self._states)

    def _expire_reservations(self, subnet: str, state: SubnetRateState, now: datetime) -> None:
        dropped = state.expire_reservations(now, self.reservation_timeout)
        if dropped:
            self.logger.warning(f"Dropped {dropped} lapsed reservation(s) for subnet {subnet}")

    def _deny(
        self,
        subnet: str,
        state: SubnetRateState,
        retry_after: timedelta,
        cooldown_until: Optional[datetime],
    ) -> RateLimitDecision:
        return RateLimitDecision(
            allowed=False,
            subnet=subnet,
            count=state.count,
            window_start=state.window_start,
            limit=self.max_per_subnet,
            retry_after=retry_after,
            cooldown_until=cooldown_until,
            reserved=state.reserved,
        )

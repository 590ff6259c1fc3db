"""Expiry arithmetic and human-readable durations."""

from datetime import datetime, timedelta, timezone


DEFAULT_EXPIRY_DAYS = 365


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def expiry_from(now: datetime, days: int = DEFAULT_EXPIRY_DAYS) -> datetime:
    """Return the expiry timestamp for a link created at `now`."""
    return now + timedelta(days=days)


def format_remaining(duration: timedelta) -> str:
    """Render a duration as its largest applicable unit pair.

    Components are truncated, never rounded up.

    Args:
        duration: Time remaining (may be negative)

    Returns:
        String like "1 days 1 hours", "3 hours 0 minutes", "12 seconds"
    """
    total_seconds = int(duration.total_seconds())
    if total_seconds < 0:
        return "0 seconds"

    days, rest = divmod(total_seconds, 86400)
    hours, rest = divmod(rest, 3600)
    minutes, seconds = divmod(rest, 60)

    if days > 0:
        return f"{days} days {hours} hours"
    if hours > 0:
        return f"{hours} hours {minutes} minutes"
    if minutes > 0:
        return f"{minutes} minutes {seconds} seconds"
    return f"{seconds} seconds"


def format_timestamp(value: datetime) -> str:
    """Format a datetime as RFC 3339 in UTC with second precision."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")

"""Datetime utilities for consistent timezone handling."""
from datetime import datetime, timezone


def utcnow_naive() -> datetime:
    """Current UTC time without tzinfo, matching the naive DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def from_timestamp(timestamp: int | float) -> datetime:
    """
    Convert a Unix timestamp to a timezone-aware UTC datetime.

    Args:
        timestamp: Unix timestamp (seconds since epoch)

    Returns:
        datetime: Timezone-aware datetime in UTC
    """
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    """Drop tzinfo after converting to UTC (DB columns store naive UTC)."""
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_age(delta_seconds: float) -> str:
    """Render an age as 'D days HH hours MM minutes'."""
    total_minutes = max(0, int(delta_seconds // 60))
    days, rest = divmod(total_minutes, 24 * 60)
    hours, minutes = divmod(rest, 60)
    return f"{days} days {hours:02d} hours {minutes:02d} minutes"

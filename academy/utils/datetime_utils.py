"""
Datetime utility functions.
Provides timezone-aware helpers used across services.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def today_utc() -> date:
    """Current calendar date in UTC."""
    return utcnow().date()


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """
    Parse an ISO timestamp stored as text into an aware UTC datetime.

    Naive values are assumed to be UTC. Returns None for empty or invalid input.
    """
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = pytz.UTC.localize(parsed)
    return parsed.astimezone(pytz.UTC)


def epoch_ms(dt: datetime) -> int:
    """Convert a datetime to epoch milliseconds (13 digits)."""
    if dt.tzinfo is None:
        dt = pytz.UTC.localize(dt)
    return int(dt.timestamp() * 1000)


def from_epoch_ms(value: Union[int, float]) -> datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return datetime.fromtimestamp(value / 1000, tz=pytz.UTC)


def months_ago(reference: date, months: int) -> date:
    """
    Return the first day of the month ``months`` before ``reference``'s month.

    Example: months_ago(date(2024, 3, 15), 2) -> date(2024, 1, 1)
    """
    year = reference.year
    month = reference.month - months
    while month <= 0:
        month += 12
        year -= 1
    return date(year, month, 1)


def isoformat_or_none(value: Optional[Union[date, datetime]]) -> Optional[str]:
    return value.isoformat() if value else None


def days_between(start: date, end: date) -> int:
    """Whole days from ``start`` to ``end`` (negative if end is earlier)."""
    return (end - start).days


def add_days(value: date, days: int) -> date:
    return value + timedelta(days=days)

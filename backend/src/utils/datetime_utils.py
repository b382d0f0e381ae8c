"""
Datetime utilities for consistent timezone handling across the application.

Calendar data is stored as naive datetimes that represent wall-clock time in
the provider's timezone (which defaults to the clinic timezone). All
schedule arithmetic happens on those naive values; conversion to a viewer's
timezone is the caller's job.
"""

import logging
from calendar import monthrange
from datetime import datetime, date, time, timedelta
from functools import lru_cache
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import CLINIC_TIMEZONE

logger = logging.getLogger(__name__)


@lru_cache(maxsize=64)
def get_timezone(name: Optional[str] = None) -> ZoneInfo:
    """
    Resolve an IANA timezone name, falling back to the clinic timezone.

    Args:
        name: IANA timezone name (e.g. "America/La_Paz"), or None for the clinic timezone

    Returns:
        ZoneInfo instance

    Raises:
        ValueError: If the timezone name is unknown
    """
    tz_name = name or CLINIC_TIMEZONE
    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        raise ValueError(f"Unknown timezone: {tz_name}") from e


def clinic_now() -> datetime:
    """
    Get the current timezone-aware datetime in the clinic timezone.

    Returns:
        Current datetime with the clinic timezone attached
    """
    return datetime.now(get_timezone())


def to_local_naive(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Convert a datetime to naive wall-clock time in the given timezone.

    Naive inputs are assumed to already be local to ``tz_name`` and are
    returned unchanged.
    """
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(get_timezone(tz_name)).replace(tzinfo=None)


def parse_local_datetime(value: str | datetime, tz_name: Optional[str] = None) -> datetime:
    """
    Parse a datetime string (or datetime) into naive local time for ``tz_name``.

    Accepts "YYYY-MM-DD HH:MM[:SS]" and ISO 8601 strings with or without an
    offset ("Z" is treated as UTC). Offset-aware values are converted to the
    target timezone; naive values are taken as already local.

    Raises:
        ValueError: If the string cannot be parsed
    """
    if isinstance(value, datetime):
        return to_local_naive(value, tz_name)
    try:
        dt = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError as e:
        raise ValueError(f"Invalid datetime string format: {value}") from e
    return to_local_naive(dt, tz_name)


def parse_date_string(date_str: str) -> date:
    """
    Parse a date string in YYYY-MM-DD or YYYY/MM/DD format.

    Accepts both formats:
    - YYYY-MM-DD (e.g., "2022-01-01", "2022-1-1")
    - YYYY/MM/DD (e.g., "2022/01/01", "2022/1/1")

    Automatically normalizes single-digit months/days.

    Args:
        date_str: Date string in YYYY-MM-DD or YYYY/MM/DD format

    Returns:
        Date object

    Raises:
        ValueError: If date string cannot be parsed
    """
    if not date_str or not date_str.strip():
        raise ValueError("Date string cannot be empty")

    date_str = date_str.strip()

    # Normalize separators and pad single-digit months/days
    if '/' in date_str:
        parts = date_str.split('/')
    elif '-' in date_str:
        parts = date_str.split('-')
    else:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    if len(parts) != 3:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}")

    year = parts[0].zfill(4)
    month = parts[1].zfill(2)
    day = parts[2].zfill(2)

    normalized = f"{year}-{month}-{day}"

    try:
        return datetime.strptime(normalized, '%Y-%m-%d').date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD or YYYY/MM/DD): {date_str}") from e


def parse_time_string(time_str: str) -> time:
    """Parse time string in HH:MM format to time object. Raises ValueError if malformed."""
    try:
        hour, minute = map(int, time_str.strip().split(':'))
        return time(hour, minute)
    except (ValueError, AttributeError) as e:
        raise ValueError(f"Invalid time format (expected HH:MM): {time_str}") from e


def format_time(value: time | datetime) -> str:
    """Format a time (or the time part of a datetime) as HH:MM."""
    return value.strftime('%H:%M')


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the naive ``[00:00, next day 00:00)`` window for a date."""
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def month_bounds(anchor: date) -> Tuple[date, date]:
    """Return the first and last date of the anchor's calendar month."""
    last_day = monthrange(anchor.year, anchor.month)[1]
    return anchor.replace(day=1), anchor.replace(day=last_day)


def is_same_calendar_day(value: datetime | date, reference: date, ignore_year: bool = False) -> bool:
    """
    Component-wise same-day comparison.

    Args:
        value: Datetime (or date) being checked
        reference: Reference date
        ignore_year: Compare only month and day (legacy reservation check behaviour)
    """
    if not ignore_year and value.year != reference.year:
        return False
    return value.month == reference.month and value.day == reference.day

"""
Week utility functions for civil-date handling.

This module provides functions for parsing user-supplied dates, formatting
dates the way the backend expects them, and computing Monday-to-Sunday
week bounds. All dates are civil dates (datetime.date) in the timezone the
caller resolved; nothing here assumes UTC or the system timezone.
"""

from datetime import date, datetime, timedelta, tzinfo
from typing import Optional, Tuple
import re

from .errors import VMSHoursError


class DateParseError(VMSHoursError, ValueError):
    """Exception raised when a date argument cannot be parsed."""
    pass


_ISO_DATE_RE = re.compile(r'^[0-9]{4}-[0-9]{2}-[0-9]{2}$')


def parse_date(value: str, tz: Optional[tzinfo] = None) -> date:
    """
    Parse a date argument into a civil date.

    Accepted formats:
    - "YYYY-MM-DD" → that date
    - "today" → the current date in the given timezone

    Args:
        value: Date argument
        tz: Timezone used to resolve "today" (system local if None)

    Returns:
        Parsed date

    Raises:
        DateParseError: If the value is not a valid date

    Examples:
        >>> parse_date("2026-02-18")
        datetime.date(2026, 2, 18)
    """
    text = (value or "").strip()
    if text.lower() == 'today':
        return datetime.now(tz).date()

    if not _ISO_DATE_RE.match(text):
        raise DateParseError(f"invalid date '{value}', expected YYYY-MM-DD")

    try:
        return datetime.strptime(text, '%Y-%m-%d').date()
    except ValueError as e:
        raise DateParseError(f"invalid date '{value}', expected YYYY-MM-DD: {e}")


def format_mdy(d: date) -> str:
    """Format a date as MM/DD/YYYY, the backend's day key."""
    return d.strftime('%m/%d/%Y')


def week_start_monday(d: date) -> date:
    """
    Get the Monday on or before the given date.

    Uses ISO weekdays (Monday=1 ... Sunday=7), so a Sunday belongs to the
    week that started six days earlier.

    Examples:
        >>> week_start_monday(date(2026, 2, 18))
        datetime.date(2026, 2, 16)
        >>> week_start_monday(date(2026, 2, 22))
        datetime.date(2026, 2, 16)
    """
    return d - timedelta(days=d.isoweekday() - 1)


def week_end_sunday(d: date) -> date:
    """Get the Sunday ending the week that contains the given date."""
    return week_start_monday(d) + timedelta(days=6)


def week_bounds(d: date) -> Tuple[date, date]:
    """
    Get the (Monday, Sunday) bounds of the week containing a date.

    Returns:
        Tuple of (week_start, week_end)
    """
    start = week_start_monday(d)
    return (start, start + timedelta(days=6))

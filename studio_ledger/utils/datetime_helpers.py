"""
Date and time utilities for the Studio Ledger.

This module provides helper functions for consistent datetime handling.
"""

import calendar
from datetime import date, datetime, timezone
from typing import Optional, Tuple


def utc_now_iso() -> str:
    """
    Return current UTC time as ISO8601 with Z suffix.

    Returns:
        Current UTC time in ISO8601 format with 'Z' suffix.
        Example: "2025-10-29T14:30:00.123456Z"
    """
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def get_date_string(dt: Optional[datetime] = None) -> str:
    """
    Get date string in YYYY-MM-DD format.

    Args:
        dt: Datetime object. If None, uses current UTC time.

    Returns:
        Date string in YYYY-MM-DD format.
    """
    if dt is None:
        dt = datetime.now(timezone.utc)
    elif dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt.strftime("%Y-%m-%d")


def month_bounds(year: int, month: int) -> Tuple[str, str]:
    """
    Return the first and last calendar day of a month as YYYY-MM-DD strings.

    Raises:
        ValueError: If month is outside 1..12.
    """
    if month < 1 or month > 12:
        raise ValueError(f"Invalid month: {month}")
    last_day = calendar.monthrange(year, month)[1]
    return (
        date(year, month, 1).isoformat(),
        date(year, month, last_day).isoformat(),
    )

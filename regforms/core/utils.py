"""
Shared value helpers for the registration form engine.
"""

import math
from datetime import date, datetime, time
from typing import Any

from dateutil import parser as dateutil_parser


def parse_date(value: str) -> date | None:
    """Parse a date string into a date object.

    Supports ISO 8601 formats (YYYY-MM-DD) and datetime strings.
    Returns None if the value cannot be parsed.
    """
    if not value or not isinstance(value, str):
        return None

    try:
        parsed = dateutil_parser.parse(value)
        # If the input is a datetime, extract just the date part
        if isinstance(parsed, datetime):
            return parsed.date()
        return parsed
    except (ValueError, TypeError, OverflowError):
        return None


def parse_time(value: str) -> time | None:
    """Parse a time-of-day string ("14:30", "2:30 PM") into a time object."""
    if not value or not isinstance(value, str):
        return None

    try:
        return time.fromisoformat(value.strip())
    except ValueError:
        pass

    try:
        return dateutil_parser.parse(value).time()
    except (ValueError, TypeError, OverflowError):
        return None


def is_empty_value(value: Any) -> bool:
    """A value is empty when it is missing, a blank string or an empty list."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    if isinstance(value, (list, tuple, set)):
        return len(value) == 0
    return False


def to_number(value: Any) -> float | None:
    """Coerce an int, float or numeric string to a float.

    Booleans, NaN and infinities are not numbers here.
    """
    if isinstance(value, bool):
        return None
    try:
        if isinstance(value, (int, float)):
            number = float(value)
        elif isinstance(value, str):
            number = float(value.strip())
        else:
            return None
    except (ValueError, OverflowError):
        return None
    return number if math.isfinite(number) else None

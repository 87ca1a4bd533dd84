"""
Helper functions for cleaning request payloads and handling Drata date formats
"""

import math
from datetime import datetime, timezone
from typing import Dict, Any, Union

MILLISECONDS_PER_DAY = 1000 * 60 * 60 * 24


def clean_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    """
    Remove None and empty string values from a mapping

    Zero and False are meaningful filter values and are kept.

    Args:
        obj: Mapping of field names to values

    Returns:
        New dictionary without the empty entries
    """
    return {key: value for key, value in obj.items() if value is not None and value != ''}


def parse_date(value: Union[str, int, float, datetime]) -> datetime:
    """
    Parse an ISO string, epoch milliseconds or datetime into an aware datetime

    Naive values are treated as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        parsed = datetime.fromisoformat(value.strip())

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def to_iso_string(value: datetime) -> str:
    """Render a datetime as a UTC ISO-8601 string with millisecond precision"""
    utc_value = parse_date(value).astimezone(timezone.utc)
    return utc_value.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def to_iso_date(date_string: str) -> str:
    """
    Convert a date string to a full ISO-8601 timestamp

    Args:
        date_string: Date or datetime string, may be empty

    Returns:
        ISO timestamp in UTC, or an empty string for empty input
    """
    if not date_string:
        return ''
    return to_iso_string(parse_date(date_string))


def format_date_for_api(date: Union[str, datetime]) -> str:
    """
    Format a date as YYYY-MM-DD in UTC for Drata date fields

    Args:
        date: datetime or ISO date string (offsets are normalised to UTC)

    Returns:
        10-character date string
    """
    return parse_date(date).astimezone(timezone.utc).strftime('%Y-%m-%d')


def days_until(expiration_date: Union[str, datetime], now: datetime) -> int:
    """
    Whole days remaining until expiration, counting any partial day as one

    Args:
        expiration_date: Expiration timestamp from the API
        now: Reference time for the calculation

    Returns:
        Ceiling of the remaining time in days (negative once expired)
    """
    delta = parse_date(expiration_date) - parse_date(now)
    delta_ms = delta.days * MILLISECONDS_PER_DAY + delta.seconds * 1000 + delta.microseconds // 1000
    return math.ceil(delta_ms / MILLISECONDS_PER_DAY)

"""Parsing of wire dates and times (naive local, ISO-8601)."""
from datetime import date, datetime, time
from typing import Optional, Union

from tourney.exceptions import InvalidError


def parse_datetime(value: Union[str, datetime, None], field: str = "scheduled_time") -> datetime:
    if isinstance(value, datetime):
        return value.replace(tzinfo=None) if value.tzinfo else value
    if not value or not isinstance(value, str):
        raise InvalidError(f"{field} is required", details={"field": field})
    raw = value.strip()
    if raw.endswith("Z"):
        raw = raw[:-1]
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        raise InvalidError(f"{field} is not a valid ISO-8601 date-time: {value!r}", details={"field": field})
    return parsed.replace(tzinfo=None) if parsed.tzinfo else parsed


def parse_date(value: Union[str, date, None], field: str = "date") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise InvalidError(f"{field} is required", details={"field": field})
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        raise InvalidError(f"{field} is not a valid ISO-8601 date: {value!r}", details={"field": field})


def parse_clock(value: Union[str, time, None], field: str = "time", default: Optional[str] = None) -> time:
    """Parse "HH:MM" (or "HH:MM:SS") into a time"""
    if isinstance(value, time):
        return value
    if not value:
        if default is None:
            raise InvalidError(f"{field} is required", details={"field": field})
        value = default
    try:
        return time.fromisoformat(str(value).strip())
    except ValueError:
        raise InvalidError(f"{field} must be HH:MM, got {value!r}", details={"field": field})

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any

from dateutil import parser

_US_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_datetime_utc(value: Any) -> datetime | None:
    if value is None:
        return None

    if isinstance(value, datetime):
        return to_utc(value)

    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
        try:
            return to_utc(parser.parse(value))
        except (ValueError, TypeError, OverflowError):
            return None

    return None


def parse_date(value: Any) -> date | None:
    """Parse a display or ISO date string into a calendar date.

    ``MM/DD/YYYY`` is tried explicitly first since that is the federal API's
    format; anything else goes through dateutil.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    value = value.strip()
    if not value:
        return None

    match = _US_DATE.match(value)
    if match:
        month, day, year = (int(part) for part in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            return None

    try:
        return parser.parse(value).date()
    except (ValueError, TypeError, OverflowError):
        return None


def format_datetime(value: datetime | None) -> str | None:
    if value is None:
        return None
    return to_utc(value).isoformat()


def format_date(value: date | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()

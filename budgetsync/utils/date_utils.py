"""Date manipulation utilities"""

import calendar
import re
from datetime import date, datetime
from typing import List, Optional, Tuple

MONTH_NAMES: List[str] = [
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
]

MONTH_ABBREVIATIONS: List[str] = [name[:3] for name in MONTH_NAMES]


def month_number(month_name: str) -> Optional[int]:
    """Return 1-12 for a full English month name, None if unknown"""
    try:
        return MONTH_NAMES.index(month_name) + 1
    except ValueError:
        return None


def month_name(month: int) -> str:
    """Full English name for a 1-based month number"""
    return MONTH_NAMES[month - 1]


def days_in_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(year: int, month: int, offset: int) -> Tuple[int, int]:
    """Shift a (year, month) pair by offset months, handling year boundaries"""
    index = year * 12 + (month - 1) + offset
    return index // 12, index % 12 + 1


def clamped_date(year: int, month: int, day: int) -> date:
    """Build a date, clamping day to the last valid day of the month (Feb 31 -> Feb 28/29)"""
    return date(year, month, min(day, days_in_month(year, month)))


def last_day_of_month(year: int, month: int) -> date:
    return date(year, month, days_in_month(year, month))


def normalize_year(year: int | str) -> Optional[int]:
    """Accept 2026 or "2026"; anything non-numeric yields None"""
    if isinstance(year, bool):
        return None
    if isinstance(year, int):
        return year
    if isinstance(year, str) and re.fullmatch(r"\s*\d{1,4}\s*", year):
        return int(year)
    return None


def parse_timestamp(value: str | datetime | date) -> datetime:
    """
    Parse an ISO-8601 timestamp as sent by the hosted store.

    Accepts date-only strings ("2026-01-10") and a trailing "Z" for UTC.
    The offset is dropped: timestamps are kept as naive local times.
    Raises ValueError on malformed input.
    """
    if isinstance(value, datetime):
        return value.replace(tzinfo=None)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str):
        raise ValueError(f"Not a timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    return datetime.fromisoformat(text).replace(tzinfo=None)


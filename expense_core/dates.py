"""Calendar helpers for expense dates and monthly windows."""

from __future__ import annotations

import calendar
from datetime import date, datetime
from typing import Optional, Tuple, Union

from .exceptions import ValidationError

DateLike = Union[date, datetime]


def checked_month(year: object, month: object) -> Tuple[int, int]:
    """Coerce ``(year, month)`` to ints, rejecting anything outside the calendar."""
    try:
        year_value, month_value = int(year), int(month)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"year and month must be integers, got {year!r} and {month!r}") from exc
    if not 1 <= month_value <= 12:
        raise ValidationError(f"month must be between 1 and 12, got {month}")
    if not 1 <= year_value <= 9999:
        raise ValidationError(f"year must be between 1 and 9999, got {year}")
    return year_value, month_value


def format_date(value: Optional[DateLike]) -> str:
    """Render a date as YYYY-MM-DD; empty string for None."""
    if value is None:
        return ""
    return value.strftime("%Y-%m-%d")


def compact_date(value: DateLike) -> str:
    """YYYYMMDD form used in export file names."""
    return format_date(value).replace("-", "")


def today_string() -> str:
    return format_date(date.today())


def days_in_month(year: int, month: int) -> int:
    year, month = checked_month(year, month)
    return calendar.monthrange(year, month)[1]


def month_start(year: int, month: int) -> str:
    year, month = checked_month(year, month)
    return f"{year:04d}-{month:02d}-01"


def month_end(year: int, month: int) -> str:
    """Last calendar day of the month, e.g. 2024-02-29 or 2023-04-30."""
    year, month = checked_month(year, month)
    return f"{year:04d}-{month:02d}-{days_in_month(year, month):02d}"


def month_key(year: int, month: int) -> str:
    year, month = checked_month(year, month)
    return f"{year:04d}-{month:02d}"


def current_year_month() -> Tuple[int, int]:
    today = date.today()
    return today.year, today.month


def shift_month(year: int, month: int, delta: int) -> Tuple[int, int]:
    """Move ``delta`` months forward (or backward when negative)."""
    year, month = checked_month(year, month)
    index = year * 12 + (month - 1) + delta
    return index // 12, index % 12 + 1

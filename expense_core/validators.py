"""Validation helpers shared by the expense services, API and CLI."""

from __future__ import annotations

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from pathlib import Path
from typing import Optional, Tuple

from .exceptions import ValidationError
from .models import to_money

DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")
MONTH_PATTERN = re.compile(r"^(\d{4})-(\d{2})$")


def _quantize_two_decimals(amount: Decimal, field: str = "amount") -> Decimal:
    """Round the amount to two decimal places using HALF_UP rounding."""
    try:
        return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        # More digits than the decimal context can hold at cent precision.
        raise ValidationError(f"{field} is too large") from exc


def _parse_decimal(raw: object, field: str) -> Decimal:
    if isinstance(raw, bool) or raw is None:
        raise ValidationError(f"{field} must be a numeric value")
    try:
        amount = Decimal(str(raw).strip())
    except (InvalidOperation, TypeError) as exc:
        raise ValidationError(f"{field} must be a numeric value") from exc
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount


def parse_amount(raw: object, field: str, *, allow_zero: bool = False) -> Decimal:
    """Convert raw input to a positive Decimal with exactly two fraction digits."""
    amount = _parse_decimal(raw, field)
    if amount < 0 or (amount == 0 and not allow_zero):
        raise ValidationError(f"{field} must be greater than zero")

    return _quantize_two_decimals(amount, field)


def parse_stored_amount(raw: object, field: str = "amount") -> Decimal:
    """Accept any finite number the record store could have written.

    Unlike :func:`parse_amount` zero, negative and very large values pass;
    the result is rounded to cents the same way stored amounts are read.
    """
    return to_money(_parse_decimal(raw, field))


def validate_required_str(value: object, field: str, max_length: int) -> str:
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if not trimmed:
        raise ValidationError(f"{field} cannot be empty")
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_optional_str(value: object, field: str, max_length: int) -> str:
    """Like validate_required_str but None and blank collapse to ''."""
    if value is None:
        return ""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    trimmed = value.strip()
    if len(trimmed) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return trimmed


def validate_date(value: object, field: str = "date") -> str:
    """Accept a date/datetime or a YYYY-MM-DD string naming a real calendar day."""
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not DATE_PATTERN.fullmatch(value.strip()):
        raise ValidationError(f"{field} must use the YYYY-MM-DD format")
    try:
        return date.fromisoformat(value.strip()).isoformat()
    except ValueError as exc:
        raise ValidationError(f"{field} is not a valid calendar date") from exc


def validate_optional_date(value: object, field: str = "date") -> Optional[str]:
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    return validate_date(value, field)


def parse_year_month(value: object, field: str = "month") -> Tuple[int, int]:
    """Split a YYYY-MM string into ``(year, month)``."""
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string in YYYY-MM format")
    match = MONTH_PATTERN.fullmatch(value.strip())
    if not match:
        raise ValidationError(f"{field} must use the YYYY-MM format")
    year, month = int(match.group(1)), int(match.group(2))
    if not 1 <= month <= 12:
        raise ValidationError(f"{field} must name a month between 01 and 12")
    return year, month


def validate_pagination(limit: object, offset: object) -> Tuple[int, int]:
    try:
        limit_value = int(limit)  # type: ignore[arg-type]
        offset_value = int(offset)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValidationError("limit and offset must be integers") from exc
    if limit_value < 0 or offset_value < 0:
        raise ValidationError("limit and offset must not be negative")
    return limit_value, offset_value


def validate_relative_path(raw: object, root: Path, field: str = "path") -> Path:
    """Resolve ``raw`` against ``root``, refusing anything that escapes it."""
    if not isinstance(raw, str):
        raise ValidationError(f"{field} must be a string path")
    candidate = Path(raw.strip())
    if not candidate.parts:
        raise ValidationError(f"{field} cannot be empty")
    if candidate.is_absolute():
        raise ValidationError(f"{field} must be a relative path")
    try:
        resolved = (root / candidate).resolve()
    except OSError as exc:
        raise ValidationError(f"{field} points to an invalid path") from exc
    # Symlinks and ".." segments are resolved before the containment check.
    if root.resolve() not in resolved.parents:
        raise ValidationError(f"{field} must be located within {root}")
    return resolved

"""Data models for the expense tracker domain."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP, localcontext
from typing import Any, Dict, Mapping

__all__ = [
    "Budget",
    "Category",
    "Expense",
    "ImportResult",
    "MonthlyStat",
    "PeriodSummary",
    "isoformat_utc",
    "parse_datetime",
    "to_money",
]

CENT = Decimal("0.01")


def isoformat_utc(dt: datetime) -> str:
    """Return an ISO 8601 string with trailing Z for UTC-aware datetimes."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)
    iso = dt.isoformat(timespec="seconds")
    # datetime.isoformat renders +00:00 for UTC; replace with the shorter Z form.
    return iso.replace("+00:00", "Z")


def parse_datetime(value: str) -> datetime:
    """Parse ISO 8601 datetime strings with optional trailing Z into UTC-aware datetime."""
    value = value.strip()
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        # Treat naive datetimes as UTC to avoid accidental timezone drift.
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def to_money(value: Any) -> Decimal:
    """Convert a stored REAL (or any numeric) into a two-decimal Decimal."""
    if value is None:
        return Decimal("0.00")
    # str() first so 0.1 stays 0.1 instead of its binary expansion.
    amount = Decimal(str(value))
    if not amount.is_finite():
        return amount
    with localcontext() as ctx:
        # Room for every integer digit plus the two cents.
        ctx.prec = max(ctx.prec, amount.adjusted() + 3)
        return amount.quantize(CENT, rounding=ROUND_HALF_UP)


def _as_utc(value: Any) -> datetime:
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    return parse_datetime(str(value))


@dataclass(frozen=True)
class Category:
    id: int
    name: str
    icon: str = ""
    color: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "name": self.name, "icon": self.icon, "color": self.color}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Category":
        return cls(
            id=int(row["id"]),
            name=row["name"],
            icon=row["icon"] or "",
            color=row["color"] or "",
        )


@dataclass(frozen=True)
class Expense:
    id: int
    amount: Decimal
    category: str
    date: str
    created_at: datetime
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the expense to JSON-friendly natives."""
        return {
            "id": self.id,
            "amount": f"{self.amount:.2f}",
            "category": self.category,
            "description": self.description,
            "date": self.date,
            "created_at": isoformat_utc(self.created_at),
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Expense":
        """Hydrate an Expense from a database row mapping."""
        return cls(
            id=int(row["id"]),
            amount=to_money(row["amount"]),
            category=row["category"],
            description=row["description"] or "",
            date=row["date"],
            created_at=_as_utc(row["created_at"]),
        )


@dataclass(frozen=True)
class Budget:
    id: int
    category: str
    amount: Decimal
    month: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category,
            "amount": f"{self.amount:.2f}",
            "month": self.month,
        }

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Budget":
        return cls(
            id=int(row["id"]),
            category=row["category"],
            amount=to_money(row["amount"]),
            month=row["month"],
        )


@dataclass(frozen=True)
class MonthlyStat:
    """Per-category total and count for one calendar month."""

    category: str
    total: Decimal
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"category": self.category, "total": f"{self.total:.2f}", "count": self.count}

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "MonthlyStat":
        return cls(category=row["category"], total=to_money(row["total"]), count=int(row["count"]))


@dataclass(frozen=True)
class PeriodSummary:
    total_amount: Decimal
    total_count: int

    def to_dict(self) -> Dict[str, Any]:
        return {"totalAmount": f"{self.total_amount:.2f}", "totalCount": self.total_count}


@dataclass(frozen=True)
class ImportResult:
    success: bool
    import_count: int
    total_count: int

    @property
    def skipped_count(self) -> int:
        return self.total_count - self.import_count

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "importCount": self.import_count,
            "totalCount": self.total_count,
        }

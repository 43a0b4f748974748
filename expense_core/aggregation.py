"""Presentation-ready figures derived from monthly category statistics."""

from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Sequence

from .exceptions import ValidationError
from .models import MonthlyStat, PeriodSummary

ZERO = Decimal("0")
ONE_PLACE = Decimal("0.1")
CENT = Decimal("0.01")


def summarize(stats: Iterable[MonthlyStat]) -> PeriodSummary:
    """Sum totals and counts across every category row of a period."""
    total_amount = Decimal("0.00")
    total_count = 0
    for stat in stats:
        total_amount += stat.total
        total_count += stat.count
    return PeriodSummary(total_amount=total_amount, total_count=total_count)


def percentage_of(category_total: Any, grand_total: Any) -> Decimal:
    """Share of ``grand_total`` in percent, one decimal place; 0 for an empty period."""
    grand = Decimal(str(grand_total))
    if grand == 0:
        return ZERO
    share = Decimal(str(category_total)) / grand * 100
    return share.quantize(ONE_PLACE, rounding=ROUND_HALF_UP)


def daily_average(total_amount: Any, days_in_month: int) -> Decimal:
    if not 28 <= days_in_month <= 31:
        raise ValidationError(f"days_in_month must be between 28 and 31, got {days_in_month}")
    average = Decimal(str(total_amount)) / days_in_month
    return average.quantize(CENT, rounding=ROUND_HALF_UP)


def category_breakdown(stats: Sequence[MonthlyStat]) -> List[Dict[str, Any]]:
    """Each category row with its share of the period total, in store order."""
    grand_total = summarize(stats).total_amount
    return [
        {
            **stat.to_dict(),
            "percentage": f"{percentage_of(stat.total, grand_total):.1f}",
        }
        for stat in stats
    ]


def budget_usage(spent: Any, budget: Any) -> Decimal:
    """Percentage of a monthly budget already consumed."""
    return percentage_of(spent, budget)

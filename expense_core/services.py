"""Framework-agnostic business services for the expense tracker."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from .aggregation import budget_usage, category_breakdown, daily_average, summarize
from .dates import days_in_month, month_key
from .exceptions import ValidationError
from .models import Budget, Expense
from .storage import SettingsStore
from .store import RecordStore
from .validators import (
    parse_amount,
    parse_year_month,
    validate_optional_date,
    validate_optional_str,
    validate_pagination,
    validate_required_str,
)

RECENT_LIMIT = 5


class ExpenseService:
    """Validates expense input before it reaches the record store."""

    def __init__(self, store: RecordStore, settings: Optional[SettingsStore] = None) -> None:
        self._store = store
        self._settings = settings

    # Public API -----------------------------------------------------------
    def add(self, payload: Dict[str, object]) -> Expense:
        data = self._validate_payload(payload)
        expense_id = self._store.add_expense(**data)
        if self._settings is not None:
            self._settings.remember_category(data["category"])
        return self._store.get_expense(expense_id)

    def get(self, expense_id: int) -> Expense:
        """Return an expense or raise if it does not exist."""
        return self._store.get_expense(expense_id)

    def list(self, limit: object = 50, offset: object = 0) -> List[Expense]:
        limit_value, offset_value = validate_pagination(limit, offset)
        return self._store.get_expenses(limit_value, offset_value)

    def recent(self, limit: int = RECENT_LIMIT) -> List[Expense]:
        return self._store.get_expenses(limit, 0)

    def delete(self, expense_id: int) -> bool:
        return self._store.delete_expense(expense_id)

    # Internal helpers -----------------------------------------------------
    def _validate_payload(self, payload: Dict[str, object]) -> Dict[str, Any]:
        return {
            "amount": parse_amount(payload.get("amount"), "amount"),
            "category": validate_required_str(payload.get("category"), "category", 50),
            "description": validate_optional_str(payload.get("description"), "description", 200),
            # The expense date defaults to today, as the entry form does.
            "date": validate_optional_date(payload.get("date")) or date.today().isoformat(),
        }


class StatisticsService:
    """Builds the monthly overview shown on the statistics screen."""

    def __init__(self, store: RecordStore, settings: Optional[SettingsStore] = None) -> None:
        self._store = store
        self._settings = settings

    def monthly_overview(self, year: int, month: int) -> Dict[str, Any]:
        stats = self._store.get_monthly_stats(year, month)
        summary = summarize(stats)
        average = daily_average(summary.total_amount, days_in_month(year, month))
        budget = self._monthly_budget()
        return {
            "year": int(year),
            "month": int(month),
            "stats": [stat.to_dict() for stat in stats],
            "summary": summary.to_dict(),
            "categories": category_breakdown(stats),
            "dailyAverage": f"{average:.2f}",
            "monthlyBudget": f"{budget:.2f}",
            "budgetUsage": f"{budget_usage(summary.total_amount, budget):.1f}",
            "budgets": [item.to_dict() for item in self._store.get_budgets(month_key(year, month))],
        }

    def set_budget(self, payload: Dict[str, object], month: str) -> Budget:
        parse_year_month(month)
        category = validate_required_str(payload.get("category"), "category", 50)
        amount = parse_amount(payload.get("amount"), "amount", allow_zero=True)
        return self._store.set_budget(category, amount, month)

    def budgets(self, month: str) -> List[Budget]:
        parse_year_month(month)
        return self._store.get_budgets(month)

    def _monthly_budget(self) -> Decimal:
        if self._settings is None:
            return Decimal("0.00")
        raw = self._settings.get_user_settings().get("monthlyBudget", 0)
        try:
            return parse_amount(raw, "monthlyBudget", allow_zero=True)
        except ValidationError:
            return Decimal("0.00")

"""SQLite-backed record store for expenses, categories and budgets."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Union

from sqlalchemy import (
    Column,
    DateTime,
    Float,
    Integer,
    MetaData,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    delete,
    func,
    select,
)
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from .dates import month_end, month_start
from .exceptions import ReadError, RecordNotFoundError, StorageUnavailable, WriteError
from .models import Budget, Category, Expense, MonthlyStat

logger = logging.getLogger(__name__)

MEMORY = ":memory:"


def _utcnow() -> datetime:
    # SQLite has no timezone support; rows hold naive UTC.
    return datetime.now(timezone.utc).replace(tzinfo=None)


metadata = MetaData()

expenses_table = Table(
    "expenses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("amount", Float, nullable=False),
    Column("category", Text, nullable=False),
    Column("description", Text),
    Column("date", Text, nullable=False),
    Column("created_at", DateTime, default=_utcnow),
    sqlite_autoincrement=True,
)

categories_table = Table(
    "categories",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", Text, nullable=False, unique=True),
    Column("icon", Text),
    Column("color", Text),
    sqlite_autoincrement=True,
)

budgets_table = Table(
    "budgets",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("category", Text, nullable=False),
    Column("amount", Float, nullable=False),
    Column("month", Text, nullable=False),
    UniqueConstraint("category", "month"),
    sqlite_autoincrement=True,
)

DEFAULT_CATEGORIES = (
    {"name": "餐饮", "icon": "restaurant", "color": "#FF5722"},
    {"name": "交通", "icon": "directions-car", "color": "#2196F3"},
    {"name": "购物", "icon": "shopping-cart", "color": "#9C27B0"},
    {"name": "娱乐", "icon": "movie", "color": "#FF9800"},
    {"name": "医疗", "icon": "local-hospital", "color": "#F44336"},
    {"name": "教育", "icon": "school", "color": "#4CAF50"},
    {"name": "住房", "icon": "home", "color": "#795548"},
    {"name": "其他", "icon": "more-horiz", "color": "#607D8B"},
)


def _to_real(value: Any) -> Any:
    # sqlite3 cannot bind Decimal; everything else is passed through untouched.
    if isinstance(value, Decimal):
        return float(value)
    return value


class RecordStore:
    """Owns the expense database: schema, seeding, CRUD and monthly aggregates.

    The store performs no validation of its own; services in front of it
    are expected to hand over already-checked values. Each public operation
    runs in its own short transaction.
    """

    def __init__(self, db_path: Union[Path, str]) -> None:
        self._db_path = db_path if str(db_path) == MEMORY else Path(db_path)
        self._engine: Optional[Engine] = None

    # Lifecycle ------------------------------------------------------------
    def initialize(self) -> "RecordStore":
        """Open (or create) the database, ensure tables exist and seed categories."""
        engine = self._engine
        try:
            if engine is None:
                engine = self._create_engine()
            metadata.create_all(engine)
            with engine.begin() as conn:
                self._upsert_categories(conn, DEFAULT_CATEGORIES)
        except (OSError, SQLAlchemyError) as exc:
            if engine is not None and self._engine is None:
                engine.dispose()
            raise StorageUnavailable(f"Unable to open database at {self._db_path}") from exc
        self._engine = engine
        logger.info("Expense database ready at %s", self._db_path)
        return self

    def close(self) -> None:
        if self._engine is None:
            return
        self._engine.dispose()
        self._engine = None
        logger.debug("Closed expense database at %s", self._db_path)

    @property
    def is_open(self) -> bool:
        return self._engine is not None

    @property
    def db_path(self) -> Union[Path, str]:
        return self._db_path

    def __enter__(self) -> "RecordStore":
        return self.initialize()

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    # Expenses -------------------------------------------------------------
    def add_expense(self, amount: Any, category: str, description: Optional[str], date: str) -> int:
        """Insert one expense and return its newly assigned id."""
        engine = self._require_engine()
        stmt = expenses_table.insert().values(
            amount=_to_real(amount),
            category=category,
            description=description,
            date=date,
        )
        try:
            with engine.begin() as conn:
                result = conn.execute(stmt)
        except SQLAlchemyError as exc:
            raise WriteError("Unable to add expense") from exc
        expense_id = int(result.inserted_primary_key[0])
        logger.debug("Added expense %s (%s %s on %s)", expense_id, category, amount, date)
        return expense_id

    def get_expenses(self, limit: int = 50, offset: int = 0) -> List[Expense]:
        """Most recent expense date first; same-date rows newest-entered first."""
        stmt = (
            select(expenses_table)
            .order_by(
                expenses_table.c.date.desc(),
                expenses_table.c.created_at.desc(),
                expenses_table.c.id.desc(),
            )
            .limit(limit)
            .offset(offset)
        )
        rows = self._fetch(stmt, "Unable to load expenses")
        return [Expense.from_row(row) for row in rows]

    def get_expense(self, expense_id: int) -> Expense:
        stmt = select(expenses_table).where(expenses_table.c.id == expense_id)
        rows = self._fetch(stmt, f"Unable to load expense {expense_id}")
        if not rows:
            raise RecordNotFoundError(f"Expense {expense_id} not found")
        return Expense.from_row(rows[0])

    def count_expenses(self) -> int:
        stmt = select(func.count().label("count")).select_from(expenses_table)
        rows = self._fetch(stmt, "Unable to count expenses")
        return int(rows[0]["count"])

    def delete_expense(self, expense_id: int) -> bool:
        """Delete by id; deleting a missing id is a successful no-op."""
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                result = conn.execute(delete(expenses_table).where(expenses_table.c.id == expense_id))
        except SQLAlchemyError as exc:
            raise WriteError(f"Unable to delete expense {expense_id}") from exc
        logger.debug("Deleted expense %s (%d row(s))", expense_id, result.rowcount)
        return True

    # Categories -----------------------------------------------------------
    def get_categories(self) -> List[Category]:
        stmt = select(categories_table).order_by(categories_table.c.name)
        rows = self._fetch(stmt, "Unable to load categories")
        return [Category.from_row(row) for row in rows]

    def ensure_categories(self, categories: Iterable[Mapping[str, Any]]) -> None:
        """Insert categories by name, leaving existing names untouched."""
        engine = self._require_engine()
        try:
            with engine.begin() as conn:
                self._upsert_categories(conn, categories)
        except SQLAlchemyError as exc:
            raise WriteError("Unable to store categories") from exc

    # Aggregates -----------------------------------------------------------
    def get_monthly_stats(self, year: int, month: int) -> List[MonthlyStat]:
        """Per-category totals for one calendar month, biggest total first."""
        start, end = month_start(year, month), month_end(year, month)
        total = func.sum(expenses_table.c.amount).label("total")
        stmt = (
            select(expenses_table.c.category, total, func.count().label("count"))
            .where(expenses_table.c.date.between(start, end))
            .group_by(expenses_table.c.category)
            .order_by(total.desc(), expenses_table.c.category)
        )
        rows = self._fetch(stmt, f"Unable to load statistics for {start[:7]}")
        return [MonthlyStat.from_row(row) for row in rows]

    # Budgets --------------------------------------------------------------
    def set_budget(self, category: str, amount: Any, month: str) -> Budget:
        """Create or replace the budget for ``category`` in ``month`` (YYYY-MM)."""
        engine = self._require_engine()
        stmt = sqlite_insert(budgets_table).values(
            category=category, amount=_to_real(amount), month=month
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["category", "month"],
            set_={"amount": stmt.excluded.amount},
        )
        lookup = select(budgets_table).where(
            budgets_table.c.category == category, budgets_table.c.month == month
        )
        try:
            with engine.begin() as conn:
                conn.execute(stmt)
                row = conn.execute(lookup).mappings().one()
        except SQLAlchemyError as exc:
            raise WriteError(f"Unable to save budget for {category} in {month}") from exc
        return Budget.from_row(row)

    def get_budgets(self, month: str) -> List[Budget]:
        stmt = (
            select(budgets_table)
            .where(budgets_table.c.month == month)
            .order_by(budgets_table.c.category)
        )
        rows = self._fetch(stmt, f"Unable to load budgets for {month}")
        return [Budget.from_row(row) for row in rows]

    # Internal helpers -----------------------------------------------------
    def _create_engine(self) -> Engine:
        if self._db_path == MEMORY:
            return create_engine("sqlite://")
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        return create_engine(f"sqlite:///{self._db_path}")

    def _require_engine(self) -> Engine:
        if self._engine is None:
            raise StorageUnavailable("Expense database is not open; call initialize() first")
        return self._engine

    def _fetch(self, stmt: Any, message: str) -> List[Any]:
        engine = self._require_engine()
        try:
            with engine.connect() as conn:
                return list(conn.execute(stmt).mappings().all())
        except SQLAlchemyError as exc:
            raise ReadError(message) from exc

    @staticmethod
    def _upsert_categories(conn: Any, categories: Iterable[Mapping[str, Any]]) -> None:
        values = [
            {"name": item["name"], "icon": item.get("icon"), "color": item.get("color")}
            for item in categories
        ]
        if not values:
            return
        stmt = sqlite_insert(categories_table).on_conflict_do_nothing(index_elements=["name"])
        conn.execute(stmt, values)

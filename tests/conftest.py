"""
Pytest configuration for the expense tracker.

Provides fixtures for:
- An initialized record store on a temporary SQLite file
- An export service with a frozen clock
- Environment isolation for configuration lookups
"""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Generator

import pytest

from expense_core.exporter import ExportService
from expense_core.store import RecordStore

FIXED_NOW = datetime(2024, 3, 5, 9, 30, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of configuration lookups."""
    for name in (
        "EXPENSE_TRACKER_DATA_DIR",
        "EXPENSE_TRACKER_DB_NAME",
        "EXPENSE_TRACKER_EXPORT_DIR",
        "EXPENSE_TRACKER_LOG_LEVEL",
        "EXPENSE_TRACKER_ENV",
        "EXPENSE_TRACKER_ALLOWED_ORIGINS",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def store(tmp_path: Path) -> Generator[RecordStore, None, None]:
    """A freshly initialized store, closed after the test."""
    record_store = RecordStore(tmp_path / "expenses.db").initialize()
    try:
        yield record_store
    finally:
        record_store.close()


@pytest.fixture
def export_dir(tmp_path: Path) -> Path:
    return tmp_path / "exports"


@pytest.fixture
def exporter(store: RecordStore, export_dir: Path) -> ExportService:
    return ExportService(store, export_dir, clock=lambda: FIXED_NOW)

"""Core business logic package for the expense tracker."""

from .exceptions import (
    FileIOError,
    MalformedBackup,
    PersistenceError,
    ReadError,
    RecordNotFoundError,
    StorageUnavailable,
    ValidationError,
    WriteError,
)
from .exporter import ExportService
from .models import Budget, Category, Expense, ImportResult, MonthlyStat, PeriodSummary
from .services import ExpenseService, StatisticsService
from .storage import SettingsStore
from .store import RecordStore

__all__ = [
    "Budget",
    "Category",
    "Expense",
    "ImportResult",
    "MonthlyStat",
    "PeriodSummary",
    "ExpenseService",
    "StatisticsService",
    "ExportService",
    "RecordStore",
    "SettingsStore",
    "FileIOError",
    "MalformedBackup",
    "PersistenceError",
    "ReadError",
    "RecordNotFoundError",
    "StorageUnavailable",
    "ValidationError",
    "WriteError",
]

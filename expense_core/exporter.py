"""CSV, JSON backup and plain-text report generation for stored expenses."""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from .aggregation import daily_average, percentage_of, summarize
from .dates import checked_month, compact_date, days_in_month, format_date
from .exceptions import FileIOError, MalformedBackup, ValidationError, WriteError
from .models import Expense, ImportResult, isoformat_utc
from .store import RecordStore
from .validators import parse_stored_amount

logger = logging.getLogger(__name__)

BACKUP_VERSION = "1.0"
CSV_EXPORT_LIMIT = 1000
BACKUP_EXPORT_LIMIT = 10_000

CSV_PREFIX = "支出记录"
BACKUP_PREFIX = "支出记录备份"
REPORT_PREFIX = "月度报告"
CSV_HEADER = ("日期", "金额", "分类", "描述", "创建时间")
FULLWIDTH_COMMA = "，"

# Every file name the three generators can produce.
EXPORT_NAME_PATTERN = re.compile(
    rf"^(?:{CSV_PREFIX}_\d{{8}}\.csv"
    rf"|{BACKUP_PREFIX}_\d{{8}}\.json"
    rf"|{REPORT_PREFIX}_\d{{1,4}}年\d{{1,2}}月\.txt)$"
)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _csv_field(value: str) -> str:
    # One record per line and five columns per record.
    flattened = " ".join(value.splitlines())
    return flattened.replace(",", FULLWIDTH_COMMA)


def _csv_line(expense: Expense) -> str:
    description = _csv_field(expense.description).replace('"', '""')
    created_at = expense.created_at.strftime("%Y-%m-%d %H:%M:%S")
    return (
        f'{expense.date},{expense.amount:.2f},{_csv_field(expense.category)},'
        f'"{description}",{created_at}'
    )


def _backup_row(raw: object) -> Dict[str, Any]:
    """Turn one expense entry of a backup file into add_expense arguments.

    Accepts whatever the record store itself accepts so any backup this
    service wrote loads back in full. The amount only has to be a finite
    number, zero and negative included; category and date must be
    non-empty strings.
    """
    if not isinstance(raw, Mapping):
        raise ValidationError("expense entry must be an object")
    category, entry_date = raw.get("category"), raw.get("date")
    if not isinstance(category, str) or not category.strip():
        raise ValidationError("category must be a non-empty string")
    if not isinstance(entry_date, str) or not entry_date.strip():
        raise ValidationError("date must be a non-empty string")
    description = raw.get("description")
    return {
        "amount": parse_stored_amount(raw.get("amount")),
        "category": category,
        "description": "" if description is None else str(description),
        "date": entry_date,
    }


def _backup_category(raw: object) -> Optional[Dict[str, Any]]:
    if not isinstance(raw, Mapping):
        return None
    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        return None
    icon, color = raw.get("icon"), raw.get("color")
    return {
        "name": name,
        "icon": icon if isinstance(icon, str) else None,
        "color": color if isinstance(color, str) else None,
    }


class ExportService:
    """Projects the record store into portable files under one export directory."""

    def __init__(
        self,
        store: RecordStore,
        export_dir: Union[Path, str],
        *,
        currency: str = "¥",
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        self._store = store
        self._export_dir = Path(export_dir)
        self._currency = currency
        self._clock = clock

    @property
    def export_dir(self) -> Path:
        return self._export_dir

    def export_csv(self) -> Path:
        """Write up to the 1000 most recent expenses as CSV and return the file path."""
        expenses = self._store.get_expenses(CSV_EXPORT_LIMIT, 0)
        lines = [",".join(CSV_HEADER)]
        lines.extend(_csv_line(expense) for expense in expenses)

        path = self._export_dir / f"{CSV_PREFIX}_{compact_date(self._clock())}.csv"
        self._write_text(path, "\n".join(lines) + "\n")
        logger.info("Exported %d expense(s) to %s", len(expenses), path)
        return path

    def export_full_backup(self) -> Path:
        now = self._clock()
        expenses = self._store.get_expenses(BACKUP_EXPORT_LIMIT, 0)
        categories = self._store.get_categories()
        backup = {
            "version": BACKUP_VERSION,
            "exportDate": isoformat_utc(now),
            "data": {
                "expenses": [expense.to_dict() for expense in expenses],
                "categories": [category.to_dict() for category in categories],
            },
        }

        path = self._export_dir / f"{BACKUP_PREFIX}_{compact_date(now)}.json"
        self._write_text(path, json.dumps(backup, indent=2, ensure_ascii=False))
        logger.info("Backed up %d expense(s) and %d categories to %s", len(expenses), len(categories), path)
        return path

    def import_backup_data(self, file_path: Union[Path, str]) -> ImportResult:
        """Re-insert the expenses of a backup file with fresh ids.

        Rows that fail validation or insertion are skipped and counted, and a
        category list the store rejects is logged and ignored. The batch
        itself only fails when the file cannot be read or lacks
        ``data.expenses``. Importing the same file twice duplicates rows.
        """
        path = Path(file_path)
        try:
            with path.open("r", encoding="utf-8") as handle:
                backup = json.load(handle)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise MalformedBackup(f"{path} is not a valid JSON backup") from exc
        except OSError as exc:
            raise FileIOError(f"Unable to read backup {path}") from exc

        data = backup.get("data") if isinstance(backup, dict) else None
        expenses = data.get("expenses") if isinstance(data, dict) else None
        if not isinstance(expenses, list):
            raise MalformedBackup(f"{path} is missing data.expenses")

        categories = data.get("categories")
        if isinstance(categories, list):
            entries = [entry for entry in map(_backup_category, categories) if entry is not None]
            try:
                self._store.ensure_categories(entries)
            except WriteError as exc:
                # Expenses carry their category name, so they still import.
                logger.warning("Skipping categories of %s: %s", path, exc)

        imported = 0
        for raw in expenses:
            try:
                self._store.add_expense(**_backup_row(raw))
            except (ValidationError, WriteError) as exc:
                label = raw.get("id") if isinstance(raw, Mapping) else raw
                logger.info("Skipping backup entry %s: %s", label, exc)
                continue
            imported += 1

        logger.info("Imported %d of %d expense(s) from %s", imported, len(expenses), path)
        return ImportResult(success=True, import_count=imported, total_count=len(expenses))

    def generate_monthly_report(self, year: int, month: int) -> Path:
        year, month = checked_month(year, month)
        stats = self._store.get_monthly_stats(year, month)
        summary = summarize(stats)
        average = daily_average(summary.total_amount, days_in_month(year, month))
        currency = self._currency

        lines: List[str] = [
            f"{year}年{month}月支出报告",
            f"生成时间: {format_date(self._clock())}",
            "",
            f"总支出: {currency}{summary.total_amount:.2f}",
            f"支出笔数: {summary.total_count}",
            f"日均: {currency}{average:.2f}",
            "",
            "分类明细:",
        ]
        for rank, stat in enumerate(stats, start=1):
            share = percentage_of(stat.total, summary.total_amount)
            lines.append(f"{rank}. {stat.category}: {currency}{stat.total:.2f} ({share:.1f}%)")

        path = self._export_dir / f"{REPORT_PREFIX}_{year}年{month}月.txt"
        self._write_text(path, "\n".join(lines) + "\n")
        logger.info("Generated monthly report for %d-%02d at %s", year, month, path)
        return path

    def cleanup_temp_files(self) -> int:
        """Delete generated export files; failures are logged, never raised."""
        try:
            entries = list(self._export_dir.iterdir())
        except FileNotFoundError:
            return 0
        except OSError as exc:
            logger.warning("Unable to list export directory %s: %s", self._export_dir, exc)
            return 0

        removed = 0
        for entry in entries:
            if not EXPORT_NAME_PATTERN.fullmatch(entry.name) or not entry.is_file():
                continue
            try:
                entry.unlink()
            except OSError as exc:
                logger.warning("Unable to delete export file %s: %s", entry, exc)
                continue
            removed += 1

        logger.info("Removed %d export file(s) from %s", removed, self._export_dir)
        return removed

    def _write_text(self, path: Path, content: str) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8", newline="") as handle:
                handle.write(content)
        except OSError as exc:
            raise FileIOError(f"Unable to write {path}") from exc

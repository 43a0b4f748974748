from __future__ import annotations

import json
import pathlib
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from expense_core.exceptions import FileIOError, MalformedBackup, WriteError
from expense_core.exporter import ExportService
from expense_core.store import RecordStore

from conftest import FIXED_NOW


def _seed(store: RecordStore) -> None:
    store.add_expense(Decimal("100"), "餐饮", "", "2024-02-01")
    store.add_expense(Decimal("50"), "餐饮", "lunch, with team", "2024-02-29")
    store.add_expense(Decimal("30"), "交通", 'said "hi"', "2024-03-01")


def test_export_csv_writes_header_and_rows(store: RecordStore, exporter: ExportService, export_dir: Path) -> None:
    _seed(store)

    path = exporter.export_csv()

    assert path == export_dir / "支出记录_20240305.csv"
    lines = path.read_text(encoding="utf-8").splitlines()
    assert lines[0] == "日期,金额,分类,描述,创建时间"
    assert len(lines) == 4
    assert lines[1].startswith('2024-03-01,30.00,交通,"said ""hi""",')
    assert lines[2].startswith('2024-02-29,50.00,餐饮,"lunch， with team",')
    assert lines[3].startswith('2024-02-01,100.00,餐饮,"",')
    # five columns survive even when the description held a comma
    assert all(len(line.split(",")) == 5 for line in lines)


def test_export_csv_keeps_one_line_per_expense(store: RecordStore, exporter: ExportService) -> None:
    store.add_expense(Decimal("8"), "餐饮", "line one\nline two\r\nline three", "2024-02-01")
    store.add_expense(Decimal("4"), "a,b", "plain", "2024-02-02")

    lines = exporter.export_csv().read_text(encoding="utf-8").splitlines()

    assert len(lines) == 3
    assert all(len(line.split(",")) == 5 for line in lines)
    assert lines[1].startswith('2024-02-02,4.00,a，b,"plain",')
    assert lines[2].startswith('2024-02-01,8.00,餐饮,"line one line two line three",')


def test_export_csv_with_no_expenses_has_only_header(exporter: ExportService) -> None:
    path = exporter.export_csv()
    assert path.read_text(encoding="utf-8") == "日期,金额,分类,描述,创建时间\n"


def test_full_backup_envelope(store: RecordStore, exporter: ExportService, export_dir: Path) -> None:
    _seed(store)

    path = exporter.export_full_backup()

    assert path == export_dir / "支出记录备份_20240305.json"
    backup = json.loads(path.read_text(encoding="utf-8"))
    assert backup["version"] == "1.0"
    assert backup["exportDate"] == "2024-03-05T09:30:00Z"
    assert len(backup["data"]["expenses"]) == 3
    assert len(backup["data"]["categories"]) == 8
    assert backup["data"]["expenses"][0]["amount"] == "30.00"


def test_backup_round_trip_into_empty_store(store: RecordStore, exporter: ExportService, tmp_path: Path) -> None:
    _seed(store)
    backup_path = exporter.export_full_backup()

    with RecordStore(tmp_path / "restore.db") as target:
        result = ExportService(target, tmp_path / "restore-exports").import_backup_data(backup_path)
        restored = target.get_expenses(100, 0)

    assert result.success is True
    assert result.import_count == 3
    assert result.total_count == 3
    assert result.to_dict() == {"success": True, "importCount": 3, "totalCount": 3}
    assert [(e.date, e.amount, e.category) for e in restored] == [
        (e.date, e.amount, e.category) for e in store.get_expenses(100, 0)
    ]


def test_import_twice_duplicates_rows(store: RecordStore, exporter: ExportService) -> None:
    _seed(store)
    backup_path = exporter.export_full_backup()

    exporter.import_backup_data(backup_path)

    assert store.count_expenses() == 6


def _write_backup(path: Path, expenses: List[Any], categories: Optional[List[Any]] = None) -> Path:
    data: Dict[str, Any] = {"expenses": expenses}
    if categories is not None:
        data["categories"] = categories
    path.write_text(json.dumps({"version": "1.0", "data": data}, ensure_ascii=False), encoding="utf-8")
    return path


def test_import_skips_bad_rows_without_failing(store: RecordStore, exporter: ExportService, tmp_path: Path) -> None:
    backup_path = _write_backup(
        tmp_path / "partial.json",
        [
            {"id": 1, "amount": 12.5, "category": "餐饮", "description": "ok", "date": "2024-01-02"},
            {"id": 2, "amount": "abc", "category": "餐饮", "date": "2024-01-02"},
            {"id": 3, "amount": 8, "category": "", "date": "2024-01-02"},
            {"id": 4, "amount": 8, "category": "交通"},
            "not an expense",
        ],
        [{"name": "旅行", "icon": "flight", "color": "#00BCD4"}, {"bogus": True}],
    )

    result = exporter.import_backup_data(backup_path)

    assert (result.import_count, result.total_count) == (1, 5)
    assert result.skipped_count == 4
    [expense] = store.get_expenses()
    assert expense.amount == Decimal("12.50")
    assert "旅行" in {category.name for category in store.get_categories()}


def test_import_keeps_going_after_unusual_amounts(store: RecordStore, exporter: ExportService, tmp_path: Path) -> None:
    backup_path = _write_backup(
        tmp_path / "amounts.json",
        [
            {"id": 1, "amount": 5, "category": "餐饮", "date": "2024-01-02"},
            {"id": 2, "amount": "1e30", "category": "餐饮", "date": "2024-01-03"},
            {"id": 3, "amount": "NaN", "category": "餐饮", "date": "2024-01-04"},
            {"id": 4, "amount": 7, "category": "交通", "date": "2024-01-05"},
        ],
    )

    result = exporter.import_backup_data(backup_path)

    assert (result.import_count, result.total_count) == (3, 4)
    amounts = {expense.date: expense.amount for expense in store.get_expenses()}
    assert amounts["2024-01-03"] == Decimal("1e30")
    assert amounts["2024-01-05"] == Decimal("7.00")


def test_import_survives_malformed_category_entries(
    store: RecordStore, exporter: ExportService, tmp_path: Path
) -> None:
    backup_path = _write_backup(
        tmp_path / "categories.json",
        [
            {"id": 1, "amount": 20, "category": "旅行", "date": "2024-01-02"},
            {"id": 2, "amount": 9, "category": "住宿", "date": "2024-01-03"},
        ],
        [{"name": "旅行", "icon": {"x": 1}}, {"name": "住宿", "color": ["red"]}, "junk", {"name": 3}],
    )

    result = exporter.import_backup_data(backup_path)

    assert (result.import_count, result.total_count) == (2, 2)
    categories = {category.name: category for category in store.get_categories()}
    assert categories["旅行"].icon == ""
    assert categories["住宿"].color == ""


def test_import_continues_when_categories_cannot_be_stored(
    store: RecordStore, exporter: ExportService, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    def failing_ensure(categories: object) -> None:
        raise WriteError("Unable to store categories")

    monkeypatch.setattr(store, "ensure_categories", failing_ensure)
    backup_path = _write_backup(
        tmp_path / "categories.json",
        [{"id": 1, "amount": 20, "category": "旅行", "date": "2024-01-02"}],
        [{"name": "旅行"}],
    )

    result = exporter.import_backup_data(backup_path)

    assert (result.import_count, result.total_count) == (1, 1)


def test_round_trip_keeps_rows_written_directly_to_the_store(
    store: RecordStore, exporter: ExportService, tmp_path: Path
) -> None:
    store.add_expense(12, "餐饮", None, "2024-01-02")
    store.add_expense(0.004, "交通", "", "2024-01-02")
    store.add_expense(Decimal("-3"), "购物", "refund", "2024/01/03")
    backup_path = exporter.export_full_backup()

    with RecordStore(tmp_path / "restore.db") as target:
        result = ExportService(target, tmp_path / "restore-exports").import_backup_data(backup_path)
        restored = sorted((e.date, e.amount, e.category) for e in target.get_expenses(100, 0))

    assert (result.import_count, result.total_count) == (3, 3)
    assert restored == [
        ("2024-01-02", Decimal("0.00"), "交通"),
        ("2024-01-02", Decimal("12.00"), "餐饮"),
        ("2024/01/03", Decimal("-3.00"), "购物"),
    ]


@pytest.mark.parametrize(
    "content",
    [
        "{not json",
        json.dumps({"version": "1.0"}),
        json.dumps({"data": {"categories": []}}),
        json.dumps({"data": {"expenses": {"id": 1}}}),
        json.dumps([1, 2, 3]),
    ],
)
def test_import_rejects_malformed_backups(exporter: ExportService, tmp_path: Path, content: str) -> None:
    path = tmp_path / "broken.json"
    path.write_text(content, encoding="utf-8")

    with pytest.raises(MalformedBackup):
        exporter.import_backup_data(path)


def test_import_missing_file_raises_file_error(exporter: ExportService, tmp_path: Path) -> None:
    with pytest.raises(FileIOError):
        exporter.import_backup_data(tmp_path / "missing.json")


def test_monthly_report_contents(store: RecordStore, exporter: ExportService, export_dir: Path) -> None:
    _seed(store)
    store.add_expense(Decimal("30"), "交通", "", "2024-02-10")

    path = exporter.generate_monthly_report(2024, 2)

    assert path == export_dir / "月度报告_2024年2月.txt"
    assert path.read_text(encoding="utf-8").splitlines() == [
        "2024年2月支出报告",
        "生成时间: 2024-03-05",
        "",
        "总支出: ¥180.00",
        "支出笔数: 3",
        "日均: ¥6.21",
        "",
        "分类明细:",
        "1. 餐饮: ¥150.00 (83.3%)",
        "2. 交通: ¥30.00 (16.7%)",
    ]


def test_monthly_report_for_empty_month_does_not_fault(exporter: ExportService) -> None:
    path = exporter.generate_monthly_report(2023, 4)

    text = path.read_text(encoding="utf-8")
    assert "总支出: ¥0.00" in text
    assert "支出笔数: 0" in text
    assert text.rstrip().endswith("分类明细:")


def test_cleanup_removes_only_export_files(store: RecordStore, exporter: ExportService, export_dir: Path) -> None:
    _seed(store)
    exporter.export_csv()
    exporter.export_full_backup()
    exporter.generate_monthly_report(2024, 2)
    keep = export_dir / "notes.txt"
    keep.write_text("keep me", encoding="utf-8")

    assert exporter.cleanup_temp_files() == 3
    assert [entry.name for entry in export_dir.iterdir()] == ["notes.txt"]


def test_cleanup_without_export_dir_returns_zero(exporter: ExportService) -> None:
    assert exporter.cleanup_temp_files() == 0


def test_cleanup_continues_after_delete_failure(
    store: RecordStore, exporter: ExportService, export_dir: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    exporter.export_csv()
    exporter.export_full_backup()
    original_unlink = pathlib.Path.unlink

    def flaky_unlink(self, *args, **kwargs):
        if self.suffix == ".csv":
            raise PermissionError("locked")
        return original_unlink(self, *args, **kwargs)

    monkeypatch.setattr(pathlib.Path, "unlink", flaky_unlink)

    assert exporter.cleanup_temp_files() == 1
    assert (export_dir / "支出记录_20240305.csv").exists()


def test_write_failure_raises_file_error(store: RecordStore, tmp_path: Path) -> None:
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not directory", encoding="utf-8")
    exporter = ExportService(store, blocker / "exports", clock=lambda: FIXED_NOW)

    with pytest.raises(FileIOError):
        exporter.export_csv()

"""Console interface for the expense tracker."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import List, Optional

from expense_core.config import AppConfig, configure_logging
from expense_core.dates import current_year_month
from expense_core.exceptions import (
    MalformedBackup,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from expense_core.exporter import ExportService
from expense_core.models import Expense
from expense_core.services import ExpenseService, StatisticsService
from expense_core.storage import SettingsStore
from expense_core.store import RecordStore
from expense_core.validators import parse_amount, validate_date


def _parse_date(value: str) -> str:
    try:
        return validate_date(value)
    except ValidationError as exc:
        raise argparse.ArgumentTypeError(
            f"Invalid date '{value}'. Expected format YYYY-MM-DD."
        ) from exc


def _parse_amount(value: str) -> str:
    try:
        parse_amount(value, "Amount")
    except ValidationError as exc:
        raise argparse.ArgumentTypeError(str(exc)) from exc
    return value


def _format_expense(expense: Expense) -> str:
    return (
        f"[{expense.id}] {expense.date} {expense.amount:.2f} {expense.category}\n"
        f"  Description: {expense.description or '-'}\n"
    )


def handle_expense(args: argparse.Namespace, service: ExpenseService) -> None:
    if args.command == "add":
        payload = {
            "amount": args.amount,
            "category": args.category,
            "description": args.description,
            "date": args.date,
        }
        expense = service.add(payload)
        print("Expense added:\n" + _format_expense(expense))
    elif args.command == "list":
        expenses = service.list(args.limit, args.offset)
        if not expenses:
            print("No expenses found.")
            return
        print(f"Showing {len(expenses)} expenses:")
        for expense in expenses:
            print(_format_expense(expense))
    elif args.command == "delete":
        service.delete(args.id)
        print(f"Expense {args.id} deleted.")


def handle_categories(store: RecordStore) -> None:
    for category in store.get_categories():
        print(f"{category.name}\t{category.icon}\t{category.color}")


def handle_stats(args: argparse.Namespace, service: StatisticsService, currency: str) -> None:
    overview = service.monthly_overview(args.year, args.month)
    summary = overview["summary"]
    print(f"{args.year}-{args.month:02d}")
    print(f"Total: {currency}{summary['totalAmount']} in {summary['totalCount']} expenses")
    print(f"Daily average: {currency}{overview['dailyAverage']}")
    print(f"Budget used: {overview['budgetUsage']}% of {currency}{overview['monthlyBudget']}")
    for row in overview["categories"]:
        print(f"  {row['category']}: {currency}{row['total']} x{row['count']} ({row['percentage']}%)")


def handle_budget(args: argparse.Namespace, service: StatisticsService) -> None:
    if args.command == "set":
        budget = service.set_budget({"category": args.category, "amount": args.amount}, args.month)
        print(f"Budget for {budget.category} in {budget.month}: {budget.amount:.2f}")
    elif args.command == "list":
        budgets = service.budgets(args.month)
        if not budgets:
            print(f"No budgets for {args.month}.")
            return
        for budget in budgets:
            print(f"{budget.category}: {budget.amount:.2f}")


def handle_export(args: argparse.Namespace, exporter: ExportService) -> None:
    if args.format == "csv":
        path = exporter.export_csv()
    elif args.format == "backup":
        path = exporter.export_full_backup()
    else:
        default_year, default_month = current_year_month()
        path = exporter.generate_monthly_report(
            args.year or default_year, args.month or default_month
        )
    print(f"Written to {path}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Expense Tracker CLI")
    parser.add_argument(
        "--data-dir",
        default=None,
        type=Path,
        help="Directory holding the database and settings (default: $EXPENSE_TRACKER_DATA_DIR or ./data)",
    )

    subparsers = parser.add_subparsers(dest="entity", required=True)

    expense_parser = subparsers.add_parser("expense", help="Manage expenses")
    expense_sub = expense_parser.add_subparsers(dest="command", required=True)

    expense_add = expense_sub.add_parser("add", help="Add a new expense")
    expense_add.add_argument("amount", type=_parse_amount)
    expense_add.add_argument("category")
    expense_add.add_argument("--description", default="")
    expense_add.add_argument("--date", type=_parse_date, help="YYYY-MM-DD, defaults to today")

    expense_list = expense_sub.add_parser("list", help="List expenses, most recent first")
    expense_list.add_argument("--limit", type=int, default=50)
    expense_list.add_argument("--offset", type=int, default=0)

    expense_delete = expense_sub.add_parser("delete", help="Delete an expense")
    expense_delete.add_argument("id", type=int)

    subparsers.add_parser("categories", help="List categories")

    stats_parser = subparsers.add_parser("stats", help="Show monthly statistics")
    stats_parser.add_argument("year", type=int)
    stats_parser.add_argument("month", type=int)

    budget_parser = subparsers.add_parser("budget", help="Manage category budgets")
    budget_sub = budget_parser.add_subparsers(dest="command", required=True)
    budget_set = budget_sub.add_parser("set", help="Set a category budget for a month")
    budget_set.add_argument("month", help="YYYY-MM")
    budget_set.add_argument("category")
    budget_set.add_argument("amount")
    budget_list = budget_sub.add_parser("list", help="List budgets of a month")
    budget_list.add_argument("month", help="YYYY-MM")

    export_parser = subparsers.add_parser("export", help="Export data to files")
    export_parser.add_argument("format", choices=["csv", "backup", "report"])
    export_parser.add_argument("--year", type=int)
    export_parser.add_argument("--month", type=int)

    import_parser = subparsers.add_parser("import", help="Import a JSON backup")
    import_parser.add_argument("path", type=Path)

    subparsers.add_parser("cleanup", help="Delete generated export files")

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    config = AppConfig.from_env(args.data_dir)
    configure_logging(config.log_level)

    settings = SettingsStore(config.data_dir)
    currency = str(settings.get_user_settings().get("currency", "¥"))
    try:
        with RecordStore(config.db_path) as store:
            exporter = ExportService(store, config.exports_path, currency=currency)
            if args.entity == "expense":
                handle_expense(args, ExpenseService(store, settings))
            elif args.entity == "categories":
                handle_categories(store)
            elif args.entity == "stats":
                handle_stats(args, StatisticsService(store, settings), currency)
            elif args.entity == "budget":
                handle_budget(args, StatisticsService(store, settings))
            elif args.entity == "export":
                handle_export(args, exporter)
            elif args.entity == "import":
                result = exporter.import_backup_data(args.path)
                print(f"Imported {result.import_count} of {result.total_count} expenses.")
            elif args.entity == "cleanup":
                print(f"Removed {exporter.cleanup_temp_files()} export files.")
            else:  # pragma: no cover - argparse should prevent this
                parser.error(f"Unknown entity: {args.entity}")
                return 2
    except (ValidationError, MalformedBackup) as exc:
        print(f"Validation error: {exc}", file=sys.stderr)
        return 1
    except RecordNotFoundError as exc:
        print(str(exc), file=sys.stderr)
        return 1
    except PersistenceError as exc:
        print(f"Storage error: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())

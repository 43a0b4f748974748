"""Flask REST API exposing the expense tracker services."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from expense_core.config import AppConfig
from expense_core.exceptions import (
    MalformedBackup,
    PersistenceError,
    RecordNotFoundError,
    ValidationError,
)
from expense_core.exporter import ExportService
from expense_core.services import ExpenseService, StatisticsService
from expense_core.storage import SettingsStore
from expense_core.store import RecordStore
from expense_core.validators import validate_relative_path


def create_app(data_dir: Optional[Path] = None) -> Flask:
    app = Flask(__name__)

    env_name = os.getenv("EXPENSE_TRACKER_ENV", "prod").lower()
    if env_name in {"dev", "development"}:
        CORS(app, resources={r"/*": {"origins": "*"}}, supports_credentials=True)
    else:
        allowed_origins = os.getenv("EXPENSE_TRACKER_ALLOWED_ORIGINS")
        if allowed_origins:
            origins = [origin.strip() for origin in allowed_origins.split(",") if origin.strip()]
            CORS(app, resources={r"/*": {"origins": origins}}, supports_credentials=True)
        else:
            CORS(app)

    config = AppConfig.from_env(data_dir)
    store = RecordStore(config.db_path).initialize()
    settings = SettingsStore(config.data_dir)
    expense_service = ExpenseService(store, settings)
    statistics_service = StatisticsService(store, settings)
    export_service = ExportService(
        store,
        config.exports_path,
        currency=str(settings.get_user_settings().get("currency", "¥")),
    )
    app.extensions["expense_store"] = store

    def _success(payload: Any, status: int = 200):
        if status == 204:
            return ("", status)
        return jsonify(payload), status

    def _handle_error(exc: Exception, status: int, message: str):
        app.logger.error("%s: %s", message, exc)
        return jsonify({"error": message, "details": str(exc)}), status

    @app.errorhandler(ValidationError)
    def handle_validation_error(exc: ValidationError):
        return _handle_error(exc, 400, "Validation error")

    @app.errorhandler(MalformedBackup)
    def handle_malformed_backup(exc: MalformedBackup):
        return _handle_error(exc, 400, "Malformed backup")

    @app.errorhandler(RecordNotFoundError)
    def handle_not_found(exc: RecordNotFoundError):
        return _handle_error(exc, 404, "Record not found")

    @app.errorhandler(PersistenceError)
    def handle_persistence_error(exc: PersistenceError):
        return _handle_error(exc, 500, "Persistence error")

    def _json_body() -> Dict[str, Any]:
        if not request.is_json:
            raise ValidationError("Request content must be application/json")
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationError("Malformed JSON body")
        return data

    @app.get("/categories")
    def list_categories():
        categories = store.get_categories()
        return _success({"items": [category.to_dict() for category in categories]})

    @app.get("/expenses")
    def list_expenses():
        expenses = expense_service.list(
            request.args.get("limit", 50), request.args.get("offset", 0)
        )
        return _success({
            "items": [expense.to_dict() for expense in expenses],
            "count": store.count_expenses(),
        })

    @app.post("/expenses")
    def create_expense():
        payload = _json_body()
        expense = expense_service.add(payload)
        return _success(expense.to_dict(), 201)

    @app.get("/expenses/<int:expense_id>")
    def get_expense(expense_id: int):
        expense = expense_service.get(expense_id)
        return _success(expense.to_dict())

    @app.delete("/expenses/<int:expense_id>")
    def delete_expense(expense_id: int):
        expense_service.delete(expense_id)
        return _success({}, 204)

    @app.get("/stats/<int:year>/<int:month>")
    def monthly_stats(year: int, month: int):
        return _success(statistics_service.monthly_overview(year, month))

    @app.get("/budgets/<month>")
    def list_budgets(month: str):
        budgets = statistics_service.budgets(month)
        return _success({"items": [budget.to_dict() for budget in budgets]})

    @app.put("/budgets/<month>")
    def set_budget(month: str):
        budget = statistics_service.set_budget(_json_body(), month)
        return _success(budget.to_dict())

    @app.get("/settings")
    def get_settings():
        return _success(settings.get_user_settings())

    @app.patch("/settings")
    def update_settings():
        merged = {**settings.get_user_settings(), **_json_body()}
        return _success(settings.save_user_settings(merged))

    @app.post("/exports/csv")
    def export_csv():
        return _success({"path": str(export_service.export_csv())}, 201)

    @app.post("/exports/backup")
    def export_backup():
        return _success({"path": str(export_service.export_full_backup())}, 201)

    @app.post("/exports/report/<int:year>/<int:month>")
    def export_report(year: int, month: int):
        return _success({"path": str(export_service.generate_monthly_report(year, month))}, 201)

    @app.delete("/exports")
    def cleanup_exports():
        return _success({"removed": export_service.cleanup_temp_files()})

    @app.post("/imports")
    def import_backup():
        payload = _json_body()
        # Only backups inside the export directory can be imported over HTTP.
        path = validate_relative_path(payload.get("path"), config.exports_path)
        result = export_service.import_backup_data(path)
        return _success(result.to_dict())

    return app

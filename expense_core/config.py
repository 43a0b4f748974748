"""Environment-driven configuration and logging setup."""

from __future__ import annotations

import logging
import logging.config
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

DEFAULT_DB_NAME = "ExpenseTracker.db"
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@dataclass(frozen=True)
class AppConfig:
    data_dir: Path
    db_name: str = DEFAULT_DB_NAME
    export_dir: Optional[Path] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls, data_dir: Optional[Path] = None) -> "AppConfig":
        base = Path(data_dir or os.getenv("EXPENSE_TRACKER_DATA_DIR", "data"))
        export_dir = os.getenv("EXPENSE_TRACKER_EXPORT_DIR")
        return cls(
            data_dir=base,
            db_name=os.getenv("EXPENSE_TRACKER_DB_NAME", DEFAULT_DB_NAME),
            export_dir=Path(export_dir) if export_dir else None,
            log_level=os.getenv("EXPENSE_TRACKER_LOG_LEVEL", "INFO").upper(),
        )

    @property
    def db_path(self) -> Path:
        return self.data_dir / self.db_name

    @property
    def exports_path(self) -> Path:
        return self.export_dir or self.data_dir / "exports"


def configure_logging(level: str = "INFO") -> None:
    """Install a console handler on the root logger."""
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "console": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            },
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "level": level,
                }
            },
            "root": {"handlers": ["default"], "level": level},
        }
    )

"""Key-value user settings persisted as a single JSON document."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, List

from .exceptions import PersistenceError

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS: Dict[str, Any] = {
    "currency": "¥",
    "theme": "light",
    "notifications": True,
    "monthlyBudget": 3000,
    "language": "zh-CN",
}

RECENT_CATEGORIES_LIMIT = 8


class SettingsStore:
    """Simple file-based JSON settings with crash-safe writes."""

    def __init__(self, base_path: Path, resource: str = "settings.json") -> None:
        self._base_path = Path(base_path)
        self._path = self._base_path / resource

    def get_user_settings(self) -> Dict[str, Any]:
        """Stored settings layered over the defaults; unreadable data yields defaults."""
        try:
            payload = self._load()
        except PersistenceError as exc:
            logger.warning("Falling back to default settings: %s", exc)
            return dict(DEFAULT_SETTINGS)
        stored = payload.get("userSettings")
        if not isinstance(stored, dict):
            return dict(DEFAULT_SETTINGS)
        return {**DEFAULT_SETTINGS, **stored}

    def save_user_settings(self, settings: Dict[str, Any]) -> Dict[str, Any]:
        payload = self._load_or_empty()
        payload["userSettings"] = dict(settings)
        self._save(payload)
        return self.get_user_settings()

    def update_setting(self, key: str, value: Any) -> Dict[str, Any]:
        settings = self.get_user_settings()
        settings[key] = value
        return self.save_user_settings(settings)

    def get_recent_categories(self) -> List[str]:
        payload = self._load_or_empty()
        recent = payload.get("recentCategories")
        if not isinstance(recent, list):
            return []
        return [str(name) for name in recent]

    def save_recent_categories(self, categories: Iterable[str]) -> List[str]:
        names: List[str] = []
        for name in categories:
            if name not in names:
                names.append(name)
        payload = self._load_or_empty()
        payload["recentCategories"] = names[:RECENT_CATEGORIES_LIMIT]
        self._save(payload)
        return payload["recentCategories"]

    def remember_category(self, category: str) -> List[str]:
        """Move ``category`` to the front of the recently-used list."""
        return self.save_recent_categories([category, *self.get_recent_categories()])

    def clear(self) -> None:
        try:
            self._path.unlink()
        except FileNotFoundError:
            return
        except OSError as exc:
            raise PersistenceError(f"Unable to remove {self._path}") from exc

    @property
    def path(self) -> Path:
        return self._path

    # Internal helpers -----------------------------------------------------
    def _load(self) -> Dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except json.JSONDecodeError as exc:
            raise PersistenceError(f"Corrupted JSON data in {self._path}") from exc
        except OSError as exc:
            raise PersistenceError(f"Unable to read from {self._path}") from exc

        if not isinstance(payload, dict):
            raise PersistenceError(f"Expected object payload in {self._path}")
        return payload

    def _load_or_empty(self) -> Dict[str, Any]:
        try:
            return self._load()
        except PersistenceError as exc:
            logger.warning("Discarding unreadable settings file: %s", exc)
            return {}

    def _save(self, payload: Dict[str, Any]) -> None:
        temp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        try:
            self._base_path.mkdir(parents=True, exist_ok=True)
            with temp_path.open("w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2, ensure_ascii=False)
                handle.flush()
            # Use replace for atomic move on POSIX; ensures crash-safe persistence.
            temp_path.replace(self._path)
        except OSError as exc:
            raise PersistenceError(f"Unable to write to {self._path}") from exc

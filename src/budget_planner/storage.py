"""Persistence helpers for client-side preferences."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES_FILE = Path("budget_preferences.json")


class PreferenceStore:
    """Small key/value store kept in a JSON file.

    The file is read once when the store is created and rewritten on every
    change, the same way a browser's local storage behaves for a single
    window.
    """

    def __init__(self, data_path: str | Path | None = None) -> None:
        self.path = Path(data_path) if data_path else DEFAULT_PREFERENCES_FILE
        self._values: dict[str, Any] = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as handle:
                payload = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable preferences file %s: %s", self.path, exc)
            return {}
        if not isinstance(payload, dict):
            logger.warning("Ignoring preferences file %s: expected a JSON object", self.path)
            return {}
        return payload

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value
        self._save()

    def _save(self) -> None:
        if self.path.parent and not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)
        with self.path.open("w", encoding="utf-8") as handle:
            json.dump(self._values, handle, indent=2)

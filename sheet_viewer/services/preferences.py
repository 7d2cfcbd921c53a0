from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)

"""Persistent storage for the last selected location.

- JSON の key/value ファイル (ブラウザの local storage 相当)
- ファイルが無い / 壊れている場合は「未選択」扱い。読み込みは例外を出さない
"""

__all__ = [
    "LocationPreferenceStore",
    "SELECTED_LOCATION_KEY",
]

SELECTED_LOCATION_KEY = "selectedLocation"


class LocationPreferenceStore:
    def __init__(self, path: Path) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"preferences unreadable, ignoring: {self._path} ({e})")
            return {}
        return data if isinstance(data, dict) else {}

    def load_location(self) -> str | None:
        """Return the stored location id, or None when nothing usable is stored."""
        value = self._read().get(SELECTED_LOCATION_KEY)
        if isinstance(value, (str, int)) and str(value):
            return str(value)
        return None

    def save_location(self, location_id: str) -> None:
        """Persist ``location_id``; empty ids ("all locations") are not stored."""
        if not location_id:
            return
        data = self._read()
        data[SELECTED_LOCATION_KEY] = location_id
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        except OSError as e:
            logger.warning(f"failed to save preferences: {self._path} ({e})")

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict

from ..errors import SaveIOError
from ..utils.fs import atomic_write_text

logger = logging.getLogger(__name__)

ENDLESS_MODE_KEY = "endlessModeEnabled"
ENDLESS_LOCATION_INDEX_KEY = "endlessLocationIndex"


class Preferences(ABC):
    """Small key/value store for flags that outlive save slots."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the stored value or default."""

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store a JSON-compatible value and persist it."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key. Missing keys are ignored."""

    def has(self, key: str) -> bool:
        return self.get(key, None) is not None

    def get_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key, default)
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "on"}
        return bool(value)

    def get_int(self, key: str, default: int = 0) -> int:
        try:
            return int(self.get(key, default))
        except (TypeError, ValueError):
            logger.warning("Preference %s is not an integer; using %s", key, default)
            return default


class JsonPreferences(Preferences):
    """Preferences persisted to a JSON object file with atomic writes."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._data: Dict[str, Any] = self._read()

    def _read(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Could not read preferences from %s: %s; starting empty", self.path, exc)
            return {}
        if not isinstance(data, dict):
            logger.warning("Preferences file %s is not an object; starting empty", self.path)
            return {}
        return data

    def _write(self) -> None:
        try:
            atomic_write_text(self.path, json.dumps(self._data, indent=2, sort_keys=True))
        except OSError as exc:
            logger.exception("Failed to write preferences to %s", self.path)
            raise SaveIOError(str(exc)) from exc

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self._write()

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._write()


class InMemoryPreferences(Preferences):
    """Test/deterministic Preferences that hold data in memory only."""

    def __init__(self, initial: Dict[str, Any] | None = None) -> None:
        self._data: Dict[str, Any] = dict(initial or {})

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

from __future__ import annotations

import json
import logging
import threading
from pathlib import Path
from typing import Any, Protocol

"""
Small key-value state stores.

The location layer remembers a single "permission previously denied" flag, and the
search history keeps saved places and recent searches. None of these need a
database; they need a durable JSON blob that survives restarts.

- `InMemoryStateStore`: process-local dict (tests, ephemeral sessions).
- `JsonFileStateStore`: one JSON object on disk, written via temp file + atomic
  replace so a crash never leaves a half-written file behind.
"""

logger = logging.getLogger(__name__)


class StateStore(Protocol):
    """Key-value capability injected into LocationProvider and the history helpers."""

    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryStateStore:
    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = dict(initial or {})

    def get(self, key: str) -> Any | None:
        return self._data.get(key)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStateStore:
    """A filesystem-backed key-value store (single JSON object per file)."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_all(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            # A corrupt state file only loses remembered preferences; start over.
            logger.warning("Ignoring unreadable state file %s: %s", self._path, exc)
            return {}
        return raw if isinstance(raw, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(".tmp")
        tmp.write_text(json.dumps(data, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self._path)

    def get(self, key: str) -> Any | None:
        with self._lock:
            return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

    def delete(self, key: str) -> None:
        with self._lock:
            data = self._read_all()
            if key not in data:
                return
            del data[key]
            self._write_all(data)

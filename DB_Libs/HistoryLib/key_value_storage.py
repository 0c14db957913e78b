"""
Durable key-value storage for the AI Drawing Book.

The history ring persists itself as plain string values under fixed keys,
the same way a browser's local storage would hold it. ``JsonFileStorage``
keeps all keys in one JSON object on disk and rewrites it atomically on
every change; ``MemoryStorage`` is the in-process equivalent.

Classes:
    KeyValueStorage: Protocol implemented by every storage backend
    JsonFileStorage: JSON file backed storage
    MemoryStorage: Dictionary backed storage
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol

logger = logging.getLogger(__name__)


class KeyValueStorage(Protocol):
    """String key to string value store."""

    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryStorage:
    """In-memory storage, mainly for tests and ephemeral sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._values: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)

    def remove(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self):
        return sorted(self._values)


class JsonFileStorage:
    """
    Storage persisted as a single JSON object file.

    Every ``set``/``remove`` rewrites the file through a temporary file and
    ``os.replace`` so a crash never leaves a half-written store behind.

    Example:
        >>> storage = JsonFileStorage(Path("~/.drawing_book/storage.json").expanduser())
        >>> storage.set("drawingHistory", "[]")
        >>> storage.get("drawingHistory")
        '[]'
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._values = self._load()

    def _load(self) -> Dict[str, str]:
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (json.JSONDecodeError, OSError) as exc:
            logger.error(f"Failed to read storage file {self.path}: {exc}")
            return {}

        if not isinstance(payload, dict):
            logger.error(f"Storage file {self.path} does not hold a JSON object, ignoring it")
            return {}

        return {str(key): str(value) for key, value in payload.items() if value is not None}

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(self._values, handle, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._flush()

"""
Key-value storage backends for persisted engine state.

Each backend exposes the same two coroutines as the browser's local storage:
`get(key)` and `set(key, value)`. Values are JSON-compatible documents; a
`set` either replaces the whole document or leaves the previous one intact.
"""
from __future__ import annotations

import asyncio
import copy
import json
import os
import tempfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional

from error_handling import BrowserApiError


class KeyValueStorage(ABC):
    """Abstract key-value storage."""

    @abstractmethod
    async def get(self, key: str) -> Optional[Any]:
        """Return the stored document for `key`, or None if absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Replace the stored document for `key` as a single unit."""


class MemoryStorage(KeyValueStorage):
    """In-process storage. Documents are deep-copied in and out."""

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = copy.deepcopy(initial) if initial else {}
        self.write_count = 0

    async def get(self, key: str) -> Optional[Any]:
        return copy.deepcopy(self._data.get(key))

    async def set(self, key: str, value: Any) -> None:
        # Round-trip through JSON so unserializable values fail like on disk
        self._data[key] = json.loads(json.dumps(value))
        self.write_count += 1

    def snapshot(self) -> Dict[str, Any]:
        return copy.deepcopy(self._data)


class JsonFileStorage(KeyValueStorage):
    """
    Storage backed by one JSON file holding every key.

    Writes go to a temporary file in the same directory which then replaces
    the original, so readers never observe a half-written document.
    """

    def __init__(self, path: os.PathLike):
        self.path = Path(path).expanduser()

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise BrowserApiError(f"Storage file unreadable: {self.path}", details=str(e)) from e
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=f".{self.path.name}.", dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(data, fh, indent=2)
                fh.write("\n")
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    async def get(self, key: str) -> Optional[Any]:
        data = await asyncio.to_thread(self._read_all)
        return data.get(key)

    async def set(self, key: str, value: Any) -> None:
        def _update() -> None:
            data = self._read_all()
            data[key] = value
            self._write_all(data)

        try:
            await asyncio.to_thread(_update)
        except (OSError, TypeError, ValueError) as e:
            raise BrowserApiError(f"Failed to write storage file: {self.path}", details=str(e)) from e

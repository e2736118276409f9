import asyncio
import json

import pytest

from error_handling import BrowserApiError
from session_storage import JsonFileStorage, MemoryStorage


def test_memory_storage_copies_values():
    storage = MemoryStorage()
    value = {"sessions": [{"name": "A"}]}
    asyncio.run(storage.set("sessions", value))
    value["sessions"].append({"name": "B"})

    loaded = asyncio.run(storage.get("sessions"))
    assert loaded == {"sessions": [{"name": "A"}]}
    loaded["sessions"].clear()
    assert asyncio.run(storage.get("sessions")) == {"sessions": [{"name": "A"}]}


def test_memory_storage_rejects_unserializable_values():
    storage = MemoryStorage()
    with pytest.raises(TypeError):
        asyncio.run(storage.set("sessions", {"bad": object()}))
    assert asyncio.run(storage.get("sessions")) is None


def test_json_file_storage_round_trip(tmp_path):
    path = tmp_path / "nested" / "storage.json"
    storage = JsonFileStorage(path)
    assert asyncio.run(storage.get("sessions")) is None

    asyncio.run(storage.set("sessions", {"sessions": []}))
    asyncio.run(storage.set("bookmarks", [1, 2]))

    assert json.loads(path.read_text()) == {"sessions": {"sessions": []}, "bookmarks": [1, 2]}
    assert asyncio.run(JsonFileStorage(path).get("bookmarks")) == [1, 2]
    assert [p.name for p in path.parent.iterdir()] == ["storage.json"]


def test_json_file_storage_failed_write_keeps_previous_document(tmp_path):
    path = tmp_path / "storage.json"
    storage = JsonFileStorage(path)
    asyncio.run(storage.set("sessions", {"sessions": ["kept"]}))

    with pytest.raises(BrowserApiError):
        asyncio.run(storage.set("sessions", {"bad": object()}))

    assert json.loads(path.read_text()) == {"sessions": {"sessions": ["kept"]}}
    assert [p.name for p in tmp_path.iterdir()] == ["storage.json"]


def test_json_file_storage_unreadable_file(tmp_path):
    path = tmp_path / "storage.json"
    path.write_text("{broken")
    with pytest.raises(BrowserApiError, match="unreadable"):
        asyncio.run(JsonFileStorage(path).get("sessions"))

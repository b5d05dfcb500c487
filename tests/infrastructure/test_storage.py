"""Tests for credential storage scopes."""

from __future__ import annotations

import json
from pathlib import Path

from resilient_api_client.infrastructure import InMemoryStorage, JsonFileStorage


def test_in_memory_storage_round_trip() -> None:
    storage = InMemoryStorage()

    storage.set_item("accessToken", "abc")
    assert storage.get_item("accessToken") == "abc"

    storage.remove_item("accessToken")
    storage.remove_item("accessToken")
    assert storage.get_item("accessToken") is None


def test_json_file_storage_persists_across_instances(tmp_path: Path) -> None:
    """Verify that a second storage on the same path sees earlier writes."""
    path = tmp_path / "nested" / "credentials.json"

    JsonFileStorage(path).set_item("rememberMe", "false")

    assert JsonFileStorage(path).get_item("rememberMe") == "false"
    assert json.loads(path.read_text(encoding="utf-8")) == {"rememberMe": "false"}
    assert not path.with_suffix(".json.tmp").exists()


def test_json_file_storage_remove_item(tmp_path: Path) -> None:
    storage = JsonFileStorage(tmp_path / "credentials.json")
    storage.set_item("accessToken", "abc")
    storage.set_item("rememberMe", "true")

    storage.remove_item("accessToken")

    assert storage.get_item("accessToken") is None
    assert storage.get_item("rememberMe") == "true"


def test_missing_file_reads_as_empty(tmp_path: Path) -> None:
    storage = JsonFileStorage(tmp_path / "absent.json")

    assert storage.get_item("accessToken") is None
    storage.remove_item("accessToken")
    assert not (tmp_path / "absent.json").exists()


def test_corrupt_file_reads_as_empty(tmp_path: Path) -> None:
    """Verify that unreadable JSON is treated as no stored values."""
    path = tmp_path / "credentials.json"
    path.write_text("{not json", encoding="utf-8")
    storage = JsonFileStorage(path)

    assert storage.get_item("accessToken") is None

    storage.set_item("accessToken", "abc")
    assert storage.get_item("accessToken") == "abc"

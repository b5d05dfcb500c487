"""Key/value storage scopes for credentials.

Usage example:
    from pathlib import Path

    from resilient_api_client.infrastructure.storage import InMemoryStorage, JsonFileStorage

    durable = JsonFileStorage(Path("data/credentials.json"))
    session = InMemoryStorage()
    durable.set_item("rememberMe", "true")
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import override

from ..observability import get_logger
from ..protocols import KeyValueStorage
from .validation import IncomingDataError, validate_json_as

logger = get_logger("resilient_api_client.infrastructure.storage")


def _empty_items() -> dict[str, str]:
    return {}


@dataclass
class InMemoryStorage(KeyValueStorage):
    """Process-lifetime storage (the session scope)."""

    items: dict[str, str] = field(default_factory=_empty_items)

    @override
    def get_item(self, key: str) -> str | None:
        return self.items.get(key)

    @override
    def set_item(self, key: str, value: str) -> None:
        self.items[key] = value

    @override
    def remove_item(self, key: str) -> None:
        self.items.pop(key, None)


@dataclass
class JsonFileStorage(KeyValueStorage):
    """Durable storage backed by a single JSON object file.

    Writes go through a temporary file and an atomic rename. A corrupt or
    unreadable file is treated as empty.
    """

    path: Path

    def __post_init__(self) -> None:
        self.path = Path(self.path)

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            return validate_json_as(dict[str, str], self.path.read_bytes())
        except (IncomingDataError, OSError):
            logger.warning("Ignoring unreadable credential storage at %s", self.path)
            return {}

    def _save(self, items: dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(items, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    @override
    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    @override
    def set_item(self, key: str, value: str) -> None:
        items = self._load()
        items[key] = value
        self._save(items)

    @override
    def remove_item(self, key: str) -> None:
        items = self._load()
        if key in items:
            del items[key]
            self._save(items)

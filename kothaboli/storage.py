"""Local key/value storage for the three durable records."""

from __future__ import annotations

import json
import os
import tempfile
from importlib import resources
from pathlib import Path
from typing import Any

import jsonschema

from .paths import record_path, storage_dir

STORIES_KEY = "stories"
ACTIVE_ID_KEY = "active_id"
SETTINGS_KEY = "settings"


class StorageError(RuntimeError):
    """Durable storage could not be read or written."""


class KeyValueStorage:
    """One JSON document per key under the workspace storage directory."""

    def __init__(self, root: Path) -> None:
        self._root = root

    def get(self, key: str) -> Any | None:
        path = record_path(self._root, key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise StorageError(f"Could not read record {key!r} at {path}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        path = record_path(self._root, key)
        payload = json.dumps(value, ensure_ascii=False, indent=2, sort_keys=True) + "\n"
        try:
            storage_dir(self._root).mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{key}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(payload)
                os.replace(tmp_name, path)
            except BaseException:
                if os.path.exists(tmp_name):
                    os.remove(tmp_name)
                raise
        except OSError as exc:
            raise StorageError(f"Could not write record {key!r} at {path}: {exc}") from exc

    def remove(self, key: str) -> None:
        path = record_path(self._root, key)
        try:
            path.unlink(missing_ok=True)
        except OSError as exc:
            raise StorageError(f"Could not remove record {key!r} at {path}: {exc}") from exc


class MemoryStorage:
    """In-process storage with the same interface; records are JSON round-tripped."""

    def __init__(self, fail_writes: bool = False) -> None:
        self.records: dict[str, str] = {}
        self.fail_writes = fail_writes
        self.writes: list[str] = []

    def get(self, key: str) -> Any | None:
        raw = self.records.get(key)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StorageError(f"Could not read record {key!r}: {exc}") from exc

    def set(self, key: str, value: Any) -> None:
        if self.fail_writes:
            raise StorageError(f"Could not write record {key!r}: storage unavailable")
        self.records[key] = json.dumps(value, ensure_ascii=False)
        self.writes.append(key)

    def remove(self, key: str) -> None:
        self.records.pop(key, None)


def load_schema(name: str) -> dict[str, Any]:
    schema_path = resources.files("kothaboli.schemas").joinpath(name)
    with schema_path.open("r", encoding="utf-8") as handle:
        return json.load(handle)


def validate_record(data: Any, schema_name: str) -> list[str]:
    validator = jsonschema.Draft202012Validator(load_schema(schema_name))
    errors = sorted(validator.iter_errors(data), key=lambda e: e.json_path)
    return [error.message for error in errors]

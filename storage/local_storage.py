"""
Client-local key-value storage.

The selection flow writes the chosen campus through this port instead of a
process-wide global, so tests can swap in ``MemoryKeyValueStore``. The CLI uses
``JsonFileKeyValueStore``, a single JSON object on disk that plays the role of
the browser's local storage.
"""

from __future__ import annotations

import json
import os
import tempfile
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from telemetry.logging_utils import get_logger

logger = get_logger(__name__)

DEFAULT_LOCAL_STORAGE_PATH = Path.home() / ".campus_services" / "local_storage.json"


class KeyValueStore(Protocol):
    def put(self, key: str, value: str) -> None:
        ...

    def get(self, key: str) -> Optional[str]:
        ...


class MemoryKeyValueStore:
    def __init__(self) -> None:
        self.values: Dict[str, str] = {}

    def put(self, key: str, value: str) -> None:
        self.values[key] = value

    def get(self, key: str) -> Optional[str]:
        return self.values.get(key)


class JsonFileKeyValueStore:
    """String values kept in one JSON file; every ``put`` replaces the file atomically."""

    def __init__(self, path: Union[str, Path, None] = None) -> None:
        self.path = Path(path or os.getenv("CAMPUS_LOCAL_STORAGE") or DEFAULT_LOCAL_STORAGE_PATH).expanduser()

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            # Unreadable contents are treated as empty; the next put rewrites the file.
            logger.warning("local_storage_unreadable", extra={"path": str(self.path), "error": str(exc)[:200]})
            return {}
        if not isinstance(data, dict):
            logger.warning("local_storage_unreadable", extra={"path": str(self.path), "error": "not a JSON object"})
            return {}
        return data

    def put(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".local_storage-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

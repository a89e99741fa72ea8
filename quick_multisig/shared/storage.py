"""Key-value persistence for saved multisig configurations."""

from __future__ import annotations

import json
import os
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

from quick_multisig.shared.logging import get_logger

logger = get_logger(__name__)

STORAGE_DIR_ENV = "QUICK_MULTISIG_DIR"


def default_storage_dir() -> Path:
    configured = os.getenv(STORAGE_DIR_ENV)
    if configured:
        return Path(configured)
    return Path.home() / ".config" / "quick-multisig"


class KeyValueStore(Protocol):
    def get(self, key: str) -> dict[str, Any] | None: ...

    def set(self, key: str, value: dict[str, Any]) -> bool: ...

    def remove(self, key: str) -> bool: ...


class MemoryStore:
    """In-process store, mostly for tests and ephemeral sessions."""

    def __init__(self, initial: dict[str, dict[str, Any]] | None = None):
        self._data: dict[str, str] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> dict[str, Any] | None:
        raw = self._data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: dict[str, Any]) -> bool:
        self._data[key] = json.dumps(value)
        return True

    def remove(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    def __contains__(self, key: str) -> bool:
        return key in self._data


class JsonFileStore:
    """One JSON file per key, wrapped in a versioned envelope.

    Read and write failures are logged and reported as missing data or a
    ``False`` return, never raised.
    """

    STORE_VERSION = 1

    def __init__(self, storage_dir: Path | None = None):
        if storage_dir is None:
            storage_dir = default_storage_dir()
        self.storage_dir = Path(storage_dir)

    def _path_for(self, key: str) -> Path:
        safe_key = re.sub(r"[^A-Za-z0-9._-]", "_", key)
        return self.storage_dir / f"{safe_key}.json"

    def get(self, key: str) -> dict[str, Any] | None:
        path = self._path_for(key)
        if not path.exists():
            return None

        try:
            with open(path, "r", encoding="utf-8") as f:
                envelope = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning("Failed to read stored data for '%s': %s", key, e)
            return None

        if not isinstance(envelope, dict):
            logger.warning("Stored data for '%s' is not an object, ignoring", key)
            return None

        version = envelope.get("version", 0)
        if not isinstance(version, int) or version < self.STORE_VERSION:
            logger.warning("Stored data for '%s' has version %s, ignoring", key, version)
            return None

        data = envelope.get("data")
        if not isinstance(data, dict):
            logger.warning("Stored data for '%s' has no payload, ignoring", key)
            return None
        return data

    def set(self, key: str, value: dict[str, Any]) -> bool:
        path = self._path_for(key)
        envelope = {
            "version": self.STORE_VERSION,
            "data": value,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        tmp_path = path.with_suffix(".json.tmp")
        try:
            self.storage_dir.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(envelope, f, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            logger.error("Failed to save data for '%s': %s", key, e)
            return False
        return True

    def remove(self, key: str) -> bool:
        path = self._path_for(key)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error("Failed to remove stored data for '%s': %s", key, e)
            return False
        return True

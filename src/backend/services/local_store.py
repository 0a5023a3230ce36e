"""
Local persistent key-value store.

Small JSON-file backed store used as a cache for banner URLs and as the first
place to look for the ``voting_ended`` and ``last_known_ip`` flags before the
platform is consulted.
"""

import json
import os
from pathlib import Path
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)


class LocalStore:
    """String key-value store persisted to a single JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._data: dict[str, str] = self._load()

    def _load(self) -> dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("local_store_unreadable", path=str(self.path), error=str(e))
            return {}
        if not isinstance(raw, dict):
            return {}
        return {str(k): str(v) for k, v in raw.items()}

    def _flush(self) -> None:
        # Write to a sibling temp file then swap it in
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(self._data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp_path, self.path)

    def get(self, key: str) -> Optional[str]:
        """Get a value, or None if the key is not set."""
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        """Set a value and persist the store."""
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        """Remove a key if present."""
        if self._data.pop(key, None) is not None:
            self._flush()

    def remove_many(self, keys: list[str]) -> None:
        """Remove several keys with a single write."""
        removed = [self._data.pop(key) for key in keys if key in self._data]
        if removed:
            self._flush()

    def reload(self) -> None:
        """Re-read the store from disk."""
        self._data = self._load()

    def __contains__(self, key: object) -> bool:
        return key in self._data

"""
Time-limited key-value caches for external metadata.

``CacheStore`` is the interface the metadata client depends on. Two
implementations:

  MemoryCacheStore   in-process dict; tests and one-shot CLI runs
  JsonFileCacheStore a single JSON file on disk, shared across runs

Each entry is stored with the epoch second it was written. An entry older
than ``ttl_seconds`` is treated as missing and removed on read.

File layout::

    {
      "types":        {"value": ["Dog", "Cat"], "stored_at": 1760000000.0},
      "breeds-dog":   {"value": ["Beagle"],     "stored_at": 1760000000.0}
    }
"""

from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional

from pawmatch.utils.time_utils import utc_epoch_seconds

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 30 * 24 * 60 * 60


class CacheStore(ABC):
    """Key-value cache with per-entry expiry."""

    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = utc_epoch_seconds,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def get(self, key: str) -> Optional[Any]:
        """Return the cached value, or ``None`` if absent or expired."""
        entry = self._read(key)
        if entry is None:
            return None
        stored_at = entry.get("stored_at") if isinstance(entry, dict) else None
        if not isinstance(stored_at, (int, float)) or isinstance(stored_at, bool):
            logger.warning("Cache entry %r is malformed; discarding", key)
            self.delete(key)
            return None
        if self.clock() - stored_at > self.ttl_seconds:
            logger.debug("Cache entry %r expired", key)
            self.delete(key)
            return None
        return entry.get("value")

    def set(self, key: str, value: Any) -> None:
        self._write(key, {"value": value, "stored_at": self.clock()})

    @abstractmethod
    def delete(self, key: str) -> None: ...

    @abstractmethod
    def clear(self) -> None: ...

    @abstractmethod
    def _read(self, key: str) -> Optional[dict[str, Any]]: ...

    @abstractmethod
    def _write(self, key: str, entry: dict[str, Any]) -> None: ...


class MemoryCacheStore(CacheStore):
    def __init__(
        self,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = utc_epoch_seconds,
    ) -> None:
        super().__init__(ttl_seconds, clock)
        self._entries: dict[str, dict[str, Any]] = {}

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def _read(self, key: str) -> Optional[dict[str, Any]]:
        return self._entries.get(key)

    def _write(self, key: str, entry: dict[str, Any]) -> None:
        self._entries[key] = entry


class JsonFileCacheStore(CacheStore):
    """Cache persisted to one JSON file; rewritten in full on every change.

    An unreadable or corrupt file is logged and treated as empty.
    """

    def __init__(
        self,
        path: str | Path,
        ttl_seconds: float = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] = utc_epoch_seconds,
    ) -> None:
        super().__init__(ttl_seconds, clock)
        self.path = Path(path)

    def delete(self, key: str) -> None:
        entries = self._load()
        if entries.pop(key, None) is not None:
            self._save(entries)

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
        logger.info("Cleared metadata cache at %s", self.path)

    def _read(self, key: str) -> Optional[dict[str, Any]]:
        return self._load().get(key)

    def _write(self, key: str, entry: dict[str, Any]) -> None:
        entries = self._load()
        entries[key] = entry
        self._save(entries)

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("Ignoring unreadable cache file %s: %s", self.path, exc)
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, entries: dict[str, dict[str, Any]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(entries, f, indent=2)
        tmp.replace(self.path)

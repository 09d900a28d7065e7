"""
Two-tier cache: in-process map in front of a pluggable storage backend.

Backends:
- MemoryBackend: nothing persisted (process-lifetime cache only)
- JsonFileBackend: one JSON map per file, rewritten wholesale on every
  store. Only for bounded key sets (session card names, price map).
- DirectoryBackend: one file per key. For anything that can grow with the
  catalog (per-card upstream responses).

Callers see one interface regardless of backend. Disk failures never
escape: unreadable entries are cache misses, failed writes are logged and
the in-memory tier stays authoritative.
"""

import json
import logging
import re
import time
from collections.abc import Iterator
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any, Protocol

from manabase.models.failure import CacheReadError, CacheWriteError

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def normalize_key(name: str) -> str:
    """Lookup key for a card name: lowercased and trimmed."""
    return name.strip().lower()


def sanitize_key(key: str) -> str:
    """Filesystem-safe form of a key: runs of non-alphanumerics become "_"."""
    return _NON_ALNUM.sub("_", key.lower())


def _seconds(ttl: timedelta | float) -> float:
    return ttl.total_seconds() if isinstance(ttl, timedelta) else float(ttl)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """A cached value with the time it was stored (epoch seconds)."""

    key: str
    data: Any
    timestamp: float

    def age(self, now: float | None = None) -> float:
        return (time.time() if now is None else now) - self.timestamp

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "data": self.data, "timestamp": self.timestamp}

    @classmethod
    def from_dict(cls, raw: Any) -> "CacheEntry":
        if not isinstance(raw, dict) or "data" not in raw or "key" not in raw:
            raise CacheReadError(f"Malformed cache entry: {type(raw).__name__}")
        try:
            timestamp = float(raw.get("timestamp", 0))
        except (TypeError, ValueError) as e:
            raise CacheReadError("Malformed cache timestamp") from e
        return cls(key=str(raw["key"]), data=raw["data"], timestamp=timestamp)


class CacheBackend(Protocol):
    """Durable storage behind the in-memory tier."""

    def load(self, key: str) -> CacheEntry | None: ...

    def store(self, entry: CacheEntry) -> None: ...

    def entries(self) -> Iterator[CacheEntry]: ...


class MemoryBackend:
    """Backend that persists nothing."""

    def load(self, key: str) -> CacheEntry | None:
        return None

    def store(self, entry: CacheEntry) -> None:
        return None

    def entries(self) -> Iterator[CacheEntry]:
        return iter(())


class JsonFileBackend:
    """
    All entries in one JSON object keyed by cache key.

    The file is read lazily on first access and rewritten in full on
    every store.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._entries: dict[str, CacheEntry] | None = None

    def _load_all(self) -> dict[str, CacheEntry]:
        if self._entries is not None:
            return self._entries

        self._entries = {}
        if not self.path.exists():
            return self._entries

        try:
            with open(self.path, encoding="utf-8-sig") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheReadError(f"Could not read {self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise CacheReadError(f"{self.path} does not contain a JSON object")

        for key, value in raw.items():
            try:
                self._entries[key] = CacheEntry.from_dict(value)
            except CacheReadError:
                logger.warning("Skipping malformed entry %r in %s", key, self.path)
        return self._entries

    def load(self, key: str) -> CacheEntry | None:
        return self._load_all().get(key)

    def store(self, entry: CacheEntry) -> None:
        try:
            entries = self._load_all()
        except CacheReadError:
            # Unreadable file gets replaced by what we know now
            self._entries = entries = {}
        entries[entry.key] = entry

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.path, "w", encoding="utf-8") as f:
                json.dump({k: e.to_dict() for k, e in entries.items()}, f, indent=2)
        except (OSError, TypeError, ValueError) as e:
            raise CacheWriteError(f"Could not write {self.path}: {e}") from e

    def entries(self) -> Iterator[CacheEntry]:
        return iter(list(self._load_all().values()))


class DirectoryBackend:
    """One <sanitized key>.json file per entry under a directory."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def path_for(self, key: str) -> Path:
        return self.directory / f"{sanitize_key(key)}.json"

    def load(self, key: str) -> CacheEntry | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            with open(path, encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            raise CacheReadError(f"Could not read {path}: {e}") from e
        return CacheEntry.from_dict(raw)

    def store(self, entry: CacheEntry) -> None:
        path = self.path_for(entry.key)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with open(path, "w", encoding="utf-8") as f:
                json.dump(entry.to_dict(), f, indent=2)
        except (OSError, TypeError, ValueError) as e:
            raise CacheWriteError(f"Could not write {path}: {e}") from e

    def entries(self) -> Iterator[CacheEntry]:
        if not self.directory.exists():
            return
        for path in sorted(self.directory.glob("*.json")):
            try:
                with open(path, encoding="utf-8") as f:
                    yield CacheEntry.from_dict(json.load(f))
            except (OSError, ValueError, CacheReadError):
                logger.warning("Skipping unreadable cache file %s", path)


class Cache:
    """
    In-memory map backed by a storage backend.

    Lookup order is memory, then backend; backend hits are promoted to
    memory. Values must be JSON-serializable and are treated as
    immutable once stored.
    """

    def __init__(self, backend: CacheBackend | None = None, name: str = "cache") -> None:
        self.backend: CacheBackend = backend or MemoryBackend()
        self.name = name
        self._memory: dict[str, CacheEntry] = {}

    def __len__(self) -> int:
        return len(self._memory)

    def get(self, key: str) -> CacheEntry | None:
        entry = self._memory.get(key)
        if entry is not None:
            logger.debug("%s: memory hit for %r", self.name, key)
            return entry

        try:
            entry = self.backend.load(key)
        except CacheReadError as e:
            logger.warning("%s: treating unreadable entry %r as a miss: %s", self.name, key, e)
            return None

        if entry is None:
            logger.debug("%s: miss for %r", self.name, key)
            return None

        logger.debug("%s: disk hit for %r", self.name, key)
        self._memory[key] = entry
        return entry

    def set(self, key: str, data: Any, timestamp: float | None = None) -> CacheEntry:
        if timestamp is None:
            timestamp = time.time()
        entry = CacheEntry(key=key, data=data, timestamp=timestamp)
        self._memory[key] = entry
        try:
            self.backend.store(entry)
        except CacheWriteError as e:
            logger.warning("%s: failed to persist %r: %s", self.name, key, e)
        return entry

    def is_expired(self, key: str, ttl: timedelta | float, now: float | None = None) -> bool:
        """True when the key is absent or older than ttl."""
        entry = self.get(key)
        if entry is None:
            return True
        return entry.age(now) > _seconds(ttl)

    def get_fresh(self, key: str, ttl: timedelta | float) -> CacheEntry | None:
        """Entry for key, or None when absent or expired."""
        if self.is_expired(key, ttl):
            return None
        return self.get(key)

    def entries(self) -> list[CacheEntry]:
        """Every known entry, memory taking precedence over the backend."""
        merged: dict[str, CacheEntry] = {}
        try:
            for entry in self.backend.entries():
                merged[entry.key] = entry
        except CacheReadError as e:
            logger.warning("%s: could not enumerate stored entries: %s", self.name, e)
        merged.update(self._memory)
        return list(merged.values())

    def clear_memory(self) -> None:
        """Drop the in-process tier; stored entries are untouched."""
        self._memory.clear()

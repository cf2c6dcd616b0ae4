"""
Key-value store - the persistence collaborator the pipeline talks to.

Provides:
- MemoryKeyValueStore: in-process store with TTL, used by tests and dev
- DiskKeyValueStore: JSON envelope files on disk with TTL
- create_kv_store: factory selected by KV_BACKEND

The production engine lives outside this service; these two stand in for it.
Values are str or bytes.
"""

import base64
import hashlib
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

logger = logging.getLogger(__name__)

Value = str | bytes


@dataclass
class KVEntry:
    key: str
    value: Value
    expires_at: datetime | None

    def is_expired(self) -> bool:
        return self.expires_at is not None and self.expires_at <= datetime.now(timezone.utc)


def _expiry(ttl: int | None) -> datetime | None:
    return datetime.now(timezone.utc) + timedelta(seconds=ttl) if ttl else None


class KeyValueStore(ABC):
    """Abstract base class for key-value backends."""

    @abstractmethod
    async def get(self, key: str) -> Value | None:
        """Get a value, or None when missing or expired."""
        pass

    @abstractmethod
    async def put(self, key: str, value: Value, ttl: int | None = None) -> None:
        """Store a value with optional TTL in seconds."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        pass

    @abstractmethod
    async def list_keys(self, prefix: str = "") -> list[str]:
        """List live keys starting with prefix."""
        pass

    async def get_json(self, key: str):
        raw = await self.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    async def put_json(self, key: str, value, ttl: int | None = None) -> None:
        await self.put(key, json.dumps(value), ttl)


class MemoryKeyValueStore(KeyValueStore):
    """In-memory store with lazy TTL expiry."""

    def __init__(self):
        self._entries: dict[str, KVEntry] = {}

    async def get(self, key: str) -> Value | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired():
            self._entries.pop(key, None)
            return None
        return entry.value

    async def put(self, key: str, value: Value, ttl: int | None = None) -> None:
        self._entries[key] = KVEntry(key=key, value=value, expires_at=_expiry(ttl))

    async def delete(self, key: str) -> None:
        self._entries.pop(key, None)

    async def list_keys(self, prefix: str = "") -> list[str]:
        keys = []
        for key, entry in list(self._entries.items()):
            if entry.is_expired():
                self._entries.pop(key, None)
            elif key.startswith(prefix):
                keys.append(key)
        return sorted(keys)

    @property
    def size(self) -> int:
        return len(self._entries)


class DiskKeyValueStore(KeyValueStore):
    """Persistent store: one JSON envelope file per key."""

    def __init__(self, data_dir: Path):
        self.data_dir = data_dir
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _key_to_path(self, key: str) -> Path:
        hashed = hashlib.sha256(key.encode()).hexdigest()[:32]
        return self.data_dir / f"{hashed}.json"

    def _read_envelope(self, path: Path) -> dict | None:
        try:
            data = json.loads(path.read_text())
            expires_at = data.get("expires_at")
            if expires_at and datetime.fromisoformat(expires_at) <= datetime.now(timezone.utc):
                path.unlink(missing_ok=True)
                return None
            return data
        except (json.JSONDecodeError, KeyError, ValueError):
            logger.warning(f"Removing corrupted KV file {path.name}")
            path.unlink(missing_ok=True)
            return None

    async def get(self, key: str) -> Value | None:
        path = self._key_to_path(key)
        if not path.exists():
            return None

        data = self._read_envelope(path)
        # Verify key matches (handle hash collisions)
        if data is None or data.get("key") != key:
            return None

        if data.get("encoding") == "base64":
            return base64.b64decode(data["value"])
        return data["value"]

    async def put(self, key: str, value: Value, ttl: int | None = None) -> None:
        expires_at = _expiry(ttl)
        data = {
            "key": key,
            "expires_at": expires_at.isoformat() if expires_at else None,
        }
        if isinstance(value, bytes):
            data["encoding"] = "base64"
            data["value"] = base64.b64encode(value).decode("ascii")
        else:
            data["encoding"] = "utf-8"
            data["value"] = value

        self._key_to_path(key).write_text(json.dumps(data))

    async def delete(self, key: str) -> None:
        self._key_to_path(key).unlink(missing_ok=True)

    async def list_keys(self, prefix: str = "") -> list[str]:
        keys = []
        for file in self.data_dir.glob("*.json"):
            data = self._read_envelope(file)
            if data and data.get("key", "").startswith(prefix):
                keys.append(data["key"])
        return sorted(keys)


def create_kv_store(backend: str, data_dir: str | Path | None = None) -> KeyValueStore:
    """Factory function to create a store from the KV_BACKEND setting."""
    if backend == "disk":
        return DiskKeyValueStore(Path(data_dir or "./data/kv"))
    if backend == "memory":
        return MemoryKeyValueStore()
    raise ValueError(f"Unknown KV backend: {backend}")

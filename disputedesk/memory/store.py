from __future__ import annotations

import os
import json
import asyncio
import logging
import re
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncIterator, Dict, Optional, Protocol

from pydantic import ValidationError as SchemaError

from disputedesk.errors import StorageFailure
from disputedesk.models.message import SessionState

logger = logging.getLogger(__name__)

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


# =========================
# Backends (one durable record per session key)
# =========================
class SessionBackend(Protocol):
    def read(self, key: str) -> Optional[dict]: ...
    def write(self, key: str, record: dict) -> None: ...


class MemorySessionBackend:
    """In-process records. Stored as JSON text so callers never share live objects."""

    def __init__(self):
        self._records: Dict[str, str] = {}

    def read(self, key: str) -> Optional[dict]:
        raw = self._records.get(key)
        return json.loads(raw) if raw is not None else None

    def write(self, key: str, record: dict) -> None:
        self._records[key] = json.dumps(record, ensure_ascii=False)

    def keys(self) -> list[str]:
        return sorted(self._records)


class FileSessionBackend:
    """One JSON file per session under `root`, replaced atomically on every write."""

    def __init__(self, root: str | Path):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"unsafe session key: {key!r}")
        return self.root / f"{key}.json"

    def read(self, key: str) -> Optional[dict]:
        path = self._path(key)
        if not path.exists():
            return None
        return json.loads(path.read_text(encoding="utf-8"))

    def write(self, key: str, record: dict) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(record, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp, path)


# =========================
# Keyed locks
# =========================
class _KeyedLocks:
    """One asyncio.Lock per key, dropped again once nobody holds or waits on it."""

    def __init__(self):
        self._locks: Dict[str, asyncio.Lock] = {}
        self._users: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, key: str) -> AsyncIterator[None]:
        lock = self._locks.setdefault(key, asyncio.Lock())
        self._users[key] = self._users.get(key, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._users[key] -= 1
            if self._users[key] == 0:
                del self._users[key]
                del self._locks[key]

    def __len__(self) -> int:
        return len(self._locks)


# =========================
# Store
# =========================
class SessionStore:
    """Loads and saves SessionState, one writer in flight per session key.

    Callers wrap a whole turn in `exclusive(key)`; load/save themselves do not lock,
    so they must only be called while holding it.
    """

    def __init__(self, backend: SessionBackend):
        self.backend = backend
        self._locks = _KeyedLocks()

    def exclusive(self, key: str):
        return self._locks.hold(key)

    async def load(self, key: str) -> Optional[SessionState]:
        try:
            record = await asyncio.to_thread(self.backend.read, key)
        except (OSError, ValueError) as e:
            logger.error("Reading session %s failed: %s", key, e, exc_info=True)
            raise StorageFailure() from e
        if record is None:
            return None
        try:
            return SessionState.model_validate(record)
        except SchemaError as e:
            logger.error("Session %s has a corrupt record: %s", key, e)
            raise StorageFailure() from e

    async def load_or_create(self, key: str) -> SessionState:
        state = await self.load(key)
        if state is None:
            logger.debug("Session %s not found; starting empty", key)
            return SessionState()
        return state

    async def save(self, key: str, state: SessionState) -> None:
        try:
            await asyncio.to_thread(self.backend.write, key, state.to_record())
        except (OSError, ValueError, TypeError) as e:
            logger.error("Persisting session %s failed: %s", key, e, exc_info=True)
            raise StorageFailure() from e


def build_store(kind: str, data_dir: str) -> SessionStore:
    if kind == "memory":
        return SessionStore(MemorySessionBackend())
    if kind == "file":
        return SessionStore(FileSessionBackend(data_dir))
    raise ValueError(f"Unknown DISPUTE_STORE: {kind!r} (expected 'file' or 'memory')")

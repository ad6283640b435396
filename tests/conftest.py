"""
Shared fixtures: fixed clock, predictable ids, scripted backends, throwaway stores.
"""
import asyncio
from datetime import datetime, timedelta, timezone
from itertools import count

import pytest

from disputedesk.memory.store import FileSessionBackend, MemorySessionBackend, SessionStore
from disputedesk.settings import Settings


class StepClock:
    """Returns a fixed start time, advancing one second per call."""

    def __init__(self, start=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self):
        current = self.now
        self.now = current + timedelta(seconds=1)
        return current


class ScriptedBackend:
    """Records every call and answers with a fixed reply (or raises)."""

    def __init__(self, reply="Thanks, noted.", error=None, delay=0.0):
        self.reply = reply
        self.error = error
        self.delay = delay
        self.calls = []

    async def __call__(self, model_id, payload):
        self.calls.append((model_id, [dict(m) for m in payload["messages"]]))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.reply


class BrokenBackend(MemorySessionBackend):
    def write(self, key, record):
        raise OSError("disk full")


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def ids():
    seq = count(1)
    return lambda: f"session-{next(seq)}"


@pytest.fixture
def backend():
    return ScriptedBackend()


@pytest.fixture
def memory_store():
    return SessionStore(MemorySessionBackend())


@pytest.fixture
def file_store(tmp_path):
    return SessionStore(FileSessionBackend(tmp_path / "sessions"))


@pytest.fixture
def settings(tmp_path):
    return Settings(provider="none", model_id="test-model", store="memory", data_dir=str(tmp_path), timeout_seconds=0)


@pytest.fixture
def make_client(settings, clock, ids):
    from fastapi.testclient import TestClient
    from disputedesk.main import create_app

    def _make(backend, store=None):
        app = create_app(
            store=store or SessionStore(MemorySessionBackend()),
            backend=backend,
            clock=clock,
            new_id=ids,
            settings=settings,
        )
        return TestClient(app)

    return _make


@pytest.fixture
def scripted():
    return ScriptedBackend


@pytest.fixture
def broken_store():
    return SessionStore(BrokenBackend())

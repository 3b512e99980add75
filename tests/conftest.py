"""
Shared test fixtures.

Provides:
  • an in-process ephemeral store driven by a fake clock
  • a temporary SQLite database (opened/closed per test)
  • a recording email sender and deterministic OTP codes
  • a FastAPI TestClient wired to all of the above via the app lifespan

The `client` fixture builds its own (unopened) database so that the
lifespan opens it on the TestClient's event loop.
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from waitlist.db import WaitlistDB
from waitlist.main import create_app
from waitlist.services.registry import ServiceRegistry
from waitlist.store import MemoryStore
from tests.mocks.services import (
    CodeSequence,
    FakeClock,
    RecordingEmailSender,
    build_registry,
)


# ── Fixtures ───────────────────────────────────────────────────────────────


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def store(clock: FakeClock) -> MemoryStore:
    return MemoryStore(clock=clock)


@pytest.fixture()
def sender() -> RecordingEmailSender:
    return RecordingEmailSender()


@pytest.fixture()
def codes() -> CodeSequence:
    return CodeSequence("123456")


@pytest.fixture()
async def db(tmp_path):
    database = WaitlistDB(str(tmp_path / "test.db"))
    await database.open()
    yield database
    await database.close()


@pytest.fixture()
def registry(store, db, sender, codes) -> ServiceRegistry:
    return build_registry(store, db, sender, codes)


@pytest.fixture()
def client(tmp_path, store, sender, codes) -> TestClient:
    """TestClient running the full lifespan against a temp DB and the in-process store."""
    http_registry = build_registry(store, WaitlistDB(str(tmp_path / "http.db")), sender, codes)
    app = create_app(lambda: http_registry)

    with TestClient(app, raise_server_exceptions=False) as tc:
        yield tc

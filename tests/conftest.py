from __future__ import annotations

import os
from collections.abc import Callable, Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from signatures_queue.db.schema import metadata
from signatures_queue.db.tx import DbFactory
from signatures_queue.queue.database import DatabaseQueue


class FakeClock:
    """Settable clock for lease expiry tests."""

    def __init__(self, now: float = 1_700_000_000) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def db_url(tmp_path) -> str:
    """
    Database URL for unit tests.

    Set SIGNATURES_QUEUE_TEST_DB_URL to run against a real server; otherwise
    every test gets its own SQLite file.
    """
    return os.environ.get("SIGNATURES_QUEUE_TEST_DB_URL") or f"sqlite:///{tmp_path / 'signatures.db'}"


@pytest.fixture
def engine(db_url: str) -> Iterator[Engine]:
    eng = create_engine(db_url, pool_pre_ping=True)
    try:
        with eng.connect() as conn:
            conn.exec_driver_sql("SELECT 1")
    except Exception as exc:  # pragma: no cover
        pytest.fail(
            "Test database is not reachable.\n"
            f"- SIGNATURES_QUEUE_TEST_DB_URL={db_url!r}\n"
            f"- Underlying error: {exc}",
            pytrace=False,
        )

    metadata.drop_all(eng)
    metadata.create_all(eng)
    yield eng
    metadata.drop_all(eng)
    eng.dispose()


@pytest.fixture
def db_factory(engine: Engine) -> DbFactory:
    return DbFactory(engine)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def queue_factory(db_factory: DbFactory, clock: FakeClock) -> Callable[..., DatabaseQueue]:
    """
    Factory fixture creating database queues on the test engine.

    Usage:
        queue = queue_factory("validations_queue", lease_seconds=30)
    """

    def _create(name: str, lease_seconds: int = 60) -> DatabaseQueue:
        queue = DatabaseQueue(db_factory, name, lease_seconds=lease_seconds, clock=clock)
        queue.create_queue()
        return queue

    return _create

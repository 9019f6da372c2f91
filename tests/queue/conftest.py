from __future__ import annotations

import os
import uuid
from collections.abc import Callable, Iterator

import pytest
from redis import Redis

from signatures_queue.config import QueueConfig

DEFAULT_TEST_REDIS_URL = "redis://127.0.0.1:6379/0"


@pytest.fixture(scope="session")
def redis_url() -> str:
    return os.environ.get("SIGNATURES_QUEUE_TEST_REDIS_URL", DEFAULT_TEST_REDIS_URL)


@pytest.fixture(scope="session")
def redis_client(redis_url: str) -> Iterator[Redis]:
    """
    Session-scoped Redis client.

    Fails fast when no server answers, so a missing Redis is never mistaken
    for a passing backend. Deselect with ``-m "not redis"`` to run without one.
    """
    client = Redis.from_url(redis_url, decode_responses=False, socket_connect_timeout=0.5)
    try:
        client.ping()
    except Exception as exc:  # pragma: no cover
        client.close()
        pytest.fail(
            "Redis test server is not reachable.\n"
            f"- SIGNATURES_QUEUE_TEST_REDIS_URL={redis_url!r}\n"
            "- Start one (e.g. `docker run -p 6379:6379 redis:7`) or run with -m 'not redis'.\n"
            f"- Underlying error: {exc}",
            pytrace=False,
        )

    yield client
    client.close()


@pytest.fixture
def queue_config_factory(
    redis_client: Redis, request: pytest.FixtureRequest
) -> Iterator[Callable[..., QueueConfig]]:
    """
    Factory fixture creating per-test QueueConfig instances on unique streams.

    Usage:
        config = queue_config_factory(claim_idle_ms=50)
    """
    created: list[str] = []

    def _create(claim_idle_ms: int = 60_000) -> QueueConfig:
        suffix = uuid.uuid4().hex[:10]
        stream_key = f"test_stream_{suffix}"
        created.append(stream_key)
        return QueueConfig(
            stream_key=stream_key,
            consumer_group=f"test_group_{suffix}",
            consumer_name=f"test_consumer_{suffix}",
            claim_idle_ms=claim_idle_ms,
        )

    yield _create

    for stream_key in created:
        try:
            redis_client.delete(stream_key)
        except Exception:
            pass


@pytest.fixture
def queue_config(queue_config_factory: Callable[..., QueueConfig]) -> QueueConfig:
    return queue_config_factory()

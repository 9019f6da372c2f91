from __future__ import annotations

from typing import Optional

from redis import Redis

from ..config import WorkflowConfig
from ..db.tx import DbFactory
from ..errors import ConfigError
from .base import Queue
from .database import DatabaseQueue
from .models import QueueItem
from .redis_streams import RedisStreamsQueue

__all__ = [
    "DatabaseQueue",
    "Queue",
    "QueueItem",
    "RedisStreamsQueue",
    "make_queue",
]


def make_queue(
    config: WorkflowConfig,
    name: str,
    *,
    db_factory: Optional[DbFactory] = None,
    redis: Optional[Redis] = None,
) -> Queue:
    """
    Build the configured queue backend for a (prefixed) queue name.

    The caller owns the connections: pass db_factory for the database
    backend, redis for the Redis backend.
    """
    queue_name = config.queue_name(name)
    if config.queue_backend == "redis":
        if redis is None:
            raise ConfigError("redis client is required for the redis queue backend")
        return RedisStreamsQueue(redis, config.redis_queue_config(queue_name))

    if db_factory is None:
        raise ConfigError("db_factory is required for the database queue backend")
    queue = DatabaseQueue(db_factory, queue_name, lease_seconds=config.lease_seconds)
    queue.create_queue()
    return queue

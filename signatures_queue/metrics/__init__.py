from .registry import (
    BATCH_DURATION_SECONDS,
    BATCH_ITEMS_TOTAL,
    DB_WRITE_LATENCY_SECONDS,
    DB_WRITE_TOTAL,
    QUEUE_DEPTH,
    QUEUE_ITEMS_CLAIMED_TOTAL,
    QUEUE_ITEMS_DELETED_TOTAL,
)

__all__ = [
    "BATCH_DURATION_SECONDS",
    "BATCH_ITEMS_TOTAL",
    "DB_WRITE_LATENCY_SECONDS",
    "DB_WRITE_TOTAL",
    "QUEUE_DEPTH",
    "QUEUE_ITEMS_CLAIMED_TOTAL",
    "QUEUE_ITEMS_DELETED_TOTAL",
]

"""
Prometheus metrics shared by the queue backends, the storage layer and the
batch worker. All metrics live in the default registry.
"""
from prometheus_client import Counter, Gauge, Histogram

BATCH_ITEMS_TOTAL = Counter(
    "signatures_queue_batch_items_total",
    "Queue items handled by the batch worker, by outcome",
    ["queue", "outcome"],
)

BATCH_DURATION_SECONDS = Histogram(
    "signatures_queue_batch_duration_seconds",
    "Wall time of one batch transfer",
    ["queue"],
)

QUEUE_DEPTH = Gauge(
    "signatures_queue_depth",
    "Queue depth observed at the start of the last batch",
    ["queue"],
)

QUEUE_ITEMS_CLAIMED_TOTAL = Counter(
    "signatures_queue_items_claimed_total",
    "Items claimed from a queue",
    ["queue"],
)

QUEUE_ITEMS_DELETED_TOTAL = Counter(
    "signatures_queue_items_deleted_total",
    "Items deleted from a queue",
    ["queue"],
)

DB_WRITE_TOTAL = Counter(
    "signatures_queue_db_write_total",
    "Record inserts by destination table and status",
    ["table", "status"],
)

DB_WRITE_LATENCY_SECONDS = Histogram(
    "signatures_queue_db_write_latency_seconds",
    "Latency of record inserts including commit",
    ["table"],
)

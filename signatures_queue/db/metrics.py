from __future__ import annotations

from ..metrics.registry import DB_WRITE_LATENCY_SECONDS, DB_WRITE_TOTAL


def observe_db_write(table: str, status: str, latency_s: float) -> None:
    """
    Record one insert outcome.

    Args:
        table: Destination table name
        status: "success" or "error"
        latency_s: Seconds from statement start to commit/rollback
    """
    DB_WRITE_TOTAL.labels(table=table, status=status).inc()
    DB_WRITE_LATENCY_SECONDS.labels(table=table).observe(latency_s)

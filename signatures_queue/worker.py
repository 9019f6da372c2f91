"""
Batch transfer from a named queue into a destination table.

process_batch() never raises for per-item problems: every claimed item ends
up in exactly one counter of the returned BatchResult, so

    retrieved == saved + skipped + failed + malformed

holds for every batch. Items that fail to persist are not deleted; they are
released back to the queue once the batch is done, so the next run retries
them (at-least-once, unbounded retry).
"""
from __future__ import annotations

import logging
import time
from dataclasses import asdict, dataclass
from typing import Any, Union

from sqlalchemy.exc import SQLAlchemyError

from .db.schema import TableMapping
from .db.tx import DbFactory
from .errors import DbWriteError, QueueError, RecordValidationError
from .ledger import is_processed
from .log import NOTICE
from .metrics.registry import BATCH_DURATION_SECONDS, BATCH_ITEMS_TOTAL, QUEUE_DEPTH
from .queue.base import Queue
from .queue.models import QueueItem
from .records import TargetRecord

logger = logging.getLogger(__name__)

Logger = Union[logging.Logger, logging.LoggerAdapter]

SAVED = "saved"
SKIPPED = "skipped"
FAILED = "failed"
MALFORMED = "malformed"


@dataclass(frozen=True)
class TransferPair:
    """A source queue, the table it feeds and whether the processed ledger is consulted."""

    queue_name: str
    mapping: TableMapping
    check_processed: bool = False

    @property
    def table_name(self) -> str:
        return self.mapping.table.name


@dataclass
class BatchResult:
    retrieved: int = 0
    saved: int = 0
    skipped: int = 0
    failed: int = 0
    malformed: int = 0
    # depth before the batch started; informational
    queued: int = 0

    @property
    def ok(self) -> bool:
        return self.failed == 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


def process_batch(
    queue: Queue,
    db_factory: DbFactory,
    pair: TransferPair,
    max_batch_size: int,
    log: Logger | None = None,
) -> BatchResult:
    """
    Move up to ``max_batch_size`` items from ``queue`` into ``pair``'s table.

    Args:
        queue: Source queue
        db_factory: Storage handle for the destination database
        pair: Queue/table pair being drained
        max_batch_size: Upper bound on claimed items
        log: Logger or correlation adapter; defaults to the module logger

    Returns:
        Counters for this batch. ``retrieved`` counts claimed items; the loop
        stops early once nothing is claimable (the rest is leased elsewhere).
    """
    log = log or logger
    result = BatchResult()
    start_time = time.monotonic()

    try:
        result.queued = queue.number_of_items()
    except QueueError as exc:
        log.error("Could not read depth of %s, skipping batch: %s", pair.queue_name, exc)
        return result

    QUEUE_DEPTH.labels(queue=pair.queue_name).set(result.queued)
    attempts = min(max_batch_size, result.queued)
    # released only after the loop so this batch does not re-claim them
    failed_items: list[QueueItem] = []

    for _ in range(attempts):
        try:
            item = queue.claim_item()
        except QueueError as exc:
            log.error("Failed to claim an item from %s, ending batch: %s", pair.queue_name, exc)
            break
        if item is None:
            break

        result.retrieved += 1
        outcome = _transfer_one(queue, db_factory, pair, item, log)
        if outcome == FAILED:
            failed_items.append(item)
        setattr(result, outcome, getattr(result, outcome) + 1)
        BATCH_ITEMS_TOTAL.labels(queue=pair.queue_name, outcome=outcome).inc()

    for item in failed_items:
        _release(queue, item, log)

    BATCH_DURATION_SECONDS.labels(queue=pair.queue_name).observe(time.monotonic() - start_time)
    _log_summary(log, pair, result)
    return result


def _transfer_one(
    queue: Queue, db_factory: DbFactory, pair: TransferPair, item: QueueItem, log: Logger
) -> str:
    if not item.data:
        log.error("Empty item %s claimed from %s", item.id, pair.queue_name)
        _delete(queue, item, log)
        return MALFORMED

    try:
        record = pair.mapping.record_type.from_payload(item.data).stamped()
    except RecordValidationError as exc:
        log.error("Rejected item %s from %s: %s", item.id, pair.queue_name, exc)
        _delete(queue, item, log)
        return MALFORMED

    if pair.check_processed:
        try:
            with db_factory.session() as tx:
                duplicate = is_processed(tx, record.secret_validation_key)
        except SQLAlchemyError as exc:
            log.error(
                "Processed-ledger lookup failed for item %s from %s, leaving it queued: %s",
                item.id,
                pair.queue_name,
                exc,
            )
            return FAILED

        if duplicate:
            log.log(
                NOTICE,
                "Skipped item %s from %s: secret_validation_key %s was already processed",
                item.id,
                pair.queue_name,
                record.secret_validation_key,
            )
            _delete(queue, item, log)
            return SKIPPED

    try:
        _persist(db_factory, pair, record)
    except DbWriteError as exc:
        log.error(
            "Failed to save item %s from %s into %s, leaving it queued: %s",
            item.id,
            pair.queue_name,
            pair.table_name,
            exc,
        )
        return FAILED

    # the row is committed; a delete failure only means it will be redelivered
    _delete(queue, item, log)
    return SAVED


def _persist(db_factory: DbFactory, pair: TransferPair, record: TargetRecord) -> Any:
    """
    Insert one record in its own transaction.

    Raises:
        DbWriteError: On any failure while inserting or committing
    """
    try:
        tx = db_factory.begin()
    except Exception as exc:
        raise DbWriteError(str(exc)) from exc

    try:
        row_id = tx.insert(pair.mapping.table, record.to_row())
        tx.commit()
    except Exception as exc:
        if not tx.closed:
            try:
                tx.rollback()
            except Exception:
                logger.debug("Rollback failed for %s", pair.table_name, exc_info=True)
        raise DbWriteError(str(exc)) from exc
    return row_id


def _delete(queue: Queue, item: QueueItem, log: Logger) -> None:
    try:
        queue.delete_item(item)
    except QueueError as exc:
        log.error("Failed to delete item %s from %s: %s", item.id, item.queue, exc)


def _release(queue: Queue, item: QueueItem, log: Logger) -> None:
    try:
        queue.release_item(item)
    except QueueError as exc:
        # still retried, only once the lease lapses
        log.error("Failed to release item %s in %s: %s", item.id, item.queue, exc)


def _log_summary(log: Logger, pair: TransferPair, result: BatchResult) -> None:
    if result.retrieved == 0:
        log.info("No items in %s", pair.queue_name)
        return

    summary = (
        "%s -> %s: retrieved %d, saved %d, skipped %d, failed %d, malformed %d (queued %d)"
    )
    args = (
        pair.queue_name,
        pair.table_name,
        result.retrieved,
        result.saved,
        result.skipped,
        result.failed,
        result.malformed,
        result.queued,
    )
    if result.failed or result.malformed:
        log.error(summary, *args)
    else:
        log.info(summary, *args)

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from redis import Redis

from .config import WorkflowConfig
from .db.schema import MAPPINGS, SIGNATURES_PENDING_VALIDATION, VALIDATIONS
from .db.tx import DbFactory
from .log import CorrelationAdapter
from .queue import Queue, make_queue
from .worker import BatchResult, TransferPair, process_batch

logger = logging.getLogger(__name__)

SIGNATURES_PENDING_VALIDATION_QUEUE = "signatures_pending_validation_queue"
VALIDATIONS_QUEUE = "validations_queue"

# Drained in this order on every run.
PAIRS: tuple[TransferPair, ...] = (
    TransferPair(SIGNATURES_PENDING_VALIDATION_QUEUE, MAPPINGS[SIGNATURES_PENDING_VALIDATION]),
    TransferPair(VALIDATIONS_QUEUE, MAPPINGS[VALIDATIONS], check_processed=True),
)


def build_queues(
    config: WorkflowConfig,
    *,
    db_factory: Optional[DbFactory] = None,
    redis: Optional[Redis] = None,
) -> dict[str, Queue]:
    """Queues for every pair, keyed by unprefixed queue name."""
    return {
        pair.queue_name: make_queue(config, pair.queue_name, db_factory=db_factory, redis=redis)
        for pair in PAIRS
    }


def run_preprocess_signatures(
    job_id: str,
    server_name: Optional[str] = None,
    worker_name: Optional[str] = None,
    options: Optional[Mapping[str, Any]] = None,
    *,
    config: WorkflowConfig,
    queues: Mapping[str, Queue],
    db_factory: DbFactory,
) -> dict[str, BatchResult]:
    """
    Drain each pair's queue once, in PAIRS order, and return the counters
    per queue name. ``options`` is accepted for job-runner compatibility and
    currently ignored.
    """
    log = CorrelationAdapter(logger, job_id, server_name, worker_name)
    results: dict[str, BatchResult] = {}

    for pair in PAIRS:
        result = process_batch(
            queues[pair.queue_name],
            db_factory,
            pair,
            config.max_batch_size,
            log,
        )
        results[pair.queue_name] = result

    return results


def preprocess_signatures(
    job_id: str,
    server_name: Optional[str] = None,
    worker_name: Optional[str] = None,
    options: Optional[Mapping[str, Any]] = None,
    *,
    config: WorkflowConfig,
    queues: Mapping[str, Queue],
    db_factory: DbFactory,
) -> bool:
    """
    Workflow entry point for the job runner.

    Always returns True: per-item failures stay in their queue and are
    reported through logs. Use run_preprocess_signatures() to inspect the
    counters.
    """
    run_preprocess_signatures(
        job_id,
        server_name,
        worker_name,
        options,
        config=config,
        queues=queues,
        db_factory=db_factory,
    )
    return True

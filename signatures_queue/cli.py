"""
Command line entry point, meant to be run from cron or a job runner.

    signatures-queue init-db
    signatures-queue enqueue validations_queue items.jsonl
    signatures-queue preprocess --job-id 42 --server-name web1 --worker-name cron
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from dataclasses import replace
from typing import Optional, Sequence

from redis import Redis
from sqlalchemy import create_engine

from .config import WorkflowConfig
from .db.schema import create_all
from .db.tx import DbFactory
from .errors import SignaturesQueueError
from .queue import make_queue
from .workflow import PAIRS, build_queues, run_preprocess_signatures

logger = logging.getLogger(__name__)

QUEUE_NAMES = [pair.queue_name for pair in PAIRS]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="signatures-queue",
        description="Move queued signatures and validations into the processing database",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=os.environ.get("SIGNATURES_QUEUE_LOG_LEVEL", "INFO"),
        help="Logging level (default INFO)",
    )
    parser.add_argument(
        "--max-batch-size",
        type=int,
        default=None,
        help="Override SIGNATURES_QUEUE_MAX_BATCH_SIZE",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create all tables")

    enqueue = sub.add_parser("enqueue", help="Push JSON-lines payloads onto a queue")
    enqueue.add_argument("queue", choices=QUEUE_NAMES)
    enqueue.add_argument("file", type=argparse.FileType("r"), help="JSON-lines file, '-' for stdin")

    preprocess = sub.add_parser("preprocess", help="Run the preprocess-signatures workflow once")
    preprocess.add_argument("--job-id", type=str, required=True)
    preprocess.add_argument("--server-name", type=str, default=None)
    preprocess.add_argument("--worker-name", type=str, default=None)

    return parser


def _config(args: argparse.Namespace) -> WorkflowConfig:
    config = WorkflowConfig.from_env()
    if args.max_batch_size is not None:
        config = replace(config, max_batch_size=args.max_batch_size)
    return config


def _redis(config: WorkflowConfig) -> Optional[Redis]:
    if config.queue_backend != "redis":
        return None
    return Redis.from_url(config.redis_url)


def cmd_init_db(config: WorkflowConfig) -> int:
    create_all(create_engine(config.database_url, pool_pre_ping=True))
    if config.queue_database_url != config.database_url:
        create_all(create_engine(config.queue_database_url, pool_pre_ping=True))
    logger.info("Created tables on %s", config.database_url)
    return 0


def cmd_enqueue(config: WorkflowConfig, queue_name: str, lines) -> int:
    queue_factory = DbFactory(create_engine(config.queue_database_url, pool_pre_ping=True))
    queue = make_queue(config, queue_name, db_factory=queue_factory, redis=_redis(config))

    count = 0
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except ValueError as exc:
            logger.error("Line %d is not valid JSON: %s", lineno, exc)
            return 1
        queue.create_item(payload)
        count += 1

    logger.info("Enqueued %d items into %s", count, queue.name)
    return 0


def cmd_preprocess(config: WorkflowConfig, args: argparse.Namespace) -> int:
    db_factory = DbFactory(create_engine(config.database_url, pool_pre_ping=True))
    queue_factory = db_factory
    if config.queue_database_url != config.database_url:
        queue_factory = DbFactory(create_engine(config.queue_database_url, pool_pre_ping=True))
    queues = build_queues(config, db_factory=queue_factory, redis=_redis(config))

    results = run_preprocess_signatures(
        args.job_id,
        args.server_name,
        args.worker_name,
        config=config,
        queues=queues,
        db_factory=db_factory,
    )
    return 0 if all(result.ok for result in results.values()) else 1


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _build_parser().parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    try:
        config = _config(args)
        if args.command == "init-db":
            return cmd_init_db(config)
        if args.command == "enqueue":
            with args.file as lines:
                return cmd_enqueue(config, args.queue, lines)
        return cmd_preprocess(config, args)
    except SignaturesQueueError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())

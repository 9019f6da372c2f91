from .config import QueueConfig, WorkflowConfig
from .db.tx import DbFactory
from .ledger import is_processed
from .queue import DatabaseQueue, QueueItem, RedisStreamsQueue
from .worker import BatchResult, TransferPair, process_batch
from .workflow import preprocess_signatures, run_preprocess_signatures

__all__ = [
    "BatchResult",
    "DatabaseQueue",
    "DbFactory",
    "QueueConfig",
    "QueueItem",
    "RedisStreamsQueue",
    "TransferPair",
    "WorkflowConfig",
    "is_processed",
    "preprocess_signatures",
    "process_batch",
    "run_preprocess_signatures",
]

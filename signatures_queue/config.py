from __future__ import annotations

import os
import socket
from dataclasses import dataclass, field
from typing import Mapping

from .errors import ConfigError

QUEUE_BACKENDS = ("database", "redis")

ENV_PREFIX = "SIGNATURES_QUEUE_"


@dataclass
class QueueConfig:
    stream_key: str
    consumer_group: str
    consumer_name: str
    claim_idle_ms: int = 3_600_000

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.claim_idle_ms < 0:
            raise ConfigError("claim_idle_ms must be >= 0")


@dataclass
class WorkflowConfig:
    """
    Settings for the preprocess-signatures workflow.

    max_batch_size caps the claim attempts per queue and per invocation.
    lease_seconds is how long a claimed item stays invisible to other
    claimants; a failed item is seen again once it lapses.
    """

    database_url: str = "sqlite:///signatures_processing.db"
    # where the database queue backend keeps its queue table; defaults to database_url
    queue_database_url: str = ""
    queue_backend: str = "database"
    redis_url: str = "redis://127.0.0.1:6379/0"
    queue_prefix: str = ""
    max_batch_size: int = 100
    lease_seconds: int = 3600
    consumer_name: str = field(default_factory=socket.gethostname)

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.queue_backend not in QUEUE_BACKENDS:
            raise ConfigError(
                f"queue_backend must be one of {QUEUE_BACKENDS}, got {self.queue_backend!r}"
            )
        if self.max_batch_size <= 0:
            raise ConfigError("max_batch_size must be > 0")
        if self.lease_seconds < 0:
            raise ConfigError("lease_seconds must be >= 0")
        if not self.database_url:
            raise ConfigError("database_url is required")
        if not self.queue_database_url:
            self.queue_database_url = self.database_url

    def queue_name(self, name: str) -> str:
        return f"{self.queue_prefix}{name}"

    def redis_queue_config(self, queue_name: str) -> QueueConfig:
        return QueueConfig(
            stream_key=queue_name,
            consumer_group=f"{queue_name}_workers",
            consumer_name=self.consumer_name,
            claim_idle_ms=self.lease_seconds * 1000,
        )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "WorkflowConfig":
        """
        Build a config from SIGNATURES_QUEUE_* variables.

        Unset or empty variables keep the dataclass defaults.
        """
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        for name in ("database_url", "queue_database_url", "queue_backend", "redis_url", "queue_prefix", "consumer_name"):
            raw = env.get(ENV_PREFIX + name.upper())
            if raw:
                kwargs[name] = raw

        for name in ("max_batch_size", "lease_seconds"):
            raw = env.get(ENV_PREFIX + name.upper())
            if raw is None or raw == "":
                continue
            try:
                kwargs[name] = int(raw)
            except ValueError as exc:
                raise ConfigError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}") from exc

        return cls(**kwargs)  # type: ignore[arg-type]

from __future__ import annotations

import pytest

from signatures_queue.config import QueueConfig, WorkflowConfig
from signatures_queue.errors import ConfigError


def test_defaults() -> None:
    config = WorkflowConfig(consumer_name="w1")

    assert config.queue_backend == "database"
    assert config.max_batch_size == 100
    assert config.queue_database_url == config.database_url


@pytest.mark.parametrize(
    "kwargs, message",
    [
        ({"max_batch_size": 0}, "max_batch_size"),
        ({"lease_seconds": -1}, "lease_seconds"),
        ({"queue_backend": "sqs"}, "queue_backend"),
        ({"database_url": ""}, "database_url"),
    ],
)
def test_invalid_values_raise(kwargs, message) -> None:
    with pytest.raises(ConfigError, match=message):
        WorkflowConfig(**kwargs)


def test_config_error_is_a_value_error() -> None:
    with pytest.raises(ValueError):
        WorkflowConfig(max_batch_size=-5)


def test_from_env_reads_prefixed_variables() -> None:
    config = WorkflowConfig.from_env(
        {
            "SIGNATURES_QUEUE_DATABASE_URL": "sqlite:///x.db",
            "SIGNATURES_QUEUE_QUEUE_DATABASE_URL": "sqlite:///queue.db",
            "SIGNATURES_QUEUE_MAX_BATCH_SIZE": "25",
            "SIGNATURES_QUEUE_LEASE_SECONDS": "",
            "SIGNATURES_QUEUE_QUEUE_PREFIX": "stage_",
            "SIGNATURES_QUEUE_CONSUMER_NAME": "cron-1",
        }
    )

    assert config.database_url == "sqlite:///x.db"
    assert config.queue_database_url == "sqlite:///queue.db"
    assert config.max_batch_size == 25
    assert config.lease_seconds == 3600
    assert config.queue_name("validations_queue") == "stage_validations_queue"
    assert config.consumer_name == "cron-1"


def test_from_env_rejects_non_integer_batch_size() -> None:
    with pytest.raises(ConfigError, match="SIGNATURES_QUEUE_MAX_BATCH_SIZE"):
        WorkflowConfig.from_env({"SIGNATURES_QUEUE_MAX_BATCH_SIZE": "lots"})


def test_redis_queue_config_uses_lease_as_idle_time() -> None:
    config = WorkflowConfig(lease_seconds=30, consumer_name="w1")

    queue_config = config.redis_queue_config("validations_queue")

    assert queue_config == QueueConfig(
        stream_key="validations_queue",
        consumer_group="validations_queue_workers",
        consumer_name="w1",
        claim_idle_ms=30_000,
    )


def test_queue_config_rejects_negative_idle() -> None:
    with pytest.raises(ConfigError):
        QueueConfig(stream_key="s", consumer_group="g", consumer_name="c", claim_idle_ms=-1)

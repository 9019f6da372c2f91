from __future__ import annotations

import json
import logging
from typing import Any, Mapping, Optional

from redis import Redis
from redis.exceptions import RedisError, ResponseError

from ..config import QueueConfig
from ..db.helpers import _validate_identifier
from ..errors import QueueError
from ..metrics.registry import QUEUE_ITEMS_CLAIMED_TOTAL, QUEUE_ITEMS_DELETED_TOTAL
from .models import QueueItem

logger = logging.getLogger(__name__)

DATA_FIELD = "data"


def _decode_str(value: Any) -> str:
    return value.decode() if isinstance(value, bytes) else str(value)


class RedisStreamsQueue:
    """
    Named queue on a Redis stream read through a consumer group.

    - claim_item() reads one new entry (XREADGROUP ">"); when there is none,
      it takes over one entry that has been pending longer than
      claim_idle_ms (XAUTOCLAIM). New entries win over stale ones.
    - delete_item() acknowledges and removes the entry (XACK + XDEL), so
      number_of_items() is simply XLEN.
    - An entry that is claimed but never deleted stays in the pending list
      and is delivered again once it goes stale.

    Redis failures surface as QueueError.
    """

    def __init__(self, redis: Redis, config: QueueConfig) -> None:
        """
        Raises:
            QueueError: If consumer group creation fails (except BUSYGROUP)
        """
        self.redis = redis
        self.config = config
        self.name = _validate_identifier(config.stream_key, "queue name", max_length=255)
        self.create_queue()

    def create_queue(self) -> None:
        try:
            self.redis.xgroup_create(
                self.config.stream_key, self.config.consumer_group, id="0", mkstream=True
            )
        except ResponseError as exc:
            if "BUSYGROUP" not in str(exc):
                raise QueueError(f"Failed to create consumer group: {exc}") from exc
        except RedisError as exc:
            raise QueueError(f"Failed to create consumer group: {exc}") from exc

    def create_item(self, data: Optional[Mapping[str, Any]]) -> str:
        try:
            serialized = json.dumps(data)
        except (TypeError, ValueError) as exc:
            raise QueueError(f"Payload is not JSON-serializable: {exc}") from exc

        try:
            entry_id = self.redis.xadd(self.config.stream_key, {DATA_FIELD: serialized})
        except RedisError as exc:
            raise QueueError(f"Failed to enqueue into {self.name}: {exc}") from exc
        return _decode_str(entry_id)

    def number_of_items(self) -> int:
        try:
            return int(self.redis.xlen(self.config.stream_key))
        except RedisError as exc:
            raise QueueError(f"Failed to count items in {self.name}: {exc}") from exc

    def claim_item(self) -> Optional[QueueItem]:
        try:
            entries = self._read_new()
            if not entries:
                entries = self._claim_stale()
        except RedisError as exc:
            raise QueueError(f"Failed to claim from {self.name}: {exc}") from exc

        if not entries:
            return None

        entry_id, fields = entries[0]
        QUEUE_ITEMS_CLAIMED_TOTAL.labels(queue=self.name).inc()
        return QueueItem(
            id=_decode_str(entry_id),
            queue=self.name,
            data=self._decode(entry_id, fields),
            created=self._created_from_id(entry_id),
        )

    def delete_item(self, item: QueueItem) -> None:
        try:
            pipe = self.redis.pipeline()
            pipe.xack(self.config.stream_key, self.config.consumer_group, item.id)
            pipe.xdel(self.config.stream_key, item.id)
            pipe.execute()
        except RedisError as exc:
            raise QueueError(f"Failed to delete item {item.id} from {self.name}: {exc}") from exc
        QUEUE_ITEMS_DELETED_TOTAL.labels(queue=self.name).inc()

    def release_item(self, item: QueueItem) -> None:
        """Mark the entry as idle for claim_idle_ms so the next claim picks it up."""
        try:
            self.redis.xclaim(
                self.config.stream_key,
                self.config.consumer_group,
                self.config.consumer_name,
                min_idle_time=0,
                message_ids=[item.id],
                idle=self.config.claim_idle_ms,
                justid=True,
            )
        except RedisError as exc:
            raise QueueError(f"Failed to release item {item.id} in {self.name}: {exc}") from exc

    def delete_queue(self) -> None:
        try:
            self.redis.delete(self.config.stream_key)
        except RedisError as exc:
            raise QueueError(f"Failed to delete queue {self.name}: {exc}") from exc

    def _read_new(self) -> list[tuple[Any, Any]]:
        response = self.redis.xreadgroup(
            self.config.consumer_group,
            self.config.consumer_name,
            {self.config.stream_key: ">"},
            count=1,
        )
        if not response:
            return []
        # [[stream_key, [(entry_id, fields), ...]]]
        return list(response[0][1])

    def _claim_stale(self) -> list[tuple[Any, Any]]:
        response = self.redis.xautoclaim(
            self.config.stream_key,
            self.config.consumer_group,
            self.config.consumer_name,
            min_idle_time=self.config.claim_idle_ms,
            start_id="0-0",
            count=1,
        )
        # [next_start_id, [(entry_id, fields), ...], (deleted_ids on Redis >= 7)]
        claimed = response[1] if len(response) > 1 else []
        entries = []
        for entry_id, fields in claimed:
            if fields is None:
                # trimmed from the stream while pending; nothing left to deliver
                self.redis.xack(self.config.stream_key, self.config.consumer_group, entry_id)
                continue
            entries.append((entry_id, fields))
        return entries

    def _decode(self, entry_id: Any, fields: Mapping[Any, Any]) -> Optional[Mapping[str, Any]]:
        raw = None
        for key, value in (fields or {}).items():
            if _decode_str(key) == DATA_FIELD:
                raw = value
                break
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Undecodable payload for entry %s in %s", _decode_str(entry_id), self.name)
            return None
        if not isinstance(data, dict):
            return None
        return data

    @staticmethod
    def _created_from_id(entry_id: Any) -> Optional[int]:
        # entry ids are "<ms timestamp>-<sequence>"
        try:
            return int(_decode_str(entry_id).split("-", 1)[0]) // 1000
        except ValueError:
            return None

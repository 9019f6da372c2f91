from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError

from ..db.helpers import _validate_identifier
from ..db.schema import queue as queue_table
from ..db.tx import DbFactory
from ..errors import QueueError
from ..metrics.registry import QUEUE_ITEMS_CLAIMED_TOTAL, QUEUE_ITEMS_DELETED_TOTAL
from .models import QueueItem

logger = logging.getLogger(__name__)


class DatabaseQueue:
    """
    Named queue stored in the ``queue`` table.

    Claiming sets ``expire`` to now + lease; the conditional UPDATE on the
    previously seen ``expire`` value guarantees a single winner when several
    workers race for the same row. Rows whose lease has lapsed are claimable
    again, which is how failed items get retried.

    Usage:
        q = DatabaseQueue(DbFactory(engine), "validations_queue")
        q.create_item({"secret_validation_key": "abc"})
        item = q.claim_item()
        ...
        q.delete_item(item)
    """

    def __init__(
        self,
        db_factory: DbFactory,
        name: str,
        lease_seconds: int = 3600,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.db_factory = db_factory
        self.name = _validate_identifier(name, "queue name", max_length=255)
        self.lease_seconds = lease_seconds
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def create_queue(self) -> None:
        try:
            queue_table.create(self.db_factory.engine, checkfirst=True)
        except SQLAlchemyError as exc:
            raise QueueError(f"Failed to create queue table for {self.name}: {exc}") from exc

    def create_item(self, data: Optional[Mapping[str, Any]]) -> Any:
        try:
            serialized = None if data is None else json.dumps(data)
        except (TypeError, ValueError) as exc:
            raise QueueError(f"Payload is not JSON-serializable: {exc}") from exc

        try:
            with self.db_factory.session() as tx:
                return tx.insert(
                    queue_table,
                    {"name": self.name, "data": serialized, "expire": 0, "created": self._now()},
                )
        except SQLAlchemyError as exc:
            raise QueueError(f"Failed to enqueue into {self.name}: {exc}") from exc

    def number_of_items(self) -> int:
        try:
            with self.db_factory.session() as tx:
                count = tx.execute_scalar(
                    "SELECT COUNT(item_id) FROM queue WHERE name = :name",
                    {"name": self.name},
                )
        except SQLAlchemyError as exc:
            raise QueueError(f"Failed to count items in {self.name}: {exc}") from exc
        return int(count or 0)

    def claim_item(self) -> Optional[QueueItem]:
        """
        Claim the oldest unclaimed or lease-expired item.

        Returns None when nothing is claimable. Losing a race for a row just
        moves on to the next candidate.
        """
        while True:
            now = self._now()
            try:
                with self.db_factory.session() as tx:
                    row = tx.fetch_one(
                        "SELECT item_id, data, created, expire FROM queue "
                        "WHERE name = :name AND (expire = 0 OR expire < :now) "
                        "ORDER BY created, item_id LIMIT 1",
                        {"name": self.name, "now": now},
                    )
                    if row is None:
                        return None

                    claimed = tx.execute(
                        "UPDATE queue SET expire = :expire "
                        "WHERE item_id = :item_id AND expire = :seen",
                        {
                            "expire": now + self.lease_seconds,
                            "item_id": row["item_id"],
                            "seen": row["expire"],
                        },
                    )
            except SQLAlchemyError as exc:
                raise QueueError(f"Failed to claim from {self.name}: {exc}") from exc

            if claimed == 1:
                QUEUE_ITEMS_CLAIMED_TOTAL.labels(queue=self.name).inc()
                return QueueItem(
                    id=row["item_id"],
                    queue=self.name,
                    data=self._decode(row["item_id"], row["data"]),
                    created=row["created"],
                )

    def delete_item(self, item: QueueItem) -> None:
        try:
            with self.db_factory.session() as tx:
                tx.execute("DELETE FROM queue WHERE item_id = :item_id", {"item_id": item.id})
        except SQLAlchemyError as exc:
            raise QueueError(f"Failed to delete item {item.id} from {self.name}: {exc}") from exc
        QUEUE_ITEMS_DELETED_TOTAL.labels(queue=self.name).inc()

    def release_item(self, item: QueueItem) -> None:
        try:
            with self.db_factory.session() as tx:
                tx.execute("UPDATE queue SET expire = 0 WHERE item_id = :item_id", {"item_id": item.id})
        except SQLAlchemyError as exc:
            raise QueueError(f"Failed to release item {item.id} in {self.name}: {exc}") from exc

    def delete_queue(self) -> None:
        try:
            with self.db_factory.session() as tx:
                tx.execute("DELETE FROM queue WHERE name = :name", {"name": self.name})
        except SQLAlchemyError as exc:
            raise QueueError(f"Failed to delete queue {self.name}: {exc}") from exc

    def _decode(self, item_id: Any, raw: Optional[str]) -> Optional[Mapping[str, Any]]:
        if raw is None:
            return None
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Undecodable payload for item %s in %s", item_id, self.name)
            return None
        if not isinstance(data, dict):
            logger.warning("Payload for item %s in %s is not an object", item_id, self.name)
            return None
        return data

from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol

from .models import QueueItem


class Queue(Protocol):
    """
    A named queue with explicit claim/delete semantics and at-least-once
    delivery.

    A claimed item is invisible to other claimants until it is deleted or its
    lease lapses. Items that are never deleted are delivered again.
    """

    name: str

    def create_queue(self) -> None:
        """Make sure the backing storage exists. Safe to call repeatedly."""
        ...

    def create_item(self, data: Optional[Mapping[str, Any]]) -> Any:
        """Append an item and return its id."""
        ...

    def number_of_items(self) -> int:
        """Items not yet deleted, claimed ones included."""
        ...

    def claim_item(self) -> Optional[QueueItem]:
        """Claim the oldest available item, or return None."""
        ...

    def delete_item(self, item: QueueItem) -> None:
        ...

    def release_item(self, item: QueueItem) -> None:
        """Give a claimed item back before its lease lapses."""
        ...

    def delete_queue(self) -> None:
        ...

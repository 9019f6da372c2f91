from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping, Optional


@dataclass(frozen=True)
class QueueItem:
    """
    One claimed unit of work.

    ``id`` is only meaningful to the backend that produced it (delete/release).
    ``data`` is None when the stored payload was empty or could not be decoded.
    """

    id: Any
    queue: str
    data: Optional[Mapping[str, Any]]
    created: Optional[int] = None

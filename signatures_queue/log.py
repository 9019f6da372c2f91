from __future__ import annotations

import logging
from typing import Any, MutableMapping, Optional

# Between INFO and WARNING: normal but significant conditions.
NOTICE = 25
logging.addLevelName(NOTICE, "NOTICE")


class CorrelationAdapter(logging.LoggerAdapter):
    """
    Appends the job/server/worker identifiers to every message so lines from
    different workers can be matched up after aggregation.

    Usage:
        log = CorrelationAdapter(logger, job_id="job-1", server_name="web1")
        log.info("Saved %d rows", 5)
        # -> "Saved 5 rows (job: job-1, server: web1, worker: n/a)"
    """

    def __init__(
        self,
        logger: logging.Logger,
        job_id: str,
        server_name: Optional[str] = None,
        worker_name: Optional[str] = None,
    ) -> None:
        super().__init__(
            logger,
            {
                "job_id": job_id,
                "server_name": server_name or "n/a",
                "worker_name": worker_name or "n/a",
            },
        )

    @property
    def suffix(self) -> str:
        return (
            f"(job: {self.extra['job_id']}, "
            f"server: {self.extra['server_name']}, "
            f"worker: {self.extra['worker_name']})"
        )

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})
        kwargs["extra"] = extra
        return f"{msg} {self.suffix}", kwargs

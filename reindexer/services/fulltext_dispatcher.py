"""ARQ-backed dispatcher for fulltext extraction jobs.

Each indexing request becomes one extract_fulltext job (see worker.py).
The dispatcher remembers the jobs it enqueued so the reindex engine can
wait for all of them between batches.
"""

import asyncio
import logging
from typing import Any, Optional
from uuid import UUID

from arq.connections import ArqRedis
from arq.jobs import Job

from ..config import settings
from .reindex_ports import DispatchError, FulltextOracle

logger = logging.getLogger(__name__)

# Worker function name registered in WorkerSettings.functions
EXTRACT_FULLTEXT_JOB = "extract_fulltext"


def serialize_fulltext_info(fulltext_info: FulltextOracle) -> Any:
    """Job arguments must be picklable plain data."""
    to_dict = getattr(fulltext_info, "to_dict", None)
    return to_dict() if callable(to_dict) else fulltext_info


class ArqFulltextDispatcher:
    """Enqueues extraction jobs and waits for their results."""

    def __init__(self, pool: ArqRedis, timeout: Optional[float] = None) -> None:
        self._pool = pool
        self._timeout = timeout if timeout is not None else settings.reindex_async_timeout
        self._jobs: list[Job] = []

    @property
    def pending_jobs(self) -> int:
        return len(self._jobs)

    async def fire_indexing_request(
        self,
        ids: set[UUID],
        fulltext_info: FulltextOracle,
        repository_name: str,
    ) -> None:
        job = await self._pool.enqueue_job(
            EXTRACT_FULLTEXT_JOB,
            sorted(str(doc_id) for doc_id in ids),
            serialize_fulltext_info(fulltext_info),
            repository_name,
        )
        if job is None:
            # arq returns None when a job with the same id already exists
            raise DispatchError("Fulltext extraction job was not enqueued")
        self._jobs.append(job)
        logger.info("Queued fulltext extraction job %s for %d documents", job.job_id, len(ids))

    async def wait_for_completion(self) -> None:
        """Wait for every job fired so far; raise if any failed or timed out."""
        jobs, self._jobs = self._jobs, []
        failures: list[str] = []
        for job in jobs:
            try:
                await job.result(timeout=self._timeout)
            except asyncio.TimeoutError:
                failures.append(f"{job.job_id}: timed out after {self._timeout}s")
            except Exception as exc:
                failures.append(f"{job.job_id}: {exc}")
        if failures:
            raise DispatchError("Fulltext extraction failed: " + "; ".join(failures))

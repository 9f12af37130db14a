"""
Job Queue
=========

In-memory tracking of detached long-running operations (backfills).

Provides:
- Job creation with unique ids and immediate return
- Detached asyncio execution of the job runner
- Status polling and most-recent-first listing
- Bounded retention: the oldest finished jobs are evicted on overflow

Job records live only as long as the process; a restart loses them.
"""

import asyncio
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

from catalog_sync.schemas.domain import Job, JobStatus
from catalog_sync.utils.errors import JobNotFoundError, ValidationError
from catalog_sync.utils.logger import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_JOBS = 100

JobRunner = Callable[[Job], Awaitable[dict[str, Any]]]


def new_job_id() -> str:
    """``job-<epoch ms>-<uuid4>``"""
    return f"job-{int(time.time() * 1000)}-{uuid4()}"


class JobQueue:
    """
    Bounded job table with detached execution.

    Usage:
        queue = JobQueue(max_jobs=100)
        job = queue.enqueue("backfill", {"since": since}, runner)
        ...
        queue.status(job.id).status  # running | completed | failed
    """

    def __init__(self, max_jobs: int = DEFAULT_MAX_JOBS) -> None:
        if max_jobs < 1:
            raise ValueError("max_jobs must be at least 1")
        self.max_jobs = max_jobs
        self._jobs: OrderedDict[str, Job] = OrderedDict()
        self._tasks: dict[str, asyncio.Task] = {}
        self._log = logger.bind(component="JobQueue")

    def __len__(self) -> int:
        return len(self._jobs)

    def enqueue(self, kind: str, params: dict[str, Any], runner: JobRunner) -> Job:
        """
        Register a job and start ``runner`` without awaiting it.

        Args:
            kind: Operation kind, e.g. "backfill"
            params: Parameters recorded on the job
            runner: Coroutine function receiving the Job and returning its result

        Returns:
            The job record in ``running`` state
        """
        job = Job(id=new_job_id(), kind=kind, params=params)
        self._jobs[job.id] = job
        self._evict()

        task = asyncio.create_task(self._run(job, runner))
        self._tasks[job.id] = task
        task.add_done_callback(lambda _: self._tasks.pop(job.id, None))

        self._log.info("job_enqueued", job_id=job.id, kind=kind, params=params)
        return job

    async def _run(self, job: Job, runner: JobRunner) -> None:
        try:
            result = await runner(job)
        except Exception as e:
            job.status = JobStatus.FAILED
            job.error = str(e) or type(e).__name__
            job.finished_at = datetime.now(timezone.utc)
            self._log.error(
                f"{job.kind}_job_failed",
                job_id=job.id,
                error=job.error,
                error_type=type(e).__name__,
            )
            return
        job.status = JobStatus.COMPLETED
        job.result = result
        job.finished_at = datetime.now(timezone.utc)
        self._log.info(f"{job.kind}_job_completed", job_id=job.id, result=result)

    def status(self, job_id: str) -> Job:
        """
        Get a job by id.

        Raises:
            JobNotFoundError: If the id is unknown or was evicted
        """
        job = self._jobs.get(job_id)
        if job is None:
            raise JobNotFoundError(f"Job {job_id} not found", details={"job_id": job_id})
        return job

    def list(self, limit: int = 10) -> list[Job]:
        """
        Most recently started jobs first.

        Raises:
            ValidationError: ``limit`` is below 1
        """
        if limit < 1:
            raise ValidationError("limit must be a positive integer", details={"limit": limit})
        jobs = sorted(self._jobs.values(), key=lambda j: j.started_at, reverse=True)
        return jobs[:limit]

    async def wait(self, job_id: str) -> Job:
        """Await a job's completion and return its record."""
        job = self.status(job_id)
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.shield(task)
        return job

    async def shutdown(self) -> None:
        """Cancel running job tasks."""
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def _evict(self) -> None:
        overflow = len(self._jobs) - self.max_jobs
        if overflow <= 0:
            return
        for job_id in [jid for jid, job in self._jobs.items() if job.is_finished][:overflow]:
            del self._jobs[job_id]
            self._log.debug("job_evicted", job_id=job_id)

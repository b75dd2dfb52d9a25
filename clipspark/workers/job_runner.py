"""Background job runner using asyncio."""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

from clipspark.models.job import Job

logger = logging.getLogger(__name__)

JobHandler = Callable[[Job, str], Awaitable[None]]


class JobRunner:
    """
    Fire-and-forget runner: one asyncio task per submitted job.

    ``max_concurrent`` of 0 leaves concurrency unbounded; otherwise extra
    jobs wait (still queued) for a free slot.
    """

    def __init__(self, handler: JobHandler, max_concurrent: int = 0):
        self._handler = handler
        self._running_jobs: Dict[str, asyncio.Task] = {}
        self._semaphore: Optional[asyncio.Semaphore] = (
            asyncio.Semaphore(max_concurrent) if max_concurrent > 0 else None
        )

    def submit(self, job: Job, url: str) -> bool:
        """
        Start a background task for a job.

        Returns:
            True if the job was started, False if it is already running
        """
        if job.id in self._running_jobs:
            logger.warning(f"Job {job.id} is already running")
            return False

        task = asyncio.create_task(self._run_job(job, url))
        self._running_jobs[job.id] = task
        return True

    async def _run_job(self, job: Job, url: str):
        try:
            if self._semaphore is None:
                await self._handler(job, url)
            else:
                async with self._semaphore:
                    await self._handler(job, url)
        except asyncio.CancelledError:
            logger.info(f"Job {job.id} was cancelled")
            raise
        except Exception:
            # The handler records failures on the job itself
            logger.exception(f"Unhandled error in job {job.id}")
        finally:
            self._running_jobs.pop(job.id, None)

    def is_job_running(self, job_id: str) -> bool:
        """Check if a job is currently running."""
        return job_id in self._running_jobs

    @property
    def running_count(self) -> int:
        return len(self._running_jobs)

    async def wait(self, job_id: str):
        """Wait for a job's task to finish (used by tests and shutdown)."""
        task = self._running_jobs.get(job_id)
        if task:
            await asyncio.gather(task, return_exceptions=True)

    async def shutdown(self):
        """Cancel all running jobs."""
        tasks = list(self._running_jobs.values())
        for task in tasks:
            task.cancel()

        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._running_jobs.clear()

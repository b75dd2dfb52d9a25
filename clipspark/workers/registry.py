"""In-memory job registry and the reaper that evicts stale jobs."""
import asyncio
import logging
import shutil
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional

from clipspark.models.job import HighlightOptions, Job, utcnow

logger = logging.getLogger(__name__)


class JobRegistry:
    """Thread-safe map of live jobs keyed by id."""

    def __init__(self):
        self._jobs: Dict[str, Job] = {}
        self._lock = threading.Lock()

    def create(self, options: Optional[HighlightOptions] = None) -> Job:
        job = Job(options=options or HighlightOptions())
        with self._lock:
            self._jobs[job.id] = job
        return job

    def add(self, job: Job) -> Job:
        with self._lock:
            self._jobs[job.id] = job
        return job

    def get(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.get(job_id)

    def remove(self, job_id: str) -> Optional[Job]:
        with self._lock:
            return self._jobs.pop(job_id, None)

    def list(self) -> List[Job]:
        with self._lock:
            return list(self._jobs.values())

    def expired(self, ttl_seconds: float, now: Optional[datetime] = None) -> List[Job]:
        """Jobs whose last update is older than the TTL, in any status."""
        now = now or utcnow()
        return [job for job in self.list() if job.age(now) > ttl_seconds]

    def __len__(self):
        with self._lock:
            return len(self._jobs)

    def __contains__(self, job_id: str):
        with self._lock:
            return job_id in self._jobs


class Reaper:
    """Periodically deletes expired jobs and their work directories."""

    def __init__(
        self,
        registry: JobRegistry,
        ttl_seconds: float,
        interval_seconds: float,
        is_active: Optional[Callable[[str], bool]] = None,
    ):
        self.registry = registry
        self.ttl_seconds = ttl_seconds
        self.interval_seconds = interval_seconds
        # Jobs with a live task (running or waiting for a slot) are never evicted
        self.is_active = is_active or (lambda job_id: False)
        self._task: Optional[asyncio.Task] = None

    def reap_once(self, now: Optional[datetime] = None) -> List[str]:
        """
        Evict every expired job.

        Jobs whose task is still alive are skipped. Work directory removal
        is best-effort: failures are logged and never stop the job from
        being evicted.

        Returns:
            Ids of the reaped jobs
        """
        reaped = []
        for job in self.registry.expired(self.ttl_seconds, now):
            if self.is_active(job.id):
                continue
            work_dir = job.snapshot().work_dir
            if work_dir is not None:
                try:
                    shutil.rmtree(work_dir)
                except OSError as e:
                    logger.debug(f"Ignoring cleanup error for job {job.id}: {e}")
            self.registry.remove(job.id)
            reaped.append(job.id)

        if reaped:
            logger.info(f"Reaped {len(reaped)} expired jobs")
        return reaped

    async def _loop(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            await asyncio.to_thread(self.reap_once)

    def start(self):
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._loop())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

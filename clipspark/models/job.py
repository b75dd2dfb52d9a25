"""Job model and state machine for highlight jobs."""
import enum
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from clipspark.errors import InvalidTransition


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class JobStatus(str, enum.Enum):
    """Job status enumeration."""
    QUEUED = "queued"
    PROCESSING = "processing"
    DONE = "done"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.DONE, JobStatus.ERROR)


class JobStep(enum.IntEnum):
    """Pipeline stage index, used for progress display."""
    RETRIEVAL = 0
    TRANSCRIPT = 1
    SELECTION = 2
    RENDERING = 3
    PACKAGING = 4


@dataclass(frozen=True)
class HighlightOptions:
    """Options submitted with a job."""
    goal: str = "highlights"
    length: str = "short"
    subtitle_style: str = "kinetic"
    burn_in: bool = True
    language: Optional[str] = None
    platforms: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class JobSnapshot:
    """Consistent, immutable view of a job for pollers."""
    id: str
    status: JobStatus
    step: JobStep
    progress: float
    message: str
    error: Optional[str]
    created_at: datetime
    updated_at: datetime
    work_dir: Optional[Path]
    output_archive: Optional[Path]

    @property
    def download_ready(self) -> bool:
        return self.status == JobStatus.DONE and self.output_archive is not None

    @property
    def public_message(self) -> str:
        return self.error if self.error else self.message


@dataclass(eq=False)
class Job:
    """
    A single highlight job.

    Only the orchestrator driving the job mutates it, through the
    transition methods below. Each transition holds the job lock and
    refreshes ``updated_at``; readers use :meth:`snapshot`.
    """

    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    options: HighlightOptions = field(default_factory=HighlightOptions)
    status: JobStatus = JobStatus.QUEUED
    step: JobStep = JobStep.RETRIEVAL
    progress: float = 0.0
    message: str = "Queued"
    error: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    work_dir: Optional[Path] = None
    output_archive: Optional[Path] = None

    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def __repr__(self):
        return f"<Job(id={self.id}, status={self.status.value}, step={int(self.step)})>"

    # -------------------------------------------------------------------------
    # Transitions
    # -------------------------------------------------------------------------

    def _require_open(self, action: str):
        if self.status.is_terminal:
            raise InvalidTransition(
                f"Cannot {action} job {self.id} in terminal state {self.status.value}"
            )

    def _touch(self):
        self.updated_at = utcnow()

    def start(self, message: str = "Starting job...", work_dir: Optional[Path] = None):
        """queued -> processing at the retrieval step."""
        with self._lock:
            if self.status != JobStatus.QUEUED:
                raise InvalidTransition(
                    f"Cannot start job {self.id} from state {self.status.value}"
                )
            self.status = JobStatus.PROCESSING
            self.step = JobStep.RETRIEVAL
            self.message = message
            if work_dir is not None:
                self.work_dir = Path(work_dir)
            self._touch()

    def advance(self, step: JobStep, progress: float, message: Optional[str] = None):
        """Move forward within processing. Step never decreases, progress never regresses."""
        with self._lock:
            self._require_open("advance")
            if self.status != JobStatus.PROCESSING:
                raise InvalidTransition(f"Job {self.id} has not been started")
            step = JobStep(step)
            if step < self.step:
                raise InvalidTransition(
                    f"Job {self.id} cannot go back from step {int(self.step)} to {int(step)}"
                )
            self.step = step
            self.progress = max(self.progress, min(1.0, max(0.0, progress)))
            if message:
                self.message = message
            self._touch()

    def complete(self, output_archive: Path, message: str = "Highlights ready."):
        """processing -> done."""
        with self._lock:
            self._require_open("complete")
            if self.status != JobStatus.PROCESSING:
                raise InvalidTransition(f"Job {self.id} has not been started")
            self.status = JobStatus.DONE
            self.step = JobStep.PACKAGING
            self.progress = 1.0
            self.message = message
            self.output_archive = Path(output_archive)
            self._touch()

    def fail(self, hint: str, message: str = "Processing failed."):
        """Any open state -> error. Progress stays where it was."""
        with self._lock:
            self._require_open("fail")
            self.status = JobStatus.ERROR
            self.message = message
            self.error = hint
            self._touch()

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    def snapshot(self) -> JobSnapshot:
        with self._lock:
            return JobSnapshot(
                id=self.id,
                status=self.status,
                step=self.step,
                progress=self.progress,
                message=self.message,
                error=self.error,
                created_at=self.created_at,
                updated_at=self.updated_at,
                work_dir=self.work_dir,
                output_archive=self.output_archive,
            )

    def age(self, now: Optional[datetime] = None) -> float:
        """Seconds since the last mutation."""
        with self._lock:
            updated_at = self.updated_at
        return ((now or utcnow()) - updated_at).total_seconds()

    def to_dict(self) -> dict:
        """Convert to the polling payload."""
        snap = self.snapshot()
        return {
            "id": snap.id,
            "status": snap.status.value,
            "step": int(snap.step),
            "message": snap.public_message,
            "progress": snap.progress,
            "downloadReady": snap.download_ready,
        }

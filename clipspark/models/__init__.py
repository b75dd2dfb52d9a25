# Models module
from clipspark.models.job import HighlightOptions, Job, JobSnapshot, JobStatus, JobStep
from clipspark.models.transcript import HighlightCandidate, HighlightWindow, TranscriptSegment

__all__ = [
    "HighlightOptions",
    "Job",
    "JobSnapshot",
    "JobStatus",
    "JobStep",
    "HighlightCandidate",
    "HighlightWindow",
    "TranscriptSegment",
]

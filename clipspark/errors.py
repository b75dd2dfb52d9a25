"""Pipeline error taxonomy.

Adapters raise their own low-level errors (``FFmpegError``, ``YtdlpError``);
the orchestrator classifies them into these types before writing the
user-facing hint into the job.
"""
from typing import Optional


class ClipSparkError(Exception):
    """Base error carrying a user-facing hint."""

    default_hint = "Unable to process video."

    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.hint = hint or message or self.default_hint


class InvalidInput(ClipSparkError):
    """Bad or missing reference URL. Rejected before a job is created."""


class InvalidTransition(ClipSparkError):
    """A job state transition that the state machine does not allow."""


class RetrievalFailure(ClipSparkError):
    """The content provider could not deliver the source media."""


class TranscriptUnavailable(ClipSparkError):
    """Neither the transcript provider nor speech-to-text produced segments."""

    default_hint = (
        "No transcript found. Add captions on YouTube or set OPENAI_API_KEY "
        "for auto transcription."
    )

    def __init__(self, message: Optional[str] = None, hint: Optional[str] = None):
        super().__init__(message or self.default_hint, hint)


class PayloadTooLarge(ClipSparkError):
    """Extracted audio exceeds the speech-to-text upload limit."""


class SpeechToTextError(ClipSparkError):
    """The speech-to-text provider rejected the request."""


class RenderFailure(ClipSparkError):
    """The transcoding engine failed for a clip."""


class PackagingFailure(ClipSparkError):
    """The output archive could not be written."""

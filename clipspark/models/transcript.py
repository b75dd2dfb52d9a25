"""Transcript and highlight window data types."""
from dataclasses import dataclass


@dataclass(frozen=True)
class TranscriptSegment:
    """One timestamped unit of transcript text."""
    text: str
    offset: float
    duration: float

    @property
    def end(self) -> float:
        return self.offset + self.duration

    def overlaps(self, start: float, end: float) -> bool:
        """True if any part of the segment falls inside [start, end)."""
        return self.offset < end and self.end > start

    def __repr__(self):
        return f"TranscriptSegment({self.offset:.2f}+{self.duration:.2f}s, {self.text[:30]!r})"


@dataclass
class HighlightCandidate:
    """A scored candidate window, discarded after selection."""
    start: float
    end: float
    score: float
    fallback: bool = False


@dataclass(frozen=True)
class HighlightWindow:
    """A selected highlight window."""
    id: int
    start: float
    end: float
    fallback: bool = False

    @property
    def duration(self) -> float:
        return self.end - self.start

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "duration": self.duration,
            "fallback": self.fallback,
        }

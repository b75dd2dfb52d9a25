"""Clip-local caption tracks (SRT and WebVTT)."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

from clipspark.models.transcript import HighlightWindow, TranscriptSegment

logger = logging.getLogger(__name__)

MIN_CUE_SECONDS = 0.08  # Shorter fragments are not readable


@dataclass(frozen=True)
class CaptionCue:
    """A caption re-based to clip-local time."""
    start: float
    end: float
    text: str

    @property
    def duration(self) -> float:
        return self.end - self.start


def build_caption_cues(
    transcript: Sequence[TranscriptSegment],
    start: float,
    end: float,
) -> List[CaptionCue]:
    """
    Slice a transcript to [start, end) and shift it to clip-local time.

    Segments are clipped to the window edges; cues shorter than
    ``MIN_CUE_SECONDS`` after clipping are dropped. Transcript order is kept.
    """
    cues = []
    for segment in transcript:
        if not segment.overlaps(start, end):
            continue
        local_start = max(segment.offset, start) - start
        local_end = min(segment.end, end) - start
        if local_end - local_start < MIN_CUE_SECONDS:
            continue
        cues.append(CaptionCue(start=local_start, end=local_end, text=segment.text.strip()))
    return cues


def _split_ms(seconds: float) -> Tuple[int, int, int, int]:
    total_ms = max(0, int(seconds * 1000))
    hours, rem = divmod(total_ms, 3_600_000)
    minutes, rem = divmod(rem, 60_000)
    secs, ms = divmod(rem, 1000)
    return hours, minutes, secs, ms


def format_srt_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS,mmm."""
    h, m, s, ms = _split_ms(seconds)
    return f"{h:02d}:{m:02d}:{s:02d},{ms:03d}"


def format_vtt_time(seconds: float) -> str:
    """Format seconds as HH:MM:SS.mmm."""
    h, m, s, ms = _split_ms(seconds)
    return f"{h:02d}:{m:02d}:{s:02d}.{ms:03d}"


def render_srt(cues: Sequence[CaptionCue]) -> str:
    lines = []
    for index, cue in enumerate(cues, start=1):
        lines.append(str(index))
        lines.append(f"{format_srt_time(cue.start)} --> {format_srt_time(cue.end)}")
        lines.append(cue.text)
        lines.append("")
    return "\n".join(lines)


def render_vtt(cues: Sequence[CaptionCue]) -> str:
    lines = ["WEBVTT", ""]
    for cue in cues:
        lines.append(f"{format_vtt_time(cue.start)} --> {format_vtt_time(cue.end)}")
        lines.append(cue.text)
        lines.append("")
    return "\n".join(lines)


def write_caption_files(
    transcript: Sequence[TranscriptSegment],
    window: HighlightWindow,
    srt_path: Path,
    vtt_path: Path,
) -> List[CaptionCue]:
    """
    Write both caption formats for one window from a single cue list.

    Returns:
        The cues written to both files
    """
    cues = build_caption_cues(transcript, window.start, window.end)

    Path(srt_path).write_text(render_srt(cues), encoding="utf-8")
    Path(vtt_path).write_text(render_vtt(cues), encoding="utf-8")

    logger.debug(f"Wrote {len(cues)} cues for clip {window.id}")
    return cues

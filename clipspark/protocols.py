"""Interfaces of the external collaborators used by the job pipeline."""
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Tuple

from clipspark.models.transcript import TranscriptSegment


@dataclass
class MediaInfo:
    """Metadata reported by the content provider."""
    title: str
    duration: float
    video_id: Optional[str] = None


class ContentProvider(Protocol):
    async def fetch_info(self, url: str) -> MediaInfo:
        """Return title and duration for a reference URL."""

    async def download(self, url: str, output_dir: Path, filename: str = "source") -> Path:
        """Download the best combined audio+video mp4 and return its path."""


class TranscriptProvider(Protocol):
    async def fetch(self, url: str, language: Optional[str] = None) -> List[TranscriptSegment]:
        """Return ordered segments, or an empty list when none are available."""


class SpeechToTextProvider(Protocol):
    @property
    def enabled(self) -> bool:
        """Whether a credential is configured."""

    async def transcribe(self, audio_path: Path, language: Optional[str] = None) -> List[TranscriptSegment]:
        """Transcribe an audio file into ordered segments."""


class TranscodingEngine(Protocol):
    async def probe_dimensions(self, video_path: Path) -> Tuple[int, int]:
        """Return (width, height) of the first video stream."""

    async def extract_audio(self, video_path: Path, audio_path: Path) -> Path:
        """Write an audio-only track suitable for speech-to-text."""

    async def render(
        self,
        input_path: Path,
        output_path: Path,
        start: float,
        duration: float,
        filters: Sequence[str],
    ) -> Path:
        """Apply the filters to [start, start + duration) and encode the result."""


class ArchivePackager(Protocol):
    async def package(self, files: Sequence[Tuple[Path, str]], archive_path: Path) -> Path:
        """Write (path, name) pairs into one archive and return its path."""

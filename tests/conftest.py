"""Shared fixtures and fake collaborators for pipeline tests."""
from pathlib import Path
from typing import List, Optional

import pytest

from clipspark.config import Settings
from clipspark.models.transcript import TranscriptSegment
from clipspark.protocols import MediaInfo
from clipspark.services.packaging import ZipPackager
from clipspark.utils.ffmpeg import FFmpegError
from clipspark.workers.orchestrator import JobOrchestrator

VIDEO_URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"

FILLER = "so today we are going to talk about the thing we do every day"


def make_transcript(minutes: float = 40, step: float = 4.0, text: str = FILLER) -> List[TranscriptSegment]:
    """Transcript at roughly normal talking pace: one 13-word line every 4 seconds."""
    count = int(minutes * 60 / step)
    return [TranscriptSegment(text=text, offset=i * step, duration=step) for i in range(count)]


class FakeContent:
    def __init__(self, title="My Talk: Part 1?", duration=2400.0, error=None):
        self.title = title
        self.duration = duration
        self.error = error
        self.downloads = []

    async def fetch_info(self, url):
        if self.error:
            raise self.error
        return MediaInfo(title=self.title, duration=self.duration, video_id="dQw4w9WgXcQ")

    async def download(self, url, output_dir, filename="source"):
        path = Path(output_dir) / f"{filename}.mp4"
        path.write_bytes(b"source-video")
        self.downloads.append(path)
        return path


class FakeTranscripts:
    def __init__(self, segments=None):
        self.segments = segments or []
        self.calls = []

    async def fetch(self, url, language=None):
        self.calls.append((url, language))
        return list(self.segments)


class FakeSpeech:
    def __init__(self, enabled=False, segments=None, error=None):
        self._enabled = enabled
        self.segments = segments or []
        self.error = error
        self.calls = []

    @property
    def enabled(self):
        return self._enabled

    async def transcribe(self, audio_path, language=None):
        self.calls.append((Path(audio_path), language))
        if self.error:
            raise self.error
        return list(self.segments)


class FakeEngine:
    def __init__(self, size=(1920, 1080), fail_on: Optional[int] = None):
        self.size = size
        self.fail_on = fail_on  # 1-based render call that fails
        self.renders = []
        self.audio_extractions = []

    async def probe_dimensions(self, video_path):
        return self.size

    async def extract_audio(self, video_path, audio_path):
        Path(audio_path).write_bytes(b"audio")
        self.audio_extractions.append(Path(audio_path))
        return Path(audio_path)

    async def render(self, input_path, output_path, start, duration, filters):
        self.renders.append({
            "input": Path(input_path),
            "output": Path(output_path),
            "start": start,
            "duration": duration,
            "filters": list(filters),
        })
        if self.fail_on is not None and len(self.renders) == self.fail_on:
            raise FFmpegError("Export failed: Invalid data found when processing input")
        Path(output_path).write_bytes(b"clip")
        return Path(output_path)


@pytest.fixture
def settings(tmp_path):
    return Settings(jobs_dir=tmp_path / "jobs", openai_api_key=None)


@pytest.fixture
def transcript():
    return make_transcript()


@pytest.fixture
def content():
    return FakeContent()


@pytest.fixture
def engine():
    return FakeEngine()


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def transcripts(transcript):
    return FakeTranscripts(transcript)


@pytest.fixture
def orchestrator(settings, content, transcripts, speech, engine):
    return JobOrchestrator(
        settings=settings,
        content=content,
        transcripts=transcripts,
        speech=speech,
        engine=engine,
        packager=ZipPackager(),
    )

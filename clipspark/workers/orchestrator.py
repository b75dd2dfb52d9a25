"""End-to-end highlight job pipeline."""
import asyncio
import logging
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from clipspark.config import Settings
from clipspark.errors import (
    ClipSparkError,
    PackagingFailure,
    RenderFailure,
    RetrievalFailure,
    TranscriptUnavailable,
)
from clipspark.models.job import Job, JobStep
from clipspark.models.transcript import HighlightWindow, TranscriptSegment
from clipspark.pipeline.captions import write_caption_files
from clipspark.pipeline.highlights import SelectionParams, select_highlights
from clipspark.pipeline.render import build_crop_filters, build_render_plan, render_clip
from clipspark.protocols import (
    ArchivePackager,
    ContentProvider,
    MediaInfo,
    SpeechToTextProvider,
    TranscodingEngine,
    TranscriptProvider,
)
from clipspark.services.packaging import ARCHIVE_NAME
from clipspark.utils.ffmpeg import FFmpegError
from clipspark.utils.ytdlp import YtdlpError

logger = logging.getLogger(__name__)

BLOCKED_HINT = (
    "YouTube blocked the server (403). Try another video, or set "
    "CLIPSPARK_YTDL_COOKIE / CLIPSPARK_YTDL_COOKIES_FILE."
)
GENERIC_HINT = "Unable to process video."
DEFAULT_TITLE = "clipspark"
UNKNOWN_DURATION_SECONDS = 600.0

# Progress checkpoints per stage (fixed, not measured)
PROGRESS_RETRIEVAL = 0.10
PROGRESS_TRANSCRIPT = 0.20
PROGRESS_SPEECH_TO_TEXT = 0.25
PROGRESS_SELECTION = 0.35
PROGRESS_RENDER_START = 0.40
PROGRESS_RENDER_END = 0.90
PROGRESS_PACKAGING = 0.95

_UNSAFE_TITLE_CHARS = re.compile(r'[/\\?%*:|"<>]')


def sanitize_title(title: Optional[str]) -> str:
    """Make a media title safe for use in file names."""
    cleaned = _UNSAFE_TITLE_CHARS.sub("", title or DEFAULT_TITLE)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()[:80].strip()
    return cleaned or DEFAULT_TITLE


def render_progress(index: int, total: int) -> float:
    """Checkpoint for the clip at 0-based ``index`` out of ``total``."""
    if total <= 0:
        return PROGRESS_RENDER_START
    span = PROGRESS_RENDER_END - PROGRESS_RENDER_START
    return PROGRESS_RENDER_START + span * index / total


@dataclass
class ClipOutput:
    """Files produced for one highlight window."""
    window: HighlightWindow
    video_path: Path
    srt_path: Path
    vtt_path: Path

    def archive_entries(self, title: str) -> List[Tuple[Path, str]]:
        base = f"{title}_clip_{self.window.id}"
        return [
            (self.video_path, f"{base}.mp4"),
            (self.srt_path, f"{base}.srt"),
            (self.vtt_path, f"{base}.vtt"),
        ]


class JobOrchestrator:
    """Drives one job from URL to packaged clips, publishing progress on the job."""

    def __init__(
        self,
        settings: Settings,
        content: ContentProvider,
        transcripts: TranscriptProvider,
        speech: SpeechToTextProvider,
        engine: TranscodingEngine,
        packager: ArchivePackager,
    ):
        self.settings = settings
        self.content = content
        self.transcripts = transcripts
        self.speech = speech
        self.engine = engine
        self.packager = packager

    async def run(self, job: Job, url: str) -> None:
        """
        Run the pipeline for a job.

        Every failure ends here: it is classified, logged and written once
        into the job's error state.
        """
        try:
            await self._run(job, url)
        except asyncio.CancelledError:
            raise
        except ClipSparkError as e:
            logger.warning(f"Job {job.id} failed: {e.message}")
            job.fail(e.hint)
        except Exception:
            logger.exception(f"Job {job.id} failed unexpectedly")
            job.fail(GENERIC_HINT)

    async def _run(self, job: Job, url: str) -> None:
        options = job.options
        work_dir = self._make_work_dir(job)

        job.start("Downloading video...", work_dir=work_dir)
        job.advance(JobStep.RETRIEVAL, PROGRESS_RETRIEVAL, "Downloading video...")
        info, video_path = await self.retrieve(url, work_dir)
        title = sanitize_title(info.title)

        job.advance(JobStep.TRANSCRIPT, PROGRESS_TRANSCRIPT, "Fetching transcript...")
        transcript = await self.acquire_transcript(job, url, video_path, work_dir)

        job.advance(JobStep.SELECTION, PROGRESS_SELECTION, "Detecting highlights...")
        windows = self.select(transcript, info.duration, options.length, options.goal)

        outputs = await self.render_all(job, video_path, work_dir, transcript, windows)

        job.advance(JobStep.PACKAGING, PROGRESS_PACKAGING, "Packaging exports...")
        archive = await self.package(outputs, title, work_dir)

        job.complete(archive, "Highlights ready.")
        logger.info(f"Job {job.id} done: {len(outputs)} clips in {archive}")

    def _make_work_dir(self, job: Job) -> Path:
        if job.work_dir is not None:
            job.work_dir.mkdir(parents=True, exist_ok=True)
            return job.work_dir
        jobs_dir = Path(self.settings.jobs_dir)
        jobs_dir.mkdir(parents=True, exist_ok=True)
        return Path(tempfile.mkdtemp(prefix="clipspark-", dir=jobs_dir))

    # -------------------------------------------------------------------------
    # Stages
    # -------------------------------------------------------------------------

    async def retrieve(self, url: str, work_dir: Path) -> Tuple[MediaInfo, Path]:
        try:
            info = await self.content.fetch_info(url)
            video_path = await self.content.download(url, work_dir, "source")
        except YtdlpError as e:
            hint = BLOCKED_HINT if e.blocked else str(e)
            raise RetrievalFailure(str(e), hint=hint) from e
        return info, video_path

    async def acquire_transcript(
        self,
        job: Job,
        url: str,
        video_path: Path,
        work_dir: Path,
    ) -> List[TranscriptSegment]:
        """Captions first; speech-to-text only if they are missing and a key is set."""
        language = job.options.language
        transcript = await self.transcripts.fetch(url, language)
        if transcript:
            return transcript

        if not self.speech.enabled:
            raise TranscriptUnavailable()

        job.advance(JobStep.TRANSCRIPT, PROGRESS_SPEECH_TO_TEXT, "Transcribing audio with OpenAI...")
        try:
            audio_path = await self.engine.extract_audio(video_path, work_dir / "audio.m4a")
        except FFmpegError as e:
            raise TranscriptUnavailable(f"Audio extraction failed: {e}") from e

        transcript = await self.speech.transcribe(audio_path, language)
        if not transcript:
            raise TranscriptUnavailable()
        return transcript

    def select(
        self,
        transcript: Sequence[TranscriptSegment],
        duration: float,
        length: str,
        goal: str,
    ) -> List[HighlightWindow]:
        total = duration if duration and duration > 0 else UNKNOWN_DURATION_SECONDS
        params = SelectionParams.from_options(length, goal, count=self.settings.clip_count)
        windows = select_highlights(transcript, total, params)
        logger.info(
            "Selected windows: "
            + ", ".join(f"#{w.id} {w.start:.1f}-{w.end:.1f}s" for w in windows)
        )
        return windows

    async def render_all(
        self,
        job: Job,
        video_path: Path,
        work_dir: Path,
        transcript: Sequence[TranscriptSegment],
        windows: Sequence[HighlightWindow],
    ) -> List[ClipOutput]:
        options = job.options
        try:
            width, height = await self.engine.probe_dimensions(video_path)
            crop_filters = build_crop_filters(
                width, height, self.settings.target_width, self.settings.target_height
            )
        except (FFmpegError, ValueError) as e:
            raise RenderFailure(f"Unable to read video stream: {e}") from e

        outputs = []
        for index, window in enumerate(windows):
            job.advance(
                JobStep.RENDERING,
                render_progress(index, len(windows)),
                f"Rendering clip {window.id}...",
            )
            base = f"clip_{window.id}"
            clip = ClipOutput(
                window=window,
                video_path=work_dir / f"{base}.mp4",
                srt_path=work_dir / f"{base}.srt",
                vtt_path=work_dir / f"{base}.vtt",
            )
            await asyncio.to_thread(
                write_caption_files, transcript, window, clip.srt_path, clip.vtt_path
            )

            plan = build_render_plan(
                start=window.start,
                duration=window.duration,
                crop_filters=crop_filters,
                subtitle_path=clip.srt_path,
                style_name=options.subtitle_style,
                burn_in=options.burn_in,
            )
            try:
                await render_clip(self.engine, video_path, clip.video_path, plan)
            except FFmpegError as e:
                raise RenderFailure(f"Clip {window.id} failed to render: {e}", hint=str(e)) from e
            outputs.append(clip)
        return outputs

    async def package(self, outputs: Sequence[ClipOutput], title: str, work_dir: Path) -> Path:
        files = [entry for clip in outputs for entry in clip.archive_entries(title)]
        try:
            return await self.packager.package(files, work_dir / ARCHIVE_NAME)
        except OSError as e:
            raise PackagingFailure(f"Packaging failed: {e}") from e

"""Tests for the end-to-end job pipeline with fake collaborators."""
import threading
import zipfile

import pytest

from clipspark.errors import PayloadTooLarge
from clipspark.models.job import HighlightOptions, Job, JobStatus, JobStep
from clipspark.pipeline.render import SUBTITLE_STYLES
from clipspark.services.packaging import ARCHIVE_NAME, ZipPackager
from clipspark.utils.ytdlp import YtdlpError
from clipspark.workers.orchestrator import (
    BLOCKED_HINT,
    GENERIC_HINT,
    JobOrchestrator,
    render_progress,
    sanitize_title,
)

from tests.conftest import (
    VIDEO_URL,
    FakeContent,
    FakeEngine,
    FakeSpeech,
    FakeTranscripts,
    make_transcript,
)


class RecordingJob(Job):
    """Job that remembers (status, step, progress) after every transition."""

    def _touch(self):
        super()._touch()
        self.__dict__.setdefault("history", []).append((self.status, self.step, self.progress))


def _orchestrator(settings, content=None, transcripts=None, speech=None, engine=None):
    return JobOrchestrator(
        settings=settings,
        content=content or FakeContent(),
        transcripts=transcripts or FakeTranscripts(make_transcript()),
        speech=speech or FakeSpeech(),
        engine=engine or FakeEngine(),
        packager=ZipPackager(),
    )


def _assert_monotonic(job):
    for (_, step_a, prog_a), (_, step_b, prog_b) in zip(job.history, job.history[1:]):
        assert step_b >= step_a
        assert prog_b >= prog_a


class TestHelpers:
    def test_sanitize_title(self):
        assert sanitize_title("My Talk: Part 1?") == "My Talk Part 1"
        assert sanitize_title('a/b\\c*d|e"f<g>h%i') == "abcdefghi"
        assert sanitize_title("  lots   of\tspace ") == "lots of space"

    def test_sanitize_empty_title(self):
        assert sanitize_title("") == "clipspark"
        assert sanitize_title("???") == "clipspark"
        assert sanitize_title(None) == "clipspark"

    def test_sanitize_long_title(self):
        assert len(sanitize_title("x" * 200)) == 80

    def test_render_progress(self):
        assert render_progress(0, 3) == pytest.approx(0.40)
        assert render_progress(2, 3) == pytest.approx(0.40 + 0.5 * 2 / 3)
        assert render_progress(0, 0) == pytest.approx(0.40)


class TestPipeline:
    """Happy path runs."""

    @pytest.mark.asyncio
    async def test_end_to_end(self, settings, content, transcripts, engine, orchestrator):
        job = RecordingJob(options=HighlightOptions(language="en"))
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.DONE
        assert job.progress == 1.0
        assert job.error is None
        assert job.to_dict()["downloadReady"] is True
        assert transcripts.calls == [(VIDEO_URL, "en")]
        _assert_monotonic(job)

        # Every stage is visited in order
        steps = [step for _, step, _ in job.history]
        assert steps[0] == JobStep.RETRIEVAL
        assert JobStep.SELECTION in steps
        assert steps[-1] == JobStep.PACKAGING

        # Three 24 second clips cropped for a 1920x1080 source with captions burned in
        assert len(engine.renders) == 3
        for render in engine.renders:
            assert render["input"] == content.downloads[0]
            assert render["duration"] == pytest.approx(24)
            assert render["filters"][:3] == ["crop=607:1080:656:0", "scale=1080:1920", "setsar=1"]
            assert SUBTITLE_STYLES["kinetic"] in render["filters"][3]

        archive = job.output_archive
        assert archive.name == ARCHIVE_NAME
        assert archive.parent.parent == settings.jobs_dir
        with zipfile.ZipFile(archive) as zf:
            names = sorted(zf.namelist())
            srt = zf.read("My Talk Part 1_clip_1.srt").decode("utf-8")
            vtt = zf.read("My Talk Part 1_clip_1.vtt").decode("utf-8")
        assert names == sorted(
            f"My Talk Part 1_clip_{i}.{ext}" for i in (1, 2, 3) for ext in ("mp4", "srt", "vtt")
        )
        assert srt.startswith("1\n")
        assert vtt.startswith("WEBVTT")

    @pytest.mark.asyncio
    async def test_no_burn_in(self, settings, engine):
        orchestrator = _orchestrator(settings, engine=engine)
        job = Job(options=HighlightOptions(burn_in=False))
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.DONE
        assert all(len(r["filters"]) == 3 for r in engine.renders)

    @pytest.mark.asyncio
    async def test_length_preset(self, settings, engine):
        orchestrator = _orchestrator(settings, engine=engine)
        job = Job(options=HighlightOptions(length="long", goal="tutorial"))
        await orchestrator.run(job, VIDEO_URL)

        assert all(r["duration"] == pytest.approx(52) for r in engine.renders)

    @pytest.mark.asyncio
    async def test_speech_to_text_fallback(self, settings, engine):
        speech = FakeSpeech(enabled=True, segments=make_transcript(10))
        orchestrator = _orchestrator(
            settings, transcripts=FakeTranscripts([]), speech=speech, engine=engine
        )
        job = RecordingJob()
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.DONE
        assert [p.name for p in engine.audio_extractions] == ["audio.m4a"]
        assert speech.calls[0][0] == engine.audio_extractions[0]
        assert 0.25 in [progress for _, _, progress in job.history]
        _assert_monotonic(job)

    @pytest.mark.asyncio
    async def test_unknown_duration(self, settings, engine):
        orchestrator = _orchestrator(settings, content=FakeContent(duration=0), engine=engine)
        job = Job()
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.DONE
        assert all(r["start"] + r["duration"] <= 600 for r in engine.renders)

    @pytest.mark.asyncio
    async def test_preset_work_dir(self, settings, tmp_path):
        orchestrator = _orchestrator(settings)
        job = Job(work_dir=tmp_path / "mine")
        await orchestrator.run(job, VIDEO_URL)

        assert job.output_archive == tmp_path / "mine" / ARCHIVE_NAME
        assert job.output_archive.exists()


class TestFailures:
    """Every failure lands in the job's error state exactly once."""

    @pytest.mark.asyncio
    async def test_blocked_download(self, settings):
        error = YtdlpError("Failed to get video info: ERROR: HTTP Error 403: Forbidden")
        orchestrator = _orchestrator(settings, content=FakeContent(error=error))
        job = Job()
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.ERROR
        assert job.error == BLOCKED_HINT
        assert job.progress == pytest.approx(0.10)
        assert job.to_dict()["message"] == BLOCKED_HINT

    @pytest.mark.asyncio
    async def test_other_download_error_is_verbatim(self, settings):
        error = YtdlpError("Download failed - check URL and try again", output="ERROR: Video unavailable")
        orchestrator = _orchestrator(settings, content=FakeContent(error=error))
        job = Job()
        await orchestrator.run(job, VIDEO_URL)

        assert job.error == "Download failed - check URL and try again"

    @pytest.mark.asyncio
    async def test_no_transcript_without_key(self, settings, engine):
        orchestrator = _orchestrator(settings, transcripts=FakeTranscripts([]), engine=engine)
        job = Job()
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.ERROR
        assert job.error.startswith("No transcript found.")
        assert "OPENAI_API_KEY" in job.error
        assert engine.renders == []
        assert engine.audio_extractions == []

    @pytest.mark.asyncio
    async def test_speech_to_text_returns_nothing(self, settings):
        orchestrator = _orchestrator(
            settings, transcripts=FakeTranscripts([]), speech=FakeSpeech(enabled=True)
        )
        job = Job()
        await orchestrator.run(job, VIDEO_URL)

        assert job.error.startswith("No transcript found.")

    @pytest.mark.asyncio
    async def test_payload_too_large_is_verbatim(self, settings):
        hint = "Audio too large for transcription. Keep clips under 25MB."
        speech = FakeSpeech(enabled=True, error=PayloadTooLarge(hint))
        orchestrator = _orchestrator(settings, transcripts=FakeTranscripts([]), speech=speech)
        job = Job()
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.ERROR
        assert job.error == hint

    @pytest.mark.asyncio
    async def test_render_failure_stops_remaining_clips(self, settings):
        engine = FakeEngine(fail_on=2)
        orchestrator = _orchestrator(settings, engine=engine)
        job = RecordingJob()
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.ERROR
        assert job.error == "Export failed: Invalid data found when processing input"
        assert len(engine.renders) == 2
        assert job.step == JobStep.RENDERING
        assert job.progress == pytest.approx(render_progress(1, 3))
        assert job.output_archive is None
        assert not (job.work_dir / ARCHIVE_NAME).exists()
        assert job.to_dict()["downloadReady"] is False
        _assert_monotonic(job)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, settings):
        orchestrator = _orchestrator(settings, content=FakeContent(error=RuntimeError("boom")))
        job = Job()
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.ERROR
        assert job.error == GENERIC_HINT

    @pytest.mark.asyncio
    async def test_unreadable_dimensions(self, settings):
        orchestrator = _orchestrator(settings, engine=FakeEngine(size=(0, 0)))
        job = Job()
        await orchestrator.run(job, VIDEO_URL)

        assert job.status == JobStatus.ERROR
        assert "Unable to read video stream" in job.error


class TestSelection:
    def test_short_media_still_yields_clips(self, orchestrator):
        windows = orchestrator.select([], 3.0, "short", "highlights")
        assert len(windows) == 3
        assert all(w.start == 0 and w.end == 3.0 for w in windows)

    def test_unknown_duration_uses_default(self, orchestrator):
        windows = orchestrator.select([], -1, "short", "highlights")
        assert all(w.end <= 600 for w in windows)
        assert all(w.duration == pytest.approx(24) for w in windows)


@pytest.mark.asyncio
async def test_captions_written_off_event_loop(monkeypatch, orchestrator):
    from clipspark.workers import orchestrator as orchestrator_module

    threads = []
    real_write = orchestrator_module.write_caption_files

    def recording_write(*args):
        threads.append(threading.current_thread())
        return real_write(*args)

    monkeypatch.setattr(orchestrator_module, "write_caption_files", recording_write)
    job = Job()
    await orchestrator.run(job, VIDEO_URL)

    assert job.status == JobStatus.DONE
    assert len(threads) == 3
    assert all(t is not threading.main_thread() for t in threads)

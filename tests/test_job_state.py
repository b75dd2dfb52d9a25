"""Tests for the job state machine."""
import threading
from datetime import timedelta

import pytest

from clipspark.errors import InvalidTransition
from clipspark.models.job import HighlightOptions, Job, JobStatus, JobStep


def _started(**kwargs):
    job = Job(**kwargs)
    job.start("Fetching video info...")
    return job


class TestTransitions:
    """Tests for allowed and rejected transitions."""

    def test_new_job(self):
        job = Job()
        assert job.status == JobStatus.QUEUED
        assert job.step == JobStep.RETRIEVAL
        assert job.progress == 0.0
        assert len(job.id) == 32

    def test_ids_unique(self):
        assert len({Job().id for _ in range(100)}) == 100

    def test_start(self, tmp_path):
        job = Job()
        job.start("Fetching video info...", work_dir=tmp_path)
        assert job.status == JobStatus.PROCESSING
        assert job.work_dir == tmp_path
        assert job.message == "Fetching video info..."

    def test_start_twice(self):
        job = _started()
        with pytest.raises(InvalidTransition):
            job.start()

    def test_advance_before_start(self):
        with pytest.raises(InvalidTransition):
            Job().advance(JobStep.TRANSCRIPT, 0.2)

    def test_step_cannot_go_back(self):
        job = _started()
        job.advance(JobStep.RENDERING, 0.4)
        with pytest.raises(InvalidTransition):
            job.advance(JobStep.SELECTION, 0.5)
        assert job.step == JobStep.RENDERING

    def test_progress_never_regresses(self):
        job = _started()
        job.advance(JobStep.TRANSCRIPT, 0.35)
        job.advance(JobStep.TRANSCRIPT, 0.25, "Transcribing audio with OpenAI...")
        assert job.progress == 0.35
        assert job.message == "Transcribing audio with OpenAI..."

    def test_progress_clamped(self):
        job = _started()
        job.advance(JobStep.RENDERING, 7.0)
        assert job.progress == 1.0

    def test_complete(self, tmp_path):
        job = _started()
        job.complete(tmp_path / "clipspark_output.zip")
        assert job.status == JobStatus.DONE
        assert job.step == JobStep.PACKAGING
        assert job.progress == 1.0
        assert job.message == "Highlights ready."

    def test_fail_keeps_progress(self):
        job = _started()
        job.advance(JobStep.RENDERING, 0.65)
        job.fail("Export failed: boom")
        assert job.status == JobStatus.ERROR
        assert job.progress == 0.65
        assert job.step == JobStep.RENDERING
        assert job.error == "Export failed: boom"

    def test_fail_from_queued(self):
        job = Job()
        job.fail("Unable to process video.")
        assert job.status == JobStatus.ERROR

    @pytest.mark.parametrize("finish", ["complete", "fail"])
    def test_terminal_states_frozen(self, finish, tmp_path):
        job = _started()
        if finish == "complete":
            job.complete(tmp_path / "out.zip")
        else:
            job.fail("nope")
        before = job.snapshot()

        with pytest.raises(InvalidTransition):
            job.advance(JobStep.PACKAGING, 0.99)
        with pytest.raises(InvalidTransition):
            job.fail("again")
        with pytest.raises(InvalidTransition):
            job.complete(tmp_path / "other.zip")

        assert job.snapshot() == before

    def test_transitions_touch_updated_at(self):
        job = Job()
        job.updated_at = job.updated_at - timedelta(hours=1)
        stale = job.updated_at
        job.start()
        assert job.updated_at > stale


class TestReads:
    def test_to_dict_processing(self):
        job = _started()
        job.advance(JobStep.SELECTION, 0.35, "Picking highlights...")
        assert job.to_dict() == {
            "id": job.id,
            "status": "processing",
            "step": 2,
            "message": "Picking highlights...",
            "progress": 0.35,
            "downloadReady": False,
        }

    def test_to_dict_error_shows_hint(self):
        job = _started()
        job.fail("No transcript found.")
        data = job.to_dict()
        assert data["status"] == "error"
        assert data["message"] == "No transcript found."
        assert data["downloadReady"] is False

    def test_to_dict_done(self, tmp_path):
        job = _started()
        job.complete(tmp_path / "out.zip")
        assert job.to_dict()["downloadReady"] is True

    def test_age(self):
        job = Job()
        assert job.age(job.updated_at + timedelta(seconds=90)) == 90

    def test_options_defaults(self):
        options = HighlightOptions()
        assert options.length == "short"
        assert options.burn_in is True
        assert options.platforms == []


def test_concurrent_snapshots_are_monotonic():
    job = _started()
    seen = []
    done = threading.Event()

    def reader():
        while not done.is_set():
            snap = job.snapshot()
            seen.append((snap.step, snap.progress))

    thread = threading.Thread(target=reader)
    thread.start()
    try:
        for i in range(1, 500):
            step = JobStep(min(4, i // 100))
            job.advance(step, i / 500)
    finally:
        done.set()
        thread.join()

    for (step_a, prog_a), (step_b, prog_b) in zip(seen, seen[1:]):
        assert step_b >= step_a
        assert prog_b >= prog_a

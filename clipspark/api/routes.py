"""API routes."""
import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import FileResponse

from clipspark.api.schemas import (
    HealthResponse,
    HighlightRequest,
    JobCreatedResponse,
    JobResponse,
)
from clipspark.config import Settings
from clipspark.errors import InvalidInput
from clipspark.services.packaging import ARCHIVE_NAME
from clipspark.utils.ffmpeg import check_ffmpeg_available, check_ffprobe_available
from clipspark.utils.ytdlp import check_ytdlp_available, is_youtube_url
from clipspark.workers.job_runner import JobRunner
from clipspark.workers.registry import JobRegistry

router = APIRouter()
logger = logging.getLogger(__name__)


def get_registry(request: Request) -> JobRegistry:
    return request.app.state.registry


def get_runner(request: Request) -> JobRunner:
    return request.app.state.runner


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# =============================================================================
# Health & System
# =============================================================================

@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_settings),
    registry: JobRegistry = Depends(get_registry),
):
    """Check API health and dependencies."""
    ffmpeg_ok = check_ffmpeg_available(settings)
    ffprobe_ok = check_ffprobe_available(settings)
    ytdlp_ok = check_ytdlp_available(settings)

    all_ok = ffmpeg_ok and ffprobe_ok and ytdlp_ok

    message = None
    if not all_ok:
        missing = []
        if not ffmpeg_ok:
            missing.append("ffmpeg")
        if not ffprobe_ok:
            missing.append("ffprobe")
        if not ytdlp_ok:
            missing.append("yt-dlp")
        message = f"Missing dependencies: {', '.join(missing)}"

    return HealthResponse(
        status="healthy" if all_ok else "degraded",
        ffmpeg_available=ffmpeg_ok,
        ffprobe_available=ffprobe_ok,
        ytdlp_available=ytdlp_ok,
        transcription_enabled=settings.transcription_enabled,
        active_jobs=len(registry),
        message=message
    )


# =============================================================================
# Jobs
# =============================================================================

@router.post("/jobs", response_model=JobCreatedResponse, status_code=202)
@router.post("/highlights", response_model=JobCreatedResponse, status_code=202)
async def create_job(
    data: HighlightRequest,
    registry: JobRegistry = Depends(get_registry),
    runner: JobRunner = Depends(get_runner),
):
    """Submit a video for highlight extraction. Returns immediately."""
    url = (data.url or "").strip()
    if not is_youtube_url(url):
        raise InvalidInput("Invalid URL", hint="Enter a valid YouTube URL.")

    job = registry.create(data.to_options())
    runner.submit(job, url)
    logger.info(f"Accepted job {job.id} for {url}")

    return JobCreatedResponse(job_id=job.id)


@router.get("/jobs/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, registry: JobRegistry = Depends(get_registry)):
    """Get job status."""
    job = registry.get(job_id)
    if not job:
        raise HTTPException(status_code=404, detail="Job not found.")
    return JobResponse.model_validate(job.to_dict())


@router.get("/jobs/{job_id}/download")
async def download_job(job_id: str, registry: JobRegistry = Depends(get_registry)):
    """Download the packaged clips."""
    job = registry.get(job_id)
    snapshot = job.snapshot() if job else None
    if not snapshot or not snapshot.download_ready:
        raise HTTPException(status_code=404, detail="Output not ready.")

    archive = Path(snapshot.output_archive)
    if not archive.exists():
        raise HTTPException(status_code=404, detail="Output not ready.")

    return FileResponse(
        archive,
        media_type="application/zip",
        filename=ARCHIVE_NAME
    )

"""Pydantic schemas for API requests and responses."""
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from clipspark.models.job import HighlightOptions


# =============================================================================
# Job Schemas
# =============================================================================

class HighlightRequest(BaseModel):
    """Request to cut highlight clips from a video."""
    model_config = ConfigDict(populate_by_name=True)

    url: Optional[str] = Field(None, description="YouTube video URL")
    goal: str = Field("highlights", description="highlights, story or tutorial")
    length: str = Field("short", description="short, medium or long")
    subtitle_style: str = Field("kinetic", alias="subtitleStyle")
    burn_in: bool = Field(True, alias="burnIn")
    language: Optional[str] = Field(None, description="Transcript language code")
    platforms: List[str] = Field(default_factory=list)

    def to_options(self) -> HighlightOptions:
        return HighlightOptions(
            goal=self.goal,
            length=self.length,
            subtitle_style=self.subtitle_style,
            burn_in=self.burn_in,
            language=self.language or None,
            platforms=list(self.platforms),
        )


class JobCreatedResponse(BaseModel):
    """Response for an accepted job."""
    model_config = ConfigDict(populate_by_name=True)

    job_id: str = Field(..., alias="jobId")


class JobResponse(BaseModel):
    """Job status for polling clients."""
    model_config = ConfigDict(populate_by_name=True)

    id: str
    status: str
    step: int
    message: str
    progress: float
    download_ready: bool = Field(..., alias="downloadReady")


# =============================================================================
# Health Check
# =============================================================================

class HealthResponse(BaseModel):
    """Health check response."""
    status: str
    ffmpeg_available: bool
    ffprobe_available: bool
    ytdlp_available: bool
    transcription_enabled: bool
    active_jobs: int
    message: Optional[str] = None

"""Application configuration."""
import tempfile
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="CLIPSPARK_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # App settings
    app_name: str = "ClipSpark"
    debug: bool = False

    # Server settings
    host: str = "0.0.0.0"
    port: int = 3000

    # Job storage and lifetime
    jobs_dir: Path = Path(tempfile.gettempdir())
    job_ttl_seconds: float = 60 * 60  # Jobs older than this are reaped
    reap_interval_seconds: float = 10 * 60
    max_concurrent_jobs: int = 0  # 0 = unbounded

    # FFmpeg settings
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"

    # yt-dlp settings
    ytdlp_path: str = "yt-dlp"
    ytdl_user_agent: str = (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0 Safari/537.36"
    )
    ytdl_cookie: Optional[str] = None  # Raw Cookie header value
    ytdl_cookies_file: Optional[Path] = None  # Netscape cookies.txt
    ytdl_player_clients: Annotated[List[str], NoDecode] = ["android", "ios", "tv"]  # Comma-separated in env

    # Speech-to-text (OpenAI)
    openai_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("CLIPSPARK_OPENAI_API_KEY", "OPENAI_API_KEY"),
    )
    openai_transcribe_model: str = Field(
        default="whisper-1",
        validation_alias=AliasChoices("CLIPSPARK_OPENAI_TRANSCRIBE_MODEL", "OPENAI_TRANSCRIBE_MODEL"),
    )
    openai_transcribe_url: str = "https://api.openai.com/v1/audio/transcriptions"
    max_transcription_bytes: int = 25 * 1024 * 1024
    transcription_timeout_seconds: float = 300.0

    # Clip settings
    clip_count: int = 3
    target_width: int = 1080
    target_height: int = 1920

    # Export settings
    export_video_codec: str = "libx264"
    export_video_preset: str = "veryfast"
    export_audio_codec: str = "aac"

    # Frontend
    frontend_url: str = "http://localhost:5173"

    @field_validator("ytdl_player_clients", mode="before")
    @classmethod
    def split_player_clients(cls, value):
        if isinstance(value, str):
            return [c.strip() for c in value.split(",") if c.strip()]
        return value

    @property
    def transcription_enabled(self) -> bool:
        """Whether the speech-to-text fallback can be used."""
        return bool(self.openai_api_key)


settings = Settings()

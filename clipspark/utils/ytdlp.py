"""yt-dlp utilities for YouTube video retrieval."""
import asyncio
import json
import logging
import re
import shutil
from pathlib import Path
from typing import List, Optional

from clipspark.config import Settings, settings as default_settings
from clipspark.protocols import MediaInfo

logger = logging.getLogger(__name__)

# Best single file carrying both audio and video in an mp4 container
COMBINED_MP4_FORMAT = "b[ext=mp4][vcodec!=none][acodec!=none]/b[ext=mp4]/b"

_BLOCKED_PATTERNS = (
    re.compile(r"HTTP Error 403"),
    re.compile(r"Status code: 403"),
    re.compile(r"\b403\b.*Forbidden", re.IGNORECASE),
    re.compile(r"Sign in to confirm you.re not a bot", re.IGNORECASE),
)


class YtdlpError(Exception):
    """yt-dlp related error."""

    def __init__(self, message: str, output: str = ""):
        super().__init__(message)
        self.output = output

    @property
    def blocked(self) -> bool:
        """True when the platform refused the request (HTTP 403 or bot check)."""
        text = f"{self}\n{self.output}"
        return any(p.search(text) for p in _BLOCKED_PATTERNS)


def check_ytdlp_available(settings: Settings = default_settings) -> bool:
    """Check if yt-dlp is available."""
    return shutil.which(settings.ytdlp_path) is not None


def is_youtube_url(url: str) -> bool:
    """Check if a URL is a valid YouTube URL."""
    if not url:
        return False
    youtube_patterns = [
        r"^https?://(?:www\.|m\.)?youtube\.com/watch\?(?:.*&)?v=[\w-]+",
        r"^https?://(?:www\.|m\.)?youtube\.com/shorts/[\w-]+",
        r"^https?://(?:www\.|m\.)?youtube\.com/live/[\w-]+",
        r"^https?://youtu\.be/[\w-]+",
        r"^https?://(?:www\.)?youtube\.com/embed/[\w-]+",
    ]
    return any(re.match(pattern, url.strip()) for pattern in youtube_patterns)


def extract_video_id(url: str) -> Optional[str]:
    """Pull the 11-character video id out of a YouTube URL."""
    match = re.search(r"(?:v=|youtu\.be/|shorts/|embed/|live/)([\w-]{11})", url or "")
    return match.group(1) if match else None


class YtdlpProvider:
    """Content provider backed by the yt-dlp command line tool."""

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    def request_options(self) -> List[str]:
        """Headers, cookies and player clients shared by every yt-dlp call."""
        opts = [
            "--user-agent", self.settings.ytdl_user_agent,
            "--add-header", "Accept-Language:en-US,en;q=0.9",
        ]
        if self.settings.ytdl_cookie:
            opts += ["--add-header", f"Cookie:{self.settings.ytdl_cookie}"]
        if self.settings.ytdl_cookies_file:
            opts += ["--cookies", str(self.settings.ytdl_cookies_file)]

        clients = [c.strip().lower() for c in self.settings.ytdl_player_clients if c.strip()]
        if clients:
            opts += ["--extractor-args", f"youtube:player_client={','.join(clients)}"]
        return opts

    async def fetch_info(self, url: str) -> MediaInfo:
        """
        Get video information without downloading.

        Raises:
            YtdlpError: If yt-dlp fails or prints unparseable output
        """
        cmd = [
            self.settings.ytdlp_path,
            "--dump-json",
            "--no-download",
            "--no-playlist",
            *self.request_options(),
            url
        ]

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        stdout, stderr = await proc.communicate()

        if proc.returncode != 0:
            error_msg = stderr.decode("utf-8", errors="ignore")
            raise YtdlpError(f"Failed to get video info: {error_msg.strip()}", output=error_msg)

        try:
            info = json.loads(stdout.decode())
        except json.JSONDecodeError as e:
            raise YtdlpError(f"Failed to parse video info: {e}")

        return MediaInfo(
            title=info.get("title") or "",
            duration=float(info.get("duration") or 0),
            video_id=info.get("id"),
        )

    async def download(self, url: str, output_dir: Path, filename: str = "source") -> Path:
        """
        Download the best combined audio+video mp4 into output_dir.

        Returns:
            Path to downloaded video file
        """
        output_dir = Path(output_dir)
        output_dir.mkdir(parents=True, exist_ok=True)

        output_path = output_dir / f"{filename}.mp4"
        cmd = [
            self.settings.ytdlp_path,
            "-f", COMBINED_MP4_FORMAT,
            "-o", str(output_path),
            "--no-playlist",
            "--no-part",
            "--force-overwrites",
            "--newline",
            *self.request_options(),
            url
        ]

        logger.info(f"Running yt-dlp download for {url}")

        proc = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT
        )

        output_lines = []
        while True:
            line = await proc.stdout.readline()
            if not line:
                break
            output_lines.append(line.decode("utf-8", errors="ignore").strip())

        await proc.wait()

        output = "\n".join(output_lines[-20:])
        if proc.returncode != 0:
            logger.error(f"yt-dlp failed with output:\n{output}")
            raise YtdlpError("Download failed - check URL and try again", output=output)

        if not output_path.exists() or output_path.stat().st_size == 0:
            logger.error(f"No video file at {output_path}. Last yt-dlp output:\n{output}")
            raise YtdlpError("Download completed but video file not found", output=output)

        return output_path

"""FFmpeg and ffprobe utilities."""
import asyncio
import json
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import List, Sequence, Tuple

from clipspark.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


@dataclass
class VideoInfo:
    """Frame size of the first video stream."""
    width: int
    height: int


class FFmpegError(Exception):
    """FFmpeg related error."""
    pass


def check_ffmpeg_available(settings: Settings = default_settings) -> bool:
    """Check if ffmpeg is available."""
    return shutil.which(settings.ffmpeg_path) is not None


def check_ffprobe_available(settings: Settings = default_settings) -> bool:
    """Check if ffprobe is available."""
    return shutil.which(settings.ffprobe_path) is not None


async def _run(cmd: List[str]) -> Tuple[int, bytes, bytes]:
    logger.debug(f"Running: {' '.join(cmd)}")
    proc = await asyncio.create_subprocess_exec(
        *cmd,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE
    )
    stdout, stderr = await proc.communicate()
    return proc.returncode, stdout, stderr


def _tail(stderr: bytes, lines: int = 20) -> str:
    text = stderr.decode("utf-8", errors="ignore").strip()
    return "\n".join(text.splitlines()[-lines:])


def parse_probe_output(data: dict) -> VideoInfo:
    """Build VideoInfo from ffprobe JSON output."""
    video_stream = next(
        (s for s in data.get("streams", []) if s.get("codec_type") == "video"), None
    )

    if not video_stream:
        raise FFmpegError("Unable to read video stream.")

    return VideoInfo(
        width=int(video_stream.get("width", 0)),
        height=int(video_stream.get("height", 0)),
    )


class FFmpegEngine:
    """Transcoding engine backed by the ffmpeg and ffprobe binaries."""

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    async def get_video_info(self, video_path: str | Path) -> VideoInfo:
        """
        Get video metadata using ffprobe.

        Raises:
            FFmpegError: If ffprobe fails or no video stream exists
        """
        video_path = Path(video_path)
        if not video_path.exists():
            raise FFmpegError(f"Video file not found: {video_path}")

        cmd = [
            self.settings.ffprobe_path,
            "-v", "quiet",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(video_path)
        ]

        try:
            returncode, stdout, stderr = await _run(cmd)
        except OSError as e:
            raise FFmpegError(f"ffprobe error: {e}")

        if returncode != 0:
            raise FFmpegError(f"ffprobe failed: {_tail(stderr)}")

        try:
            data = json.loads(stdout.decode())
        except json.JSONDecodeError as e:
            raise FFmpegError(f"Failed to parse ffprobe output: {e}")

        return parse_probe_output(data)

    async def probe_dimensions(self, video_path: Path) -> Tuple[int, int]:
        info = await self.get_video_info(video_path)
        return info.width, info.height

    async def extract_audio(self, video_path: Path, audio_path: Path) -> Path:
        """Extract a small mono AAC track (16 kHz, 64k) for transcription."""
        audio_path = Path(audio_path)
        audio_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = [
            self.settings.ffmpeg_path,
            "-y",
            "-i", str(video_path),
            "-vn",
            "-c:a", "aac",
            "-b:a", "64k",
            "-ac", "1",
            "-ar", "16000",
            "-movflags", "+faststart",
            str(audio_path)
        ]

        try:
            returncode, _, stderr = await _run(cmd)
        except OSError as e:
            raise FFmpegError(f"ffmpeg error: {e}")

        if returncode != 0:
            raise FFmpegError(f"Audio extraction failed: {_tail(stderr)}")

        return audio_path

    def build_render_command(
        self,
        input_path: Path,
        output_path: Path,
        start: float,
        duration: float,
        filters: Sequence[str],
    ) -> List[str]:
        cmd = [
            self.settings.ffmpeg_path,
            "-y",
            "-ss", f"{start:.3f}",
            "-i", str(input_path),
            "-t", f"{duration:.3f}",
        ]
        if filters:
            cmd += ["-vf", ",".join(filters)]
        cmd += [
            "-c:v", self.settings.export_video_codec,
            "-preset", self.settings.export_video_preset,
            "-pix_fmt", "yuv420p",
            "-c:a", self.settings.export_audio_codec,
            "-movflags", "+faststart",
            str(output_path)
        ]
        return cmd

    async def render(
        self,
        input_path: Path,
        output_path: Path,
        start: float,
        duration: float,
        filters: Sequence[str],
    ) -> Path:
        """
        Encode [start, start + duration) of the source with a filter chain.

        Raises:
            FFmpegError: If ffmpeg exits non-zero
        """
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        cmd = self.build_render_command(input_path, output_path, start, duration, filters)

        try:
            returncode, _, stderr = await _run(cmd)
        except OSError as e:
            raise FFmpegError(f"ffmpeg error: {e}")

        if returncode != 0:
            raise FFmpegError(f"Export failed: {_tail(stderr)}")

        return output_path

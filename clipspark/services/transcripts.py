"""Transcript acquisition: YouTube captions and OpenAI speech-to-text."""
import asyncio
import logging
from pathlib import Path
from typing import Any, Iterable, List, Optional

import httpx
from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

from clipspark.config import Settings, settings as default_settings
from clipspark.errors import PayloadTooLarge, SpeechToTextError
from clipspark.models.transcript import TranscriptSegment
from clipspark.utils.ytdlp import extract_video_id

logger = logging.getLogger(__name__)

MIN_SEGMENT_SECONDS = 0.02


def _field(entry: Any, name: str, default=None):
    # Snippets are objects in youtube-transcript-api 1.x, dicts in older releases
    if isinstance(entry, dict):
        return entry.get(name, default)
    return getattr(entry, name, default)


def segments_from_captions(entries: Iterable[Any]) -> List[TranscriptSegment]:
    """Normalize caption snippets (text/start/duration) into segments."""
    segments = []
    for entry in entries:
        text = (_field(entry, "text") or "").strip()
        if not text:
            continue
        segments.append(TranscriptSegment(
            text=text,
            offset=float(_field(entry, "start", 0) or 0),
            duration=max(0.0, float(_field(entry, "duration", 0) or 0)),
        ))
    segments.sort(key=lambda s: s.offset)
    return segments


def segments_from_openai(data: dict) -> List[TranscriptSegment]:
    """Normalize a verbose_json transcription response into segments."""
    segments = []
    for segment in data.get("segments") or []:
        text = (segment.get("text") or "").strip()
        start = float(segment.get("start") or 0)
        end = float(segment.get("end") or 0)
        duration = max(0.0, end - start)
        if text and duration > MIN_SEGMENT_SECONDS:
            segments.append(TranscriptSegment(text=text, offset=start, duration=duration))
    return segments


class YouTubeTranscriptProvider:
    """Fetches published captions with youtube-transcript-api."""

    def __init__(self, api: Optional[YouTubeTranscriptApi] = None):
        self.api = api or YouTubeTranscriptApi()

    def _fetch_sync(self, video_id: str, language: Optional[str]) -> List[TranscriptSegment]:
        if language:
            fetched = self.api.fetch(video_id, languages=[language])
        else:
            # No preference: take whatever the video lists first
            transcript = next(iter(self.api.list(video_id)), None)
            if transcript is None:
                return []
            fetched = transcript.fetch()
        return segments_from_captions(fetched)

    async def fetch(self, url: str, language: Optional[str] = None) -> List[TranscriptSegment]:
        """
        Fetch captions for a video URL.

        Returns:
            Ordered segments, or an empty list if the video has none
        """
        video_id = extract_video_id(url)
        if not video_id:
            logger.warning(f"Could not extract video id from {url}")
            return []

        try:
            return await asyncio.to_thread(self._fetch_sync, video_id, language)
        except CouldNotRetrieveTranscript as e:
            logger.info(f"No captions for {video_id}: {type(e).__name__}")
            return []
        except Exception as e:
            logger.warning(f"Caption lookup failed for {video_id}: {e}")
            return []


class OpenAITranscriber:
    """Speech-to-text through the OpenAI audio transcription endpoint."""

    def __init__(self, settings: Settings = default_settings):
        self.settings = settings

    @property
    def enabled(self) -> bool:
        return self.settings.transcription_enabled

    async def transcribe(self, audio_path: Path, language: Optional[str] = None) -> List[TranscriptSegment]:
        """
        Transcribe an audio file.

        Raises:
            PayloadTooLarge: If the file exceeds the upload limit
            SpeechToTextError: If the provider fails or returns no segments
        """
        if not self.enabled:
            return []

        audio_path = Path(audio_path)
        size = audio_path.stat().st_size
        if size > self.settings.max_transcription_bytes:
            limit_mb = self.settings.max_transcription_bytes // (1024 * 1024)
            raise PayloadTooLarge(
                f"Audio too large for transcription. Keep clips under {limit_mb}MB."
            )

        form = {
            "model": self.settings.openai_transcribe_model,
            "response_format": "verbose_json",
        }
        if language:
            form["language"] = language

        audio = await asyncio.to_thread(audio_path.read_bytes)
        files = {"file": ("audio.m4a", audio, "audio/mp4")}
        headers = {"Authorization": f"Bearer {self.settings.openai_api_key}"}

        logger.info(f"Uploading {size} bytes for transcription")
        try:
            async with httpx.AsyncClient(timeout=self.settings.transcription_timeout_seconds) as client:
                response = await client.post(
                    self.settings.openai_transcribe_url,
                    data=form,
                    files=files,
                    headers=headers,
                )
        except httpx.TimeoutException as exc:
            raise SpeechToTextError("OpenAI transcription timed out.") from exc
        except httpx.RequestError as exc:
            raise SpeechToTextError("Unable to reach OpenAI for transcription.") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}

        if response.status_code != 200:
            detail = (payload.get("error") or {}).get("message") if isinstance(payload, dict) else None
            raise SpeechToTextError(detail or "OpenAI transcription failed.")

        segments = segments_from_openai(payload if isinstance(payload, dict) else {})
        if not segments:
            raise SpeechToTextError("OpenAI transcription returned no segments.")
        return segments

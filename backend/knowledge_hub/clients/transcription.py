"""Whisper-compatible transcription client and subtitle renderers."""

from __future__ import annotations

import httpx
from pydantic import ValidationError

from knowledge_hub.clients.http import ProviderHTTP
from knowledge_hub.clients.schemas import TranscriptionResponse
from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import ProviderNotConfigured, ProviderUnavailable
from knowledge_hub.core.logging import get_logger
from knowledge_hub.models.entities import Transcription, TranscriptionSegment
from knowledge_hub.utils.ids import new_id
from knowledge_hub.utils.time import format_timestamp, now_ms

logger = get_logger(__name__)


class TranscriptionClient(ProviderHTTP):
    provider = "Whisper"

    def __init__(
        self,
        api_key: str | None,
        url: str = "https://api.openai.com/v1/audio/transcriptions",
        model: str = "whisper-1",
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        super().__init__(timeout=timeout, http_client=http_client)
        self.api_key = api_key
        self.url = url
        self.model = model

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient | None = None) -> "TranscriptionClient":
        return cls(
            api_key=settings.openai_api_key,
            url=settings.transcription_url,
            model=settings.transcription_model,
            timeout=settings.request_timeout,
            http_client=http_client,
        )

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "audio.webm",
        language: str | None = None,
        content_type: str = "audio/webm",
    ) -> Transcription:
        if not self.api_key:
            raise ProviderNotConfigured("OpenAI API key not configured for transcription")
        form = {"model": self.model, "response_format": "verbose_json"}
        if language:
            form["language"] = language
        response = await self._post(
            self.url,
            headers={"Authorization": f"Bearer {self.api_key}"},
            data=form,
            files={"file": (filename, audio, content_type)},
        )
        try:
            payload = TranscriptionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderUnavailable(f"Malformed transcription response: {exc}") from exc

        logger.info("Transcribed %s (%s segments)", filename, len(payload.segments))
        return Transcription(
            id=new_id("trn"),
            text=payload.text,
            language=payload.language or "en",
            duration=payload.duration or 0.0,
            segments=[
                TranscriptionSegment(id=seg.id, start=seg.start, end=seg.end, text=seg.text.strip())
                for seg in payload.segments
            ],
            created_at=now_ms(),
            audio_file_name=filename,
        )


def to_vtt(transcription: Transcription) -> str:
    lines = ["WEBVTT", ""]
    for segment in transcription.segments:
        lines.append(f"{format_timestamp(segment.start)} --> {format_timestamp(segment.end)}")
        lines.append(segment.text)
        lines.append("")
    return "\n".join(lines)


def to_srt(transcription: Transcription) -> str:
    lines: list[str] = []
    for number, segment in enumerate(transcription.segments, start=1):
        lines.append(str(number))
        lines.append(f"{format_timestamp(segment.start, ',')} --> {format_timestamp(segment.end, ',')}")
        lines.append(segment.text)
        lines.append("")
    return "\n".join(lines)


__all__ = ["TranscriptionClient", "to_vtt", "to_srt"]

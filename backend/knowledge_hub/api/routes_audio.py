"""Audio transcription route."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, File, Form, UploadFile

from knowledge_hub.api.dependencies import get_app_settings, get_ingest_pipeline, get_transcription_client
from knowledge_hub.clients.transcription import TranscriptionClient, to_srt, to_vtt
from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import FileTooLarge
from knowledge_hub.ingest.pipeline import IngestPipeline
from knowledge_hub.models.dto import TranscribeResponse

router = APIRouter()


@router.post("/transcribe", response_model=TranscribeResponse, summary="Transcribe an audio file")
async def transcribe_audio(
    file: UploadFile = File(...),
    language: str | None = Form(default=None),
    index: bool = Form(default=False),
    subtitle_format: Literal["vtt", "srt"] | None = Form(default=None),
    client: TranscriptionClient = Depends(get_transcription_client),
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
    settings: Settings = Depends(get_app_settings),
) -> TranscribeResponse:
    filename = file.filename or "audio.webm"
    audio = await file.read()
    if len(audio) > settings.max_audio_bytes:
        raise FileTooLarge(filename, len(audio), settings.max_audio_bytes)

    transcription = await client.transcribe(
        audio,
        filename=filename,
        language=language,
        content_type=file.content_type or "audio/webm",
    )
    document_id = None
    if index and transcription.text.strip():
        result = await pipeline.ingest_transcription(transcription)
        document_id = result.document_id

    subtitles = None
    if subtitle_format == "vtt":
        subtitles = to_vtt(transcription)
    elif subtitle_format == "srt":
        subtitles = to_srt(transcription)
    return TranscribeResponse.from_transcription(transcription, subtitles=subtitles, document_id=document_id)


__all__ = ["router"]

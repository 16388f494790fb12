"""Tests for the chat and transcription provider clients."""

from __future__ import annotations

import json

import httpx
import pytest

from knowledge_hub.clients.openrouter import (
    DEFAULT_SYSTEM_PROMPT,
    OpenRouterClient,
    build_messages,
    parse_sse_line,
)
from knowledge_hub.clients.transcription import TranscriptionClient, to_srt, to_vtt
from knowledge_hub.core.errors import InvalidInput, ProviderNotConfigured, RateLimited
from knowledge_hub.models.entities import Transcription, TranscriptionSegment
from knowledge_hub.utils.time import format_timestamp


def _http(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def test_parse_sse_line() -> None:
    assert parse_sse_line('data: {"choices":[{"delta":{"content":"Hi"}}]}') == "Hi"
    assert parse_sse_line("data: [DONE]") is None
    assert parse_sse_line("") is None
    assert parse_sse_line(": keep-alive") is None
    assert parse_sse_line("data: {not json") is None
    assert parse_sse_line('data: {"choices":[]}') is None


def test_build_messages() -> None:
    history = [{"role": "user", "content": "hello"}]
    assert [m.role for m in build_messages(history)] == ["user"]

    with_context = build_messages(history, rag_context="[Source 1: a.txt]\nfacts")
    assert with_context[0].role == "system"
    assert with_context[0].content.startswith(DEFAULT_SYSTEM_PROMPT)
    assert with_context[0].content.endswith("Relevant context from the knowledge base:\n[Source 1: a.txt]\nfacts")

    custom = build_messages(history, system_prompt="Be terse.")
    assert custom[0].content == "Be terse."


@pytest.mark.asyncio
async def test_chat_completion_request() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["headers"] = request.headers
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json={"id": "x", "choices": [{"message": {"role": "assistant", "content": "Hello!"}}]})

    client = OpenRouterClient(api_key="k", http_client=_http(handler), app_title="Test Hub")
    reply = await client.complete("some/model", "Say hi", temperature=0.2)
    assert reply == "Hello!"
    assert captured["headers"]["authorization"] == "Bearer k"
    assert captured["headers"]["x-title"] == "Test Hub"
    assert captured["body"] == {
        "model": "some/model",
        "messages": [{"role": "user", "content": "Say hi"}],
        "stream": False,
        "temperature": 0.2,
    }


@pytest.mark.asyncio
async def test_chat_errors() -> None:
    with pytest.raises(ProviderNotConfigured):
        await OpenRouterClient(api_key=None).complete("m", "p")

    def limited(request: httpx.Request) -> httpx.Response:
        return httpx.Response(429, text="slow down")

    with pytest.raises(RateLimited):
        await OpenRouterClient(api_key="k", http_client=_http(limited)).complete("m", "p")


@pytest.mark.asyncio
async def test_chat_stream_yields_deltas() -> None:
    body = "\n".join(
        [
            'data: {"choices":[{"delta":{"role":"assistant"}}]}',
            "",
            'data: {"choices":[{"delta":{"content":"Hel"}}]}',
            ": comment",
            'data: {"choices":[{"delta":{"content":"lo"}}]}',
            "data: [DONE]",
            "",
        ]
    )

    def handler(request: httpx.Request) -> httpx.Response:
        assert json.loads(request.content)["stream"] is True
        return httpx.Response(200, text=body, headers={"content-type": "text/event-stream"})

    client = OpenRouterClient(api_key="k", http_client=_http(handler))
    deltas = [delta async for delta in client.chat_stream("m", [{"role": "user", "content": "hi"}])]
    assert deltas == ["Hel", "lo"]


@pytest.mark.asyncio
async def test_chat_stream_error_status() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, text="bad model")

    client = OpenRouterClient(api_key="k", http_client=_http(handler))
    with pytest.raises(InvalidInput):
        async for _ in client.chat_stream("m", [{"role": "user", "content": "hi"}]):
            pass


@pytest.mark.asyncio
async def test_transcribe_multipart() -> None:
    captured: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["content_type"] = request.headers["content-type"]
        captured["body"] = request.content
        return httpx.Response(
            200,
            json={
                "text": "Hello world.",
                "duration": 2.5,
                "segments": [{"id": 0, "start": 0.0, "end": 2.5, "text": " Hello world. "}],
            },
        )

    client = TranscriptionClient(api_key="k", http_client=_http(handler))
    transcription = await client.transcribe(b"RIFF....", filename="clip.wav", content_type="audio/wav")
    assert transcription.text == "Hello world."
    assert transcription.language == "en"
    assert transcription.segments[0].text == "Hello world."
    assert transcription.audio_file_name == "clip.wav"
    assert transcription.id.startswith("trn_")
    assert captured["content_type"].startswith("multipart/form-data")
    assert b"verbose_json" in captured["body"]
    assert b"whisper-1" in captured["body"]


@pytest.mark.asyncio
async def test_transcribe_requires_key() -> None:
    with pytest.raises(ProviderNotConfigured):
        await TranscriptionClient(api_key=None).transcribe(b"audio")


def test_subtitle_rendering() -> None:
    transcription = Transcription(
        id="trn_1",
        text="One. Two.",
        language="en",
        duration=3723.5,
        segments=[
            TranscriptionSegment(id=0, start=0.0, end=1.25, text="One."),
            TranscriptionSegment(id=1, start=3661.5, end=3723.5, text="Two."),
        ],
        created_at=0,
    )
    assert to_vtt(transcription) == (
        "WEBVTT\n\n00:00:00.000 --> 00:00:01.250\nOne.\n\n01:01:01.500 --> 01:02:03.500\nTwo.\n"
    )
    assert to_srt(transcription).startswith("1\n00:00:00,000 --> 00:00:01,250\nOne.\n\n2\n")
    assert format_timestamp(59.5, ",") == "00:00:59,500"

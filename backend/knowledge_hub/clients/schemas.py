"""Pydantic models for payloads exchanged with model providers.

Provider responses are validated here so the rest of the code never has to
look up optional keys by hand; anything that does not fit is rejected at the
boundary as ``InvalidInput``/``ProviderUnavailable`` by the calling client.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class EmbeddingItem(BaseModel):
    index: int = Field(ge=0)
    embedding: list[float]


class EmbeddingResponse(BaseModel):
    data: list[EmbeddingItem]
    model: str | None = None

    model_config = {"extra": "ignore"}

    def ordered_vectors(self) -> list[list[float]]:
        return [item.embedding for item in sorted(self.data, key=lambda item: item.index)]


class ChoiceMessage(BaseModel):
    role: str = "assistant"
    content: str | None = None


class Choice(BaseModel):
    index: int = 0
    message: ChoiceMessage
    finish_reason: str | None = None


class Usage(BaseModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletion(BaseModel):
    id: str | None = None
    model: str | None = None
    choices: list[Choice] = Field(default_factory=list)
    usage: Usage | None = None

    model_config = {"extra": "ignore"}

    @property
    def content(self) -> str:
        if not self.choices:
            return ""
        return self.choices[0].message.content or ""


class StreamDelta(BaseModel):
    content: str | None = None


class StreamChoice(BaseModel):
    delta: StreamDelta = Field(default_factory=StreamDelta)


class ChatCompletionChunk(BaseModel):
    choices: list[StreamChoice] = Field(default_factory=list)

    model_config = {"extra": "ignore"}

    @property
    def content(self) -> str | None:
        if not self.choices:
            return None
        return self.choices[0].delta.content


class TranscriptionSegmentPayload(BaseModel):
    id: int = 0
    start: float
    end: float
    text: str

    model_config = {"extra": "ignore"}


class TranscriptionResponse(BaseModel):
    text: str
    language: str | None = None
    duration: float | None = None
    segments: list[TranscriptionSegmentPayload] = Field(default_factory=list)

    model_config = {"extra": "ignore"}


__all__ = [
    "ChatMessage",
    "EmbeddingItem",
    "EmbeddingResponse",
    "ChatCompletion",
    "ChatCompletionChunk",
    "TranscriptionResponse",
    "TranscriptionSegmentPayload",
]

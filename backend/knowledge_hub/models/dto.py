"""Pydantic DTOs exposed via API."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from knowledge_hub.ingest.types import IngestResult
from knowledge_hub.models.entities import (
    Citation,
    Document,
    ResearchQuery,
    SearchResult,
    SubQuestionResult,
    Transcription,
)


class FileResult(BaseModel):
    filename: str
    status: Literal["processed", "error"]
    document_id: str | None = None
    source_type: str | None = None
    chunk_count: int = 0
    word_count: int | None = None
    page_count: int | None = None
    detail: str | None = None

    @classmethod
    def from_result(cls, result: IngestResult) -> "FileResult":
        return cls(
            filename=result.filename,
            status=result.status,
            document_id=result.document_id,
            source_type=result.source_type,
            chunk_count=result.chunk_count,
            word_count=result.word_count,
            page_count=result.page_count,
            detail=result.detail,
        )


class UploadResponse(BaseModel):
    stats: dict[str, int]
    results: list[FileResult]


class QueryRequest(BaseModel):
    query: str = Field(min_length=1)
    top_k: int | None = Field(default=None, ge=1, le=50)
    document_ids: list[str] | None = None
    include_context: bool = False


class ChunkResult(BaseModel):
    chunk_id: str
    document_id: str
    document_name: str
    score: float
    content: str
    start_index: int
    end_index: int

    @classmethod
    def from_result(cls, result: SearchResult) -> "ChunkResult":
        return cls(
            chunk_id=result.chunk.id,
            document_id=result.document.id,
            document_name=result.document.name,
            score=round(result.score, 3),
            content=result.chunk.content,
            start_index=result.chunk.start_index,
            end_index=result.chunk.end_index,
        )


class QueryResponse(BaseModel):
    query: str
    results: list[ChunkResult]
    context: str | None = None


class DocumentResponse(BaseModel):
    id: str
    name: str
    source_type: str
    created_at: int
    chunk_count: int
    metadata: dict[str, Any]

    @classmethod
    def from_document(cls, document: Document, chunk_count: int) -> "DocumentResponse":
        metadata = document.to_dict()["metadata"]
        return cls(
            id=document.id,
            name=document.name,
            source_type=document.source_type,
            created_at=document.created_at,
            chunk_count=chunk_count,
            metadata={key: value for key, value in metadata.items() if value is not None},
        )


class DocumentDetailResponse(DocumentResponse):
    raw_text: str


class DeleteResponse(BaseModel):
    status: Literal["ok", "noop"]
    deleted: int


class ChatMessageIn(BaseModel):
    role: Literal["system", "user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    messages: list[ChatMessageIn] = Field(min_length=1)
    model: str | None = None
    system_prompt: str | None = None
    use_knowledge_base: bool = False
    top_k: int | None = Field(default=None, ge=1, le=50)
    stream: bool = False


class ChatResponse(BaseModel):
    model: str
    content: str
    sources: list[ChunkResult] = Field(default_factory=list)


MAX_COMPARE_MODELS = 4


class CompareRequest(BaseModel):
    models: list[str] = Field(min_length=1, max_length=MAX_COMPARE_MODELS)
    messages: list[ChatMessageIn] = Field(min_length=1)
    system_prompt: str | None = None
    use_knowledge_base: bool = False
    top_k: int | None = Field(default=None, ge=1, le=50)
    temperature: float | None = Field(default=None, ge=0.0, le=2.0)
    max_tokens: int | None = Field(default=None, ge=1)


class ModelReply(BaseModel):
    model: str
    content: str = ""
    usage: dict[str, int] | None = None
    error: str | None = None


class CompareResponse(BaseModel):
    responses: list[ModelReply]
    sources: list[ChunkResult] = Field(default_factory=list)


class CitationOut(BaseModel):
    id: str
    title: str
    url: str
    snippet: str | None = None

    @classmethod
    def from_citation(cls, citation: Citation) -> "CitationOut":
        return cls(id=citation.id, title=citation.title, url=citation.url, snippet=citation.snippet)


class SearchRequest(BaseModel):
    query: str = Field(min_length=1)
    model: str | None = None
    stream: bool = False


class SearchResponse(BaseModel):
    model: str
    content: str
    citations: list[CitationOut] = Field(default_factory=list)
    usage: dict[str, int] | None = None


class SubQuestionOut(BaseModel):
    question: str
    answer: str
    sources: list[CitationOut]
    error: str | None = None

    @classmethod
    def from_result(cls, result: SubQuestionResult) -> "SubQuestionOut":
        return cls(
            question=result.question,
            answer=result.answer,
            sources=[CitationOut.from_citation(source) for source in result.sources],
            error=result.error,
        )


class ResearchRequest(BaseModel):
    question: str = Field(min_length=1)
    max_sub_questions: int | None = Field(default=None, ge=1, le=10)


class ResearchResponse(BaseModel):
    question: str
    status: str
    sub_questions: list[str]
    search_results: list[SubQuestionOut]
    synthesis: str | None = None
    citations: list[CitationOut]
    error: str | None = None

    @classmethod
    def from_query(cls, query: ResearchQuery) -> "ResearchResponse":
        return cls(
            question=query.question,
            status=query.status.value,
            sub_questions=list(query.sub_questions),
            search_results=[SubQuestionOut.from_result(result) for result in query.search_results],
            synthesis=query.synthesis,
            citations=[CitationOut.from_citation(citation) for citation in query.citations],
            error=query.error,
        )


class SegmentOut(BaseModel):
    id: int
    start: float
    end: float
    text: str


class TranscribeResponse(BaseModel):
    id: str
    text: str
    language: str
    duration: float
    segments: list[SegmentOut]
    audio_file_name: str | None = None
    subtitles: str | None = None
    document_id: str | None = None

    @classmethod
    def from_transcription(
        cls,
        transcription: Transcription,
        subtitles: str | None = None,
        document_id: str | None = None,
    ) -> "TranscribeResponse":
        return cls(
            id=transcription.id,
            text=transcription.text,
            language=transcription.language,
            duration=transcription.duration,
            segments=[
                SegmentOut(id=seg.id, start=seg.start, end=seg.end, text=seg.text)
                for seg in transcription.segments
            ],
            audio_file_name=transcription.audio_file_name,
            subtitles=subtitles,
            document_id=document_id,
        )


__all__ = [
    "FileResult",
    "UploadResponse",
    "QueryRequest",
    "ChunkResult",
    "QueryResponse",
    "DocumentResponse",
    "DocumentDetailResponse",
    "DeleteResponse",
    "ChatMessageIn",
    "ChatRequest",
    "ChatResponse",
    "CompareRequest",
    "ModelReply",
    "CompareResponse",
    "SearchRequest",
    "SearchResponse",
    "CitationOut",
    "SubQuestionOut",
    "ResearchRequest",
    "ResearchResponse",
    "SegmentOut",
    "TranscribeResponse",
]

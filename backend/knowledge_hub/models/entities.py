"""Internal dataclasses representing knowledge-base and research entities."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from enum import Enum
from typing import Any

from knowledge_hub.core.errors import InvalidTransition


@dataclass(slots=True)
class DocumentMetadata:
    source: str = "upload"
    original_name: str | None = None
    word_count: int | None = None
    page_count: int | None = None
    language: str | None = None
    duration: float | None = None


@dataclass(slots=True)
class Document:
    id: str
    name: str
    source_type: str
    raw_text: str
    metadata: DocumentMetadata
    created_at: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Document":
        return cls(
            id=data["id"],
            name=data["name"],
            source_type=data["source_type"],
            raw_text=data["raw_text"],
            metadata=DocumentMetadata(**(data.get("metadata") or {})),
            created_at=int(data["created_at"]),
        )


@dataclass(slots=True)
class Chunk:
    id: str
    document_id: str
    content: str
    start_index: int
    end_index: int
    embedding: list[float] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(slots=True)
class VectorRecord:
    """A chunk as held by a vector store; the embedding is always populated."""

    chunk: Chunk
    seq: int = 0

    @property
    def document_id(self) -> str:
        return self.chunk.document_id

    @property
    def embedding(self) -> list[float]:
        return self.chunk.embedding


@dataclass(slots=True)
class SearchResult:
    chunk: Chunk
    document: Document
    score: float


@dataclass(slots=True)
class Citation:
    id: str
    title: str
    url: str
    snippet: str | None = None


@dataclass(slots=True)
class SubQuestionResult:
    question: str
    answer: str
    sources: list[Citation] = field(default_factory=list)
    error: str | None = None


class ResearchStatus(str, Enum):
    PENDING = "pending"
    SEARCHING = "searching"
    SYNTHESIZING = "synthesizing"
    COMPLETE = "complete"
    ERROR = "error"


_ALLOWED_TRANSITIONS: dict[ResearchStatus, frozenset[ResearchStatus]] = {
    ResearchStatus.PENDING: frozenset({ResearchStatus.SEARCHING}),
    ResearchStatus.SEARCHING: frozenset({ResearchStatus.SYNTHESIZING, ResearchStatus.ERROR}),
    ResearchStatus.SYNTHESIZING: frozenset({ResearchStatus.COMPLETE, ResearchStatus.ERROR}),
    ResearchStatus.COMPLETE: frozenset(),
    ResearchStatus.ERROR: frozenset(),
}


@dataclass(slots=True)
class ResearchQuery:
    question: str
    sub_questions: list[str] = field(default_factory=list)
    search_results: list[SubQuestionResult] = field(default_factory=list)
    synthesis: str | None = None
    citations: list[Citation] = field(default_factory=list)
    status: ResearchStatus = ResearchStatus.PENDING
    error: str | None = None

    @property
    def is_terminal(self) -> bool:
        return self.status in (ResearchStatus.COMPLETE, ResearchStatus.ERROR)

    def transition(self, target: ResearchStatus) -> None:
        if target not in _ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransition(self.status.value, target.value)
        self.status = target

    def snapshot(self) -> "ResearchQuery":
        """Shallow copy with list fields copied, safe to hand to consumers."""
        return replace(
            self,
            sub_questions=list(self.sub_questions),
            search_results=list(self.search_results),
            citations=list(self.citations),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload


@dataclass(slots=True)
class TranscriptionSegment:
    id: int
    start: float
    end: float
    text: str


@dataclass(slots=True)
class Transcription:
    id: str
    text: str
    language: str
    duration: float
    segments: list[TranscriptionSegment]
    created_at: int
    audio_file_name: str | None = None


__all__ = [
    "DocumentMetadata",
    "Document",
    "Chunk",
    "VectorRecord",
    "SearchResult",
    "Citation",
    "SubQuestionResult",
    "ResearchStatus",
    "ResearchQuery",
    "TranscriptionSegment",
    "Transcription",
]

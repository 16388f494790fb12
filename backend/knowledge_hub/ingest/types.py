"""Common ingestion data structures."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class ParsedFile:
    """Plain text and format metadata extracted from an uploaded file."""

    text: str
    word_count: int
    page_count: int | None = None
    extension: str = "txt"


@dataclass(slots=True)
class ChunkDescriptor:
    """Chunk produced by the chunker prior to embedding."""

    id: str
    document_id: str
    ordinal: int
    content: str
    start_index: int
    end_index: int


@dataclass(slots=True)
class IngestStats:
    """Aggregated ingest statistics."""

    processed: int = 0
    failed: int = 0
    chunks: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "processed": self.processed,
            "failed": self.failed,
            "chunks": self.chunks,
        }


@dataclass(slots=True)
class IngestResult:
    """Outcome for a single ingested file."""

    filename: str
    status: str
    document_id: str | None = None
    source_type: str | None = None
    chunk_count: int = 0
    word_count: int | None = None
    page_count: int | None = None
    detail: str | None = None


__all__ = [
    "ParsedFile",
    "ChunkDescriptor",
    "IngestStats",
    "IngestResult",
]

"""Ingest pipeline orchestration."""

from __future__ import annotations

import asyncio
import time
from typing import Iterable

from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import CorruptFile, FileTooLarge, KnowledgeHubError
from knowledge_hub.core.logging import get_logger, log_context
from knowledge_hub.core.metrics import INGEST_DURATION
from knowledge_hub.ingest.chunker import split_into_chunks
from knowledge_hub.ingest.parsers import ParserRegistry, file_extension
from knowledge_hub.ingest.types import IngestResult, IngestStats
from knowledge_hub.models.entities import Document, DocumentMetadata, Transcription
from knowledge_hub.retrieval.vector_index import VectorIndex
from knowledge_hub.utils.ids import new_id
from knowledge_hub.utils.text import detect_language, word_count
from knowledge_hub.utils.time import now_ms

logger = get_logger(__name__)


class IngestPipeline:
    """Coordinate parsing, chunking, embedding, and indexing."""

    def __init__(
        self,
        vector_index: VectorIndex,
        settings: Settings,
        parser_registry: ParserRegistry | None = None,
    ) -> None:
        self.vector_index = vector_index
        self.settings = settings
        self.parser_registry = parser_registry or ParserRegistry()

    async def ingest_file(self, data: bytes, filename: str, source: str = "upload") -> IngestResult:
        """Parse and index one file. Errors propagate to the caller."""
        if len(data) > self.settings.max_upload_bytes:
            raise FileTooLarge(filename, len(data), self.settings.max_upload_bytes)
        # PyMuPDF and python-docx are blocking.
        parsed = await asyncio.to_thread(self.parser_registry.parse, data, filename)
        metadata = DocumentMetadata(
            source=source,
            original_name=filename,
            word_count=parsed.word_count,
            page_count=parsed.page_count,
            language=detect_language(parsed.text),
        )
        return await self.ingest_text(parsed.text, name=filename, source_type=parsed.extension, metadata=metadata)

    async def ingest_files(self, files: Iterable[tuple[str, bytes]], source: str = "upload") -> dict[str, object]:
        """Index a batch; a failing file is reported without stopping the rest."""
        stats = IngestStats()
        results: list[IngestResult] = []
        for filename, data in files:
            try:
                result = await self.ingest_file(data, filename, source=source)
            except KnowledgeHubError as exc:
                logger.warning("Failed to ingest %s: %s", filename, exc)
                result = IngestResult(filename=filename, status="error", detail=str(exc))
            except Exception as exc:
                logger.exception("Unexpected failure ingesting %s", filename)
                result = IngestResult(filename=filename, status="error", detail=str(exc))
            results.append(result)
            _update_stats(stats, result)
        return {"stats": stats.to_dict(), "results": results}

    async def ingest_transcription(self, transcription: Transcription, name: str | None = None) -> IngestResult:
        label = name or transcription.audio_file_name or f"transcript-{transcription.id}"
        metadata = DocumentMetadata(
            source="transcription",
            original_name=transcription.audio_file_name,
            word_count=word_count(transcription.text),
            language=transcription.language,
            duration=transcription.duration,
        )
        return await self.ingest_text(transcription.text, name=label, source_type="txt", metadata=metadata)

    async def ingest_text(
        self,
        text: str,
        name: str,
        source_type: str | None = None,
        metadata: DocumentMetadata | None = None,
    ) -> IngestResult:
        start_time = time.perf_counter()
        metadata = metadata or DocumentMetadata(original_name=name, word_count=word_count(text))
        document = Document(
            id=new_id("doc"),
            name=name,
            source_type=source_type or file_extension(name) or "txt",
            raw_text=text,
            metadata=metadata,
            created_at=now_ms(),
        )
        chunks = split_into_chunks(
            text,
            document.id,
            chunk_size=self.settings.chunk_size,
            overlap=self.settings.chunk_overlap,
            min_chunk_size=self.settings.min_chunk_size,
        )
        if not chunks:
            raise CorruptFile(name, "no extractable text")

        await self.vector_index.insert(document, chunks)
        INGEST_DURATION.labels(source=metadata.source).observe(time.perf_counter() - start_time)
        logger.info(
            "Ingested %s as %s (%s chunks)",
            name,
            document.id,
            len(chunks),
            extra=log_context(document_id=document.id, source=metadata.source, language=metadata.language),
        )
        return IngestResult(
            filename=name,
            status="processed",
            document_id=document.id,
            source_type=document.source_type,
            chunk_count=len(chunks),
            word_count=metadata.word_count,
            page_count=metadata.page_count,
        )


def _update_stats(stats: IngestStats, result: IngestResult) -> None:
    if result.status == "processed":
        stats.processed += 1
        stats.chunks += result.chunk_count
    elif result.status == "error":
        stats.failed += 1


__all__ = ["IngestPipeline"]

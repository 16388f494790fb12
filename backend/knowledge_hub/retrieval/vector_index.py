"""Vector index: embeds on the way in and on the way out of a store."""

from __future__ import annotations

from typing import Sequence

from knowledge_hub.core.logging import get_logger
from knowledge_hub.core.metrics import INDEX_SIZE
from knowledge_hub.ingest.embeddings import Embedder
from knowledge_hub.ingest.types import ChunkDescriptor
from knowledge_hub.models.entities import Chunk, Document, SearchResult
from knowledge_hub.retrieval.store import InMemoryVectorStore, VectorStore

logger = get_logger(__name__)


class VectorIndex:
    """Cosine-similarity index over document chunks."""

    def __init__(self, embedder: Embedder, store: VectorStore | None = None) -> None:
        self.embedder = embedder
        self.store = store or InMemoryVectorStore()

    @property
    def size(self) -> int:
        return self.store.chunk_count()

    async def insert(self, document: Document, chunks: Sequence[ChunkDescriptor]) -> list[Chunk]:
        """Embed ``chunks`` in one batch, then register the document with them.

        Nothing is written if embedding fails.
        """
        vectors = await self.embedder.embed([chunk.content for chunk in chunks])
        if len(vectors) != len(chunks):
            raise ValueError(f"Embedder returned {len(vectors)} vectors for {len(chunks)} chunks")
        records = [
            Chunk(
                id=chunk.id,
                document_id=document.id,
                content=chunk.content,
                start_index=chunk.start_index,
                end_index=chunk.end_index,
                embedding=list(vector),
            )
            for chunk, vector in zip(chunks, vectors)
        ]
        self.store.add_document(document, records)
        self._update_index_metric()
        logger.info("Indexed document %s (%s chunks)", document.id, len(records))
        return records

    async def search(
        self,
        query_text: str,
        top_k: int = 5,
        document_ids: Sequence[str] | None = None,
    ) -> list[SearchResult]:
        if self.store.is_empty():
            return []
        vector = await self.embedder.embed_one(query_text)
        return self.search_by_vector(vector, top_k=top_k, document_ids=document_ids)

    def search_by_vector(
        self,
        vector: Sequence[float],
        top_k: int = 5,
        document_ids: Sequence[str] | None = None,
    ) -> list[SearchResult]:
        return self.store.search(vector, top_k, document_ids)

    def delete(self, document_id: str) -> int:
        removed = self.store.delete(document_id)
        if removed:
            logger.info("Deleted document %s (%s chunks)", document_id, removed)
        self._update_index_metric()
        return removed

    def get(self, document_id: str) -> Document | None:
        return self.store.get(document_id)

    def list_documents(self) -> list[Document]:
        return self.store.list_documents()

    def get_chunks(self, document_id: str) -> list[Chunk]:
        return self.store.get_chunks(document_id)

    def chunk_count(self, document_id: str | None = None) -> int:
        return self.store.chunk_count(document_id)

    def clear(self) -> None:
        self.store.clear()
        self._update_index_metric()

    def _update_index_metric(self) -> None:
        INDEX_SIZE.set(self.store.chunk_count())


__all__ = ["VectorIndex"]

"""Tests for retrieval utilities."""

from __future__ import annotations

import threading
from pathlib import Path

import pytest

from knowledge_hub.core.errors import ProviderUnavailable
from knowledge_hub.db.sqlite import SQLiteDatabase
from knowledge_hub.ingest.embeddings import HashedEmbeddingClient
from knowledge_hub.ingest.types import ChunkDescriptor
from knowledge_hub.models.entities import Chunk, Document, DocumentMetadata, SearchResult
from knowledge_hub.retrieval import (
    InMemoryVectorStore,
    SQLiteVectorStore,
    VectorIndex,
    build_context,
    cosine_similarity,
)


class TableEmbedder:
    """Returns preset vectors keyed by text."""

    model = "table"
    dim = 3

    def __init__(self, table: dict[str, list[float]], fail: bool = False) -> None:
        self.table = table
        self.fail = fail
        self.calls = 0

    async def embed(self, texts):
        self.calls += 1
        if self.fail:
            raise ProviderUnavailable("embedding backend down")
        return [list(self.table[text]) for text in texts]

    async def embed_one(self, text):
        return (await self.embed([text]))[0]


def _document(document_id: str, name: str = "doc.txt") -> Document:
    return Document(
        id=document_id,
        name=name,
        source_type="txt",
        raw_text="",
        metadata=DocumentMetadata(original_name=name, word_count=0),
        created_at=1,
    )


def _descriptors(document_id: str, texts: list[str]) -> list[ChunkDescriptor]:
    return [
        ChunkDescriptor(
            id=f"{document_id}-chunk-{i}",
            document_id=document_id,
            ordinal=i,
            content=text,
            start_index=i * 10,
            end_index=i * 10 + len(text),
        )
        for i, text in enumerate(texts)
    ]


@pytest.fixture(params=["memory", "sqlite"])
def store(request, tmp_path: Path):
    if request.param == "memory":
        return InMemoryVectorStore()
    return SQLiteVectorStore(SQLiteDatabase(tmp_path / "vectors.db"))


def test_cosine_similarity_bounds() -> None:
    assert cosine_similarity([1.0, 2.0, 3.0], [1.0, 2.0, 3.0]) == pytest.approx(1.0)
    assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)
    assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
    assert cosine_similarity([0.0, 0.0], [1.0, 1.0]) == 0.0
    with pytest.raises(ValueError):
        cosine_similarity([1.0], [1.0, 2.0])


@pytest.mark.asyncio
async def test_top_k_identity(store) -> None:
    texts = [f"chunk {i}" for i in range(10)]
    table = {text: [1.0, float(i), float(i * i % 7)] for i, text in enumerate(texts)}
    index = VectorIndex(TableEmbedder(table), store)
    await index.insert(_document("d1"), _descriptors("d1", texts))

    results = index.search_by_vector(table["chunk 3"], top_k=4)
    assert len(results) == 4
    assert results[0].chunk.id == "d1-chunk-3"
    assert results[0].score == pytest.approx(1.0, abs=1e-6)
    assert [r.score for r in results] == sorted((r.score for r in results), reverse=True)
    assert results[0].document.id == "d1"


@pytest.mark.asyncio
async def test_ties_keep_insertion_order(store) -> None:
    table = {"a": [1.0, 0.0, 0.0], "b": [1.0, 0.0, 0.0], "c": [0.0, 1.0, 0.0]}
    index = VectorIndex(TableEmbedder(table), store)
    await index.insert(_document("d1"), _descriptors("d1", ["a", "b", "c"]))
    results = index.search_by_vector([1.0, 0.0, 0.0], top_k=2)
    assert [r.chunk.content for r in results] == ["a", "b"]


@pytest.mark.asyncio
async def test_delete_cascades(store) -> None:
    table = {"x": [1.0, 0.0, 0.0], "y": [0.0, 1.0, 0.0], "z": [0.0, 0.0, 1.0]}
    index = VectorIndex(TableEmbedder(table), store)
    await index.insert(_document("keep"), _descriptors("keep", ["x"]))
    await index.insert(_document("gone"), _descriptors("gone", ["y", "z"]))
    assert index.size == 3

    assert index.delete("gone") == 2
    assert index.size == 1
    assert index.get("gone") is None
    assert all(r.document.id != "gone" for r in index.search_by_vector([0.0, 1.0, 0.0], top_k=5))
    assert index.delete("gone") == 0


@pytest.mark.asyncio
async def test_search_empty_index_skips_embedding(store) -> None:
    embedder = TableEmbedder({})
    index = VectorIndex(embedder, store)
    assert await index.search("anything") == []
    assert embedder.calls == 0


@pytest.mark.asyncio
async def test_failed_embedding_leaves_no_document(store) -> None:
    index = VectorIndex(TableEmbedder({}, fail=True), store)
    with pytest.raises(ProviderUnavailable):
        await index.insert(_document("d1"), _descriptors("d1", ["a"]))
    assert index.get("d1") is None
    assert index.list_documents() == []
    assert index.size == 0


@pytest.mark.asyncio
async def test_document_filter_and_reinsert(store) -> None:
    table = {"a": [1.0, 0.0, 0.0], "b": [1.0, 0.1, 0.0], "c": [0.0, 1.0, 0.0]}
    index = VectorIndex(TableEmbedder(table), store)
    await index.insert(_document("d1"), _descriptors("d1", ["a", "b"]))
    await index.insert(_document("d2"), _descriptors("d2", ["c"]))

    filtered = index.search_by_vector([1.0, 0.0, 0.0], top_k=5, document_ids=["d2"])
    assert [r.document.id for r in filtered] == ["d2"]

    await index.insert(_document("d1"), _descriptors("d1", ["c"]))
    assert index.chunk_count("d1") == 1
    assert [c.content for c in index.get_chunks("d1")] == ["c"]


def test_memory_store_search_during_writes() -> None:
    store = InMemoryVectorStore()
    chunk = Chunk(id="d1-chunk-0", document_id="d1", content="a", start_index=0, end_index=1, embedding=[1.0, 0.0, 0.0])
    stop = threading.Event()

    def churn() -> None:
        while not stop.is_set():
            store.add_document(_document("d1"), [chunk])
            store.delete("d1")

    writer = threading.Thread(target=churn)
    writer.start()
    try:
        for _ in range(2000):
            for result in store.search([1.0, 0.0, 0.0], top_k=1):
                assert result.document.id == "d1"
    finally:
        stop.set()
        writer.join()


@pytest.mark.asyncio
async def test_sqlite_store_persists(tmp_path: Path) -> None:
    db_path = tmp_path / "persist.db"
    embedder = HashedEmbeddingClient(dim=256)
    first = VectorIndex(embedder, SQLiteVectorStore.open(db_path))
    await first.insert(_document("d1", name="notes.txt"), _descriptors("d1", ["alpha beta", "gamma delta"]))
    first.store.db.close()

    reopened = VectorIndex(embedder, SQLiteVectorStore.open(db_path))
    assert [d.name for d in reopened.list_documents()] == ["notes.txt"]
    assert reopened.get("d1").metadata.original_name == "notes.txt"
    results = await reopened.search("gamma delta", top_k=1)
    assert results[0].chunk.id == "d1-chunk-1"
    assert results[0].score == pytest.approx(1.0, abs=1e-5)


def test_build_context_format() -> None:
    assert build_context([]) == ""
    results = [
        SearchResult(
            chunk=Chunk(id=f"c{i}", document_id="d", content=f"content {i}", start_index=0, end_index=9),
            document=_document("d", name=f"file{i}.txt"),
            score=1.0 - i / 10,
        )
        for i in range(2)
    ]
    assert build_context(results) == "[Source 1: file0.txt]\ncontent 0\n\n---\n\n[Source 2: file1.txt]\ncontent 1"

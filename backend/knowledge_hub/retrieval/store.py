"""Vector stores holding documents and their embedded chunks."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from array import array
from pathlib import Path
from typing import Iterable, Sequence

import orjson

from knowledge_hub.core.logging import get_logger
from knowledge_hub.db.sqlite import SQLiteDatabase
from knowledge_hub.models.entities import Chunk, Document, DocumentMetadata, SearchResult, VectorRecord
from knowledge_hub.retrieval.similarity import cosine_similarity

logger = get_logger(__name__)


class VectorStore(ABC):
    """Storage contract used by :class:`~knowledge_hub.retrieval.vector_index.VectorIndex`.

    ``add_document`` must make a document and all of its chunks visible at
    once; readers never observe a document with a partial chunk set.
    """

    @abstractmethod
    def add_document(self, document: Document, chunks: Sequence[Chunk]) -> None: ...

    @abstractmethod
    def search(
        self,
        vector: Sequence[float],
        top_k: int,
        document_ids: Sequence[str] | None = None,
    ) -> list[SearchResult]: ...

    @abstractmethod
    def delete(self, document_id: str) -> int: ...

    @abstractmethod
    def get(self, document_id: str) -> Document | None: ...

    @abstractmethod
    def list_documents(self) -> list[Document]: ...

    @abstractmethod
    def get_chunks(self, document_id: str) -> list[Chunk]: ...

    @abstractmethod
    def chunk_count(self, document_id: str | None = None) -> int: ...

    @abstractmethod
    def clear(self) -> None: ...

    def is_empty(self) -> bool:
        return self.chunk_count() == 0


def rank_records(
    vector: Sequence[float],
    candidates: Iterable[tuple[Chunk, Document]],
    top_k: int,
) -> list[SearchResult]:
    """Score candidates against ``vector`` and keep the best ``top_k``.

    Candidates must arrive in insertion order; the sort is stable so equal
    scores keep that order.
    """
    if top_k <= 0:
        return []
    scored = [
        SearchResult(chunk=chunk, document=document, score=cosine_similarity(vector, chunk.embedding))
        for chunk, document in candidates
    ]
    scored.sort(key=lambda result: result.score, reverse=True)
    return scored[:top_k]


class InMemoryVectorStore(VectorStore):
    """Process-local store; writes build a new (records, documents) pair and swap it in."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._state: tuple[list[VectorRecord], dict[str, Document]] = ([], {})
        self._seq = 0

    def add_document(self, document: Document, chunks: Sequence[Chunk]) -> None:
        with self._lock:
            records, documents = self._state
            kept = [record for record in records if record.document_id != document.id]
            fresh: list[VectorRecord] = []
            for chunk in chunks:
                self._seq += 1
                fresh.append(VectorRecord(chunk=chunk, seq=self._seq))
            documents = dict(documents)
            documents[document.id] = document
            self._state = (kept + fresh, documents)

    def search(
        self,
        vector: Sequence[float],
        top_k: int,
        document_ids: Sequence[str] | None = None,
    ) -> list[SearchResult]:
        records, documents = self._state
        allowed = set(document_ids) if document_ids else None
        candidates = (
            (record.chunk, documents[record.document_id])
            for record in records
            if allowed is None or record.document_id in allowed
        )
        return rank_records(vector, candidates, top_k)

    def delete(self, document_id: str) -> int:
        with self._lock:
            records, documents = self._state
            kept = [record for record in records if record.document_id != document_id]
            removed = len(records) - len(kept)
            documents = dict(documents)
            documents.pop(document_id, None)
            self._state = (kept, documents)
        return removed

    def get(self, document_id: str) -> Document | None:
        return self._state[1].get(document_id)

    def list_documents(self) -> list[Document]:
        return list(self._state[1].values())

    def get_chunks(self, document_id: str) -> list[Chunk]:
        return [record.chunk for record in self._state[0] if record.document_id == document_id]

    def chunk_count(self, document_id: str | None = None) -> int:
        records = self._state[0]
        if document_id is None:
            return len(records)
        return sum(1 for record in records if record.document_id == document_id)

    def clear(self) -> None:
        with self._lock:
            self._state = ([], {})


class SQLiteVectorStore(VectorStore):
    """Persistent store; one transaction per document write."""

    def __init__(self, database: SQLiteDatabase) -> None:
        self.db = database
        self.db.ensure_schema()

    @classmethod
    def open(cls, db_path: Path) -> "SQLiteVectorStore":
        return cls(SQLiteDatabase(db_path))

    def add_document(self, document: Document, chunks: Sequence[Chunk]) -> None:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM documents WHERE id = ?", [document.id])
            cursor.execute(
                """
                INSERT INTO documents (id, name, source_type, raw_text, meta_json, created_at)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                [
                    document.id,
                    document.name,
                    document.source_type,
                    document.raw_text,
                    orjson.dumps(document.metadata).decode("utf-8"),
                    document.created_at,
                ],
            )
            cursor.executemany(
                """
                INSERT INTO chunks (id, document_id, content, start_index, end_index, dim, vector)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                [
                    (
                        chunk.id,
                        chunk.document_id,
                        chunk.content,
                        chunk.start_index,
                        chunk.end_index,
                        len(chunk.embedding),
                        _vector_to_bytes(chunk.embedding),
                    )
                    for chunk in chunks
                ],
            )
        logger.debug("Stored document %s with %s chunks", document.id, len(chunks))

    def search(
        self,
        vector: Sequence[float],
        top_k: int,
        document_ids: Sequence[str] | None = None,
    ) -> list[SearchResult]:
        sql = "SELECT * FROM chunks"
        params: list[str] = []
        if document_ids:
            placeholders = ",".join("?" for _ in document_ids)
            sql += f" WHERE document_id IN ({placeholders})"
            params.extend(document_ids)
        sql += " ORDER BY seq"
        rows = self.db.query(sql, params)
        documents: dict[str, Document] = {}
        candidates: list[tuple[Chunk, Document]] = []
        for row in rows:
            document_id = row["document_id"]
            if document_id not in documents:
                document = self.get(document_id)
                if document is None:
                    continue
                documents[document_id] = document
            candidates.append((_row_to_chunk(row), documents[document_id]))
        return rank_records(vector, candidates, top_k)

    def delete(self, document_id: str) -> int:
        with self.db.transaction() as cursor:
            removed = cursor.execute("DELETE FROM chunks WHERE document_id = ?", [document_id]).rowcount
            cursor.execute("DELETE FROM documents WHERE id = ?", [document_id])
        return removed

    def get(self, document_id: str) -> Document | None:
        rows = self.db.query("SELECT * FROM documents WHERE id = ?", [document_id])
        return _row_to_document(rows[0]) if rows else None

    def list_documents(self) -> list[Document]:
        return [_row_to_document(row) for row in self.db.query("SELECT * FROM documents ORDER BY created_at, rowid")]

    def get_chunks(self, document_id: str) -> list[Chunk]:
        rows = self.db.query("SELECT * FROM chunks WHERE document_id = ? ORDER BY seq", [document_id])
        return [_row_to_chunk(row) for row in rows]

    def chunk_count(self, document_id: str | None = None) -> int:
        if document_id is None:
            rows = self.db.query("SELECT COUNT(*) AS count FROM chunks")
        else:
            rows = self.db.query("SELECT COUNT(*) AS count FROM chunks WHERE document_id = ?", [document_id])
        return int(rows[0]["count"]) if rows else 0

    def clear(self) -> None:
        with self.db.transaction() as cursor:
            cursor.execute("DELETE FROM chunks")
            cursor.execute("DELETE FROM documents")


def _vector_to_bytes(vector: Sequence[float]) -> bytes:
    return array("f", vector).tobytes()


def _bytes_to_vector(payload: bytes) -> list[float]:
    floats = array("f")
    floats.frombytes(payload)
    return list(floats)


def _row_to_chunk(row) -> Chunk:
    return Chunk(
        id=row["id"],
        document_id=row["document_id"],
        content=row["content"],
        start_index=row["start_index"],
        end_index=row["end_index"],
        embedding=_bytes_to_vector(row["vector"]),
    )


def _row_to_document(row) -> Document:
    return Document(
        id=row["id"],
        name=row["name"],
        source_type=row["source_type"],
        raw_text=row["raw_text"],
        metadata=DocumentMetadata(**orjson.loads(row["meta_json"])),
        created_at=int(row["created_at"]),
    )


__all__ = [
    "VectorStore",
    "InMemoryVectorStore",
    "SQLiteVectorStore",
    "rank_records",
]

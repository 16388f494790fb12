"""Retrieval components."""

from .context import build_context
from .similarity import cosine_similarity
from .store import InMemoryVectorStore, SQLiteVectorStore, VectorStore
from .vector_index import VectorIndex

__all__ = [
    "VectorIndex",
    "VectorStore",
    "InMemoryVectorStore",
    "SQLiteVectorStore",
    "build_context",
    "cosine_similarity",
]

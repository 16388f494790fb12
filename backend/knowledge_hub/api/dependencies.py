"""Shared FastAPI dependencies."""

from __future__ import annotations

from functools import lru_cache

from knowledge_hub.clients.openrouter import OpenRouterClient
from knowledge_hub.clients.transcription import TranscriptionClient
from knowledge_hub.core.config import Settings, get_settings
from knowledge_hub.ingest.embeddings import Embedder, create_embedder
from knowledge_hub.ingest.pipeline import IngestPipeline
from knowledge_hub.research.agent import ResearchAgent
from knowledge_hub.retrieval import InMemoryVectorStore, SQLiteVectorStore, VectorIndex, VectorStore

_EMBEDDER: Embedder | None = None
_VECTOR_INDEX: VectorIndex | None = None
_PIPELINE: IngestPipeline | None = None
_CHAT_CLIENT: OpenRouterClient | None = None
_TRANSCRIPTION_CLIENT: TranscriptionClient | None = None
_RESEARCH_AGENT: ResearchAgent | None = None


@lru_cache(maxsize=1)
def get_app_settings() -> Settings:
    return get_settings()


def get_embedder() -> Embedder:
    global _EMBEDDER
    if _EMBEDDER is None:
        _EMBEDDER = create_embedder(get_app_settings())
    return _EMBEDDER


def _create_store(settings: Settings) -> VectorStore:
    if settings.store_backend == "sqlite":
        return SQLiteVectorStore.open(settings.db_path)
    return InMemoryVectorStore()


def get_vector_index() -> VectorIndex:
    global _VECTOR_INDEX
    if _VECTOR_INDEX is None:
        _VECTOR_INDEX = VectorIndex(get_embedder(), _create_store(get_app_settings()))
    return _VECTOR_INDEX


def get_ingest_pipeline() -> IngestPipeline:
    global _PIPELINE
    if _PIPELINE is None:
        _PIPELINE = IngestPipeline(vector_index=get_vector_index(), settings=get_app_settings())
    return _PIPELINE


def get_chat_client() -> OpenRouterClient:
    global _CHAT_CLIENT
    if _CHAT_CLIENT is None:
        _CHAT_CLIENT = OpenRouterClient.from_settings(get_app_settings())
    return _CHAT_CLIENT


def get_transcription_client() -> TranscriptionClient:
    global _TRANSCRIPTION_CLIENT
    if _TRANSCRIPTION_CLIENT is None:
        _TRANSCRIPTION_CLIENT = TranscriptionClient.from_settings(get_app_settings())
    return _TRANSCRIPTION_CLIENT


def get_research_agent() -> ResearchAgent:
    global _RESEARCH_AGENT
    if _RESEARCH_AGENT is None:
        _RESEARCH_AGENT = ResearchAgent.from_settings(get_app_settings(), get_chat_client())
    return _RESEARCH_AGENT


def reset_dependencies() -> None:
    """Drop cached singletons so the next request rebuilds them from settings."""
    global _EMBEDDER, _VECTOR_INDEX, _PIPELINE, _CHAT_CLIENT, _TRANSCRIPTION_CLIENT, _RESEARCH_AGENT
    _EMBEDDER = None
    _VECTOR_INDEX = None
    _PIPELINE = None
    _CHAT_CLIENT = None
    _TRANSCRIPTION_CLIENT = None
    _RESEARCH_AGENT = None
    get_app_settings.cache_clear()
    get_settings.cache_clear()


__all__ = [
    "get_app_settings",
    "get_embedder",
    "get_vector_index",
    "get_ingest_pipeline",
    "get_chat_client",
    "get_transcription_client",
    "get_research_agent",
    "reset_dependencies",
]

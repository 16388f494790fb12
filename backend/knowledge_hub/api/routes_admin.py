"""Administrative routes for Knowledge Hub."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from knowledge_hub.api.dependencies import get_app_settings, get_vector_index
from knowledge_hub.core.config import Settings
from knowledge_hub.core.metrics import metrics_response
from knowledge_hub.ingest.parsers import supported_extensions
from knowledge_hub.retrieval import VectorIndex

router = APIRouter()


@router.get("/health", summary="Liveness check")
async def health() -> dict[str, bool]:
    return {"ok": True}


@router.get("/status", summary="Index and provider status")
async def status(
    index: VectorIndex = Depends(get_vector_index),
    settings: Settings = Depends(get_app_settings),
) -> dict[str, object]:
    return {
        "documents": len(index.list_documents()),
        "chunks": index.size,
        "embedding_model": index.embedder.model,
        "store_backend": settings.store_backend,
        "chat_configured": bool(settings.openrouter_api_key),
        "transcription_configured": bool(settings.openai_api_key),
        "supported_extensions": list(supported_extensions()),
    }


@router.get("/metrics", summary="Prometheus metrics")
async def get_metrics():
    return metrics_response()


__all__ = ["router"]

"""Chat completion routes with optional knowledge-base grounding."""

from __future__ import annotations

import asyncio
from typing import Any, AsyncIterator, Sequence

import orjson
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from knowledge_hub.api.dependencies import get_app_settings, get_chat_client, get_vector_index
from knowledge_hub.clients.openrouter import OpenRouterClient, build_messages
from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import KnowledgeHubError, ProviderError
from knowledge_hub.core.logging import get_logger
from knowledge_hub.models.dto import (
    ChatMessageIn,
    ChatRequest,
    ChatResponse,
    ChunkResult,
    CompareRequest,
    CompareResponse,
    ModelReply,
)
from knowledge_hub.models.entities import SearchResult
from knowledge_hub.retrieval import VectorIndex, build_context

logger = get_logger(__name__)

router = APIRouter()


@router.post("", summary="Chat with a model, optionally grounded in indexed documents")
async def chat(
    request: ChatRequest,
    client: OpenRouterClient = Depends(get_chat_client),
    index: VectorIndex = Depends(get_vector_index),
    settings: Settings = Depends(get_app_settings),
):
    model = request.model or settings.chat_model
    sources = await _retrieve_sources(request.messages, request.use_knowledge_base, request.top_k, index, settings)
    messages = build_messages(
        [message.model_dump() for message in request.messages],
        system_prompt=request.system_prompt,
        rag_context=build_context(sources) or None,
    )
    source_payload = [ChunkResult.from_result(result) for result in sources]

    if not request.stream:
        completion = await client.chat(model, messages)
        return ChatResponse(model=model, content=completion.content, sources=source_payload)

    async def event_stream() -> AsyncIterator[str]:
        if source_payload:
            yield _sse({"type": "sources", "sources": [source.model_dump() for source in source_payload]})
        try:
            async for delta in client.chat_stream(model, messages):
                yield _sse({"type": "text", "content": delta})
        except KnowledgeHubError as exc:
            logger.warning("Chat stream failed: %s", exc)
            yield _sse({"type": "error", "message": str(exc)})
        yield "data: [DONE]\n\n"

    return StreamingResponse(event_stream(), media_type="text/event-stream")


@router.post("/compare", response_model=CompareResponse, summary="Send one conversation to several models at once")
async def compare_models(
    request: CompareRequest,
    client: OpenRouterClient = Depends(get_chat_client),
    index: VectorIndex = Depends(get_vector_index),
    settings: Settings = Depends(get_app_settings),
) -> CompareResponse:
    sources = await _retrieve_sources(request.messages, request.use_knowledge_base, request.top_k, index, settings)
    messages = build_messages(
        [message.model_dump() for message in request.messages],
        system_prompt=request.system_prompt,
        rag_context=build_context(sources) or None,
    )
    options = {
        key: value
        for key, value in (("temperature", request.temperature), ("max_tokens", request.max_tokens))
        if value is not None
    }
    replies = await asyncio.gather(*(_ask_model(client, model, messages, options) for model in request.models))
    return CompareResponse(
        responses=list(replies),
        sources=[ChunkResult.from_result(result) for result in sources],
    )


async def _ask_model(
    client: OpenRouterClient,
    model: str,
    messages: Sequence[Any],
    options: dict[str, Any],
) -> ModelReply:
    # A provider failure only fails its own column.
    try:
        completion = await client.chat(model, messages, **options)
    except ProviderError as exc:
        logger.warning("Comparison request to %s failed: %s", model, exc)
        return ModelReply(model=model, error=str(exc))
    usage = completion.usage.model_dump() if completion.usage else None
    return ModelReply(model=model, content=completion.content, usage=usage)


async def _retrieve_sources(
    messages: Sequence[ChatMessageIn],
    use_knowledge_base: bool,
    top_k: int | None,
    index: VectorIndex,
    settings: Settings,
) -> list[SearchResult]:
    if not use_knowledge_base:
        return []
    question = _last_user_message(messages)
    if not question:
        return []
    return await index.search(question, top_k=top_k or settings.top_k)


def _last_user_message(messages: Sequence[ChatMessageIn]) -> str | None:
    for message in reversed(messages):
        if message.role == "user" and message.content.strip():
            return message.content
    return None


def _sse(payload: dict) -> str:
    return f"data: {orjson.dumps(payload).decode()}\n\n"


__all__ = ["router"]

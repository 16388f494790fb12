"""Single-shot online search through the search model."""

from __future__ import annotations

from typing import AsyncIterator

import orjson
from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from knowledge_hub.api.dependencies import get_app_settings, get_chat_client
from knowledge_hub.clients.openrouter import OpenRouterClient
from knowledge_hub.clients.schemas import ChatMessage
from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import InvalidInput, KnowledgeHubError
from knowledge_hub.core.logging import get_logger
from knowledge_hub.models.dto import CitationOut, SearchRequest, SearchResponse
from knowledge_hub.research.agent import dedupe_citations, extract_citations

logger = get_logger(__name__)

router = APIRouter()


@router.post("", summary="Answer a query with an online search model")
async def search(
    request: SearchRequest,
    client: OpenRouterClient = Depends(get_chat_client),
    settings: Settings = Depends(get_app_settings),
):
    query = request.query.strip()
    if not query:
        raise InvalidInput("Search query is required")
    model = request.model or settings.search_model
    messages = [ChatMessage(role="user", content=query)]

    if not request.stream:
        completion = await client.chat(model, messages)
        citations = dedupe_citations(extract_citations(completion.content))
        return SearchResponse(
            model=completion.model or model,
            content=completion.content,
            citations=[CitationOut.from_citation(citation) for citation in citations],
            usage=completion.usage.model_dump() if completion.usage else None,
        )

    async def event_stream() -> AsyncIterator[str]:
        try:
            async for delta in client.chat_stream(model, messages):
                yield f"data: {orjson.dumps({'type': 'text', 'content': delta}).decode()}\n\n"
        except KnowledgeHubError as exc:
            logger.warning("Search stream failed: %s", exc)
            yield f"data: {orjson.dumps({'type': 'error', 'message': str(exc)}).decode()}\n\n"
        yield "data: [DONE]\n\n"

    return StreamingResponse(event_stream(), media_type="text/event-stream")


__all__ = ["router"]

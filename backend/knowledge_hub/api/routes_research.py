"""DeepSearch research routes."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

import orjson
from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse

from knowledge_hub.api.dependencies import get_research_agent
from knowledge_hub.core.errors import KnowledgeHubError
from knowledge_hub.core.logging import get_logger
from knowledge_hub.models.dto import ResearchRequest, ResearchResponse
from knowledge_hub.research.agent import ResearchAgent, ResearchEvent

logger = get_logger(__name__)

router = APIRouter()

SSE_DONE = "data: [DONE]\n\n"


@router.post("", response_model=ResearchResponse, summary="Run a DeepSearch research query")
async def run_research(
    request: ResearchRequest,
    agent: ResearchAgent = Depends(get_research_agent),
) -> ResearchResponse:
    query = await agent.run(request.question, max_sub_questions=request.max_sub_questions)
    return ResearchResponse.from_query(query)


@router.get("/stream", summary="Stream DeepSearch progress as server-sent events")
async def stream_research(
    question: str = Query(..., min_length=1),
    max_sub_questions: int | None = Query(default=None, ge=1, le=10),
    agent: ResearchAgent = Depends(get_research_agent),
) -> StreamingResponse:
    cancel_event = asyncio.Event()

    async def event_stream() -> AsyncIterator[str]:
        try:
            async for event in agent.stream(question, cancel_event=cancel_event, max_sub_questions=max_sub_questions):
                yield format_sse(event)
        except KnowledgeHubError as exc:
            # the error event has already been sent
            logger.info("Research stream ended with error: %s", exc)
        finally:
            # stops the run between steps when the client goes away
            cancel_event.set()
        yield SSE_DONE

    return StreamingResponse(
        event_stream(),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "X-Accel-Buffering": "no"},
    )


def format_sse(event: ResearchEvent) -> str:
    payload = {
        "type": event.kind,
        "status": event.status.value,
        "query": ResearchResponse.from_query(event.query).model_dump(),
    }
    if event.detail is not None:
        payload["detail"] = event.detail
    return f"data: {orjson.dumps(payload).decode()}\n\n"


__all__ = ["router", "format_sse"]

"""FastAPI application setup for Knowledge Hub."""

from __future__ import annotations

import time

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from knowledge_hub.api.dependencies import (
    get_app_settings,
    get_ingest_pipeline,
    get_research_agent,
    get_vector_index,
)
from knowledge_hub.api.routes_admin import router as admin_router
from knowledge_hub.api.routes_audio import router as audio_router
from knowledge_hub.api.routes_chat import router as chat_router
from knowledge_hub.api.routes_rag import router as rag_router
from knowledge_hub.api.routes_research import router as research_router
from knowledge_hub.api.routes_search import router as search_router
from knowledge_hub.core.errors import (
    IngestError,
    InvalidInput,
    KnowledgeHubError,
    ProviderUnavailable,
    RateLimited,
    ResearchCancelled,
)
from knowledge_hub.core.logging import configure_logging, get_logger
from knowledge_hub.core.metrics import REQUEST_COUNT, REQUEST_LATENCY

configure_logging()
logger = get_logger(__name__)

app = FastAPI(
    title="Knowledge Hub",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://127.0.0.1:3000",
        "http://localhost:3000",
    ],
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

app.include_router(rag_router, prefix="/rag", tags=["rag"])
app.include_router(research_router, prefix="/deepsearch", tags=["deepsearch"])
app.include_router(chat_router, prefix="/chat", tags=["chat"])
app.include_router(search_router, prefix="/search", tags=["search"])
app.include_router(audio_router, prefix="/audio", tags=["audio"])
app.include_router(admin_router, prefix="", tags=["admin"])


def status_for(exc: KnowledgeHubError) -> int:
    """HTTP status reported for a domain error."""
    if isinstance(exc, (IngestError, InvalidInput)):
        return 400
    if isinstance(exc, RateLimited):
        return 429
    if isinstance(exc, ProviderUnavailable):
        return 502
    if isinstance(exc, ResearchCancelled):
        return 499
    return 500


@app.exception_handler(KnowledgeHubError)
async def handle_domain_error(request: Request, exc: KnowledgeHubError) -> JSONResponse:
    status_code = status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    headers = None
    if isinstance(exc, RateLimited) and exc.retry_after is not None:
        headers = {"Retry-After": str(int(exc.retry_after))}
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": exc.__class__.__name__},
        headers=headers,
    )


@app.middleware("http")
async def record_request_metrics(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    endpoint = getattr(route, "path", request.url.path)
    REQUEST_LATENCY.labels(endpoint=endpoint, method=request.method).observe(time.perf_counter() - start)
    REQUEST_COUNT.labels(endpoint=endpoint, method=request.method, status=str(response.status_code)).inc()
    return response


@app.on_event("startup")
async def startup() -> None:
    """Warm up core singletons on startup."""
    settings = get_app_settings()
    get_vector_index()
    get_ingest_pipeline()
    get_research_agent()
    logger.info(
        "Knowledge Hub ready (store=%s, embeddings=%s)",
        settings.store_backend,
        settings.embedding_backend,
    )

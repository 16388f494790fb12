"""Knowledge-base routes: upload, query, and document management."""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from knowledge_hub.api.dependencies import get_app_settings, get_ingest_pipeline, get_vector_index
from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import InvalidInput
from knowledge_hub.ingest.pipeline import IngestPipeline
from knowledge_hub.ingest.types import IngestStats
from knowledge_hub.models.dto import (
    ChunkResult,
    DeleteResponse,
    DocumentDetailResponse,
    DocumentResponse,
    FileResult,
    QueryRequest,
    QueryResponse,
    UploadResponse,
)
from knowledge_hub.retrieval import VectorIndex, build_context

router = APIRouter()


@router.post("/upload", response_model=UploadResponse, summary="Upload and index documents")
async def upload_documents(
    files: list[UploadFile] = File(...),
    pipeline: IngestPipeline = Depends(get_ingest_pipeline),
) -> UploadResponse:
    payloads = [(upload.filename or "upload", await upload.read()) for upload in files]
    if len(payloads) == 1:
        # A lone file reports its failure as an HTTP error.
        filename, data = payloads[0]
        result = await pipeline.ingest_file(data, filename)
        stats = IngestStats(processed=1, chunks=result.chunk_count)
        return UploadResponse(stats=stats.to_dict(), results=[FileResult.from_result(result)])

    payload = await pipeline.ingest_files(payloads)
    return UploadResponse(
        stats=payload["stats"],
        results=[FileResult.from_result(result) for result in payload["results"]],
    )


@router.post("/query", response_model=QueryResponse, summary="Semantic search over indexed documents")
async def query_documents(
    request: QueryRequest,
    index: VectorIndex = Depends(get_vector_index),
    settings: Settings = Depends(get_app_settings),
) -> QueryResponse:
    query = request.query.strip()
    if not query:
        raise InvalidInput("Query text is required")
    results = await index.search(
        query,
        top_k=request.top_k or settings.top_k,
        document_ids=request.document_ids,
    )
    return QueryResponse(
        query=query,
        results=[ChunkResult.from_result(result) for result in results],
        context=build_context(results) if request.include_context else None,
    )


@router.get("/documents", response_model=list[DocumentResponse], summary="List indexed documents")
async def list_documents(index: VectorIndex = Depends(get_vector_index)) -> list[DocumentResponse]:
    return [
        DocumentResponse.from_document(document, index.chunk_count(document.id))
        for document in index.list_documents()
    ]


@router.get("/documents/{document_id}", response_model=DocumentDetailResponse, summary="Fetch one document")
async def get_document(document_id: str, index: VectorIndex = Depends(get_vector_index)) -> DocumentDetailResponse:
    document = index.get(document_id)
    if document is None:
        raise HTTPException(status_code=404, detail="Document not found")
    summary = DocumentResponse.from_document(document, index.chunk_count(document_id))
    return DocumentDetailResponse(**summary.model_dump(), raw_text=document.raw_text)


@router.delete("/documents/{document_id}", response_model=DeleteResponse, summary="Remove a document and its chunks")
async def delete_document(document_id: str, index: VectorIndex = Depends(get_vector_index)) -> DeleteResponse:
    known = index.get(document_id) is not None
    index.delete(document_id)
    return DeleteResponse(status="ok" if known else "noop", deleted=1 if known else 0)


__all__ = ["router"]

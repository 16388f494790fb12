"""Tests for embedding clients."""

from __future__ import annotations

import json

import httpx
import pytest

from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import (
    InvalidInput,
    ProviderNotConfigured,
    ProviderUnavailable,
    RateLimited,
)
from knowledge_hub.ingest.embeddings import (
    EmbeddingClient,
    HashedEmbeddingClient,
    clean_text,
    create_embedder,
)


def _client(handler, **kwargs) -> EmbeddingClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return EmbeddingClient(api_key="test-key", http_client=http_client, **kwargs)


@pytest.mark.asyncio
async def test_vectors_follow_input_order() -> None:
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["authorization"]
        seen["body"] = json.loads(request.content)
        # provider lists items out of order
        return httpx.Response(
            200,
            json={
                "data": [
                    {"index": 2, "embedding": [0.0, 0.0, 1.0]},
                    {"index": 0, "embedding": [1.0, 0.0, 0.0]},
                    {"index": 1, "embedding": [0.0, 1.0, 0.0]},
                ]
            },
        )

    client = _client(handler, model="test/embed")
    vectors = await client.embed(["a", "b\n\nb", "c"])
    assert vectors == [[1.0, 0.0, 0.0], [0.0, 1.0, 0.0], [0.0, 0.0, 1.0]]
    assert seen["url"] == "https://openrouter.ai/api/v1/embeddings"
    assert seen["auth"] == "Bearer test-key"
    assert seen["body"] == {"model": "test/embed", "input": ["a", "b b", "c"]}


@pytest.mark.asyncio
async def test_empty_batch_makes_no_request() -> None:
    def handler(request: httpx.Request) -> httpx.Response:  # pragma: no cover - must not run
        raise AssertionError("no request expected")

    assert await _client(handler).embed([]) == []


@pytest.mark.asyncio
async def test_missing_key_raises() -> None:
    client = EmbeddingClient(api_key=None)
    with pytest.raises(ProviderNotConfigured):
        await client.embed(["text"])


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("status", "error"),
    [(429, RateLimited), (400, InvalidInput), (413, InvalidInput), (500, ProviderUnavailable), (503, ProviderUnavailable)],
)
async def test_status_mapping(status: int, error: type) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, text="nope", headers={"retry-after": "7"})

    with pytest.raises(error) as excinfo:
        await _client(handler).embed(["text"])
    assert excinfo.value.status_code == status
    if status == 429:
        assert excinfo.value.retry_after == 7.0


@pytest.mark.asyncio
async def test_transport_failure_is_unavailable() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(ProviderUnavailable):
        await _client(handler).embed(["text"])


@pytest.mark.asyncio
async def test_malformed_and_short_responses() -> None:
    def malformed(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"unexpected": True})

    def short(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"data": [{"index": 0, "embedding": [1.0]}]})

    with pytest.raises(ProviderUnavailable):
        await _client(malformed).embed(["text"])
    with pytest.raises(InvalidInput):
        await _client(short).embed(["one", "two"])


@pytest.mark.asyncio
async def test_hashed_embedder_is_normalized_and_deterministic() -> None:
    model = HashedEmbeddingClient(dim=64)
    vectors = await model.embed(["hello world", "world hello", ""])
    assert len(vectors) == 3
    assert all(len(vec) == model.dim for vec in vectors)
    assert abs(sum(value * value for value in vectors[0]) - 1.0) < 1e-6
    assert vectors[0] == vectors[1]
    assert vectors[2] == [0.0] * 64


def test_clean_text_and_factory() -> None:
    assert clean_text("a\n\nb\nc", max_chars=3) == "a b"
    assert isinstance(create_embedder(Settings(embedding_backend="hashed", embedding_dim=32)), HashedEmbeddingClient)
    assert isinstance(create_embedder(Settings(embedding_backend="openrouter")), EmbeddingClient)

"""Embedding clients."""

from __future__ import annotations

import hashlib
import math
import re
from typing import Protocol, Sequence

import httpx
from pydantic import ValidationError

from knowledge_hub.clients.http import ProviderHTTP
from knowledge_hub.clients.schemas import EmbeddingResponse
from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import InvalidInput, ProviderNotConfigured, ProviderUnavailable
from knowledge_hub.core.logging import get_logger
from knowledge_hub.core.metrics import EMBEDDING_CALLS
from knowledge_hub.utils.text import collapse_newlines

logger = get_logger(__name__)

_TOKEN_RE = re.compile(r"\w+")

DEFAULT_MAX_CHARS = 8000


class Embedder(Protocol):
    model: str
    dim: int

    async def embed(self, texts: Sequence[str]) -> list[list[float]]: ...

    async def embed_one(self, text: str) -> list[float]: ...


def clean_text(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> str:
    """Collapse newlines and truncate to the embedding model's input limit."""
    return collapse_newlines(text)[:max_chars]


class EmbeddingClient(ProviderHTTP):
    """OpenRouter (OpenAI-compatible) ``/embeddings`` client.

    All texts passed to :meth:`embed` go out in a single request; the returned
    vectors are positionally aligned with the input regardless of the order
    the provider lists them in.
    """

    provider = "Embedding"

    def __init__(
        self,
        api_key: str | None,
        model: str = "openai/text-embedding-3-small",
        base_url: str = "https://openrouter.ai/api/v1",
        dim: int = 1536,
        max_chars: int = DEFAULT_MAX_CHARS,
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
        extra_headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(timeout=timeout, http_client=http_client)
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.dim = dim
        self.max_chars = max_chars
        self.extra_headers = extra_headers or {}

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient | None = None) -> "EmbeddingClient":
        return cls(
            api_key=settings.openrouter_api_key,
            model=settings.embedding_model,
            base_url=settings.openrouter_base_url,
            dim=settings.embedding_dim,
            max_chars=settings.embedding_max_chars,
            timeout=settings.request_timeout,
            http_client=http_client,
            extra_headers={"HTTP-Referer": settings.app_url, "X-Title": settings.app_title},
        )

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        if not self.api_key:
            raise ProviderNotConfigured("OpenRouter API key not configured")

        cleaned = [clean_text(text, self.max_chars) for text in texts]
        headers = {"Authorization": f"Bearer {self.api_key}", **self.extra_headers}
        try:
            response = await self._post(
                f"{self.base_url}/embeddings",
                headers=headers,
                json={"model": self.model, "input": cleaned},
            )
        except Exception:
            EMBEDDING_CALLS.labels(backend="openrouter", outcome="error").inc()
            raise

        try:
            payload = EmbeddingResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            EMBEDDING_CALLS.labels(backend="openrouter", outcome="error").inc()
            raise ProviderUnavailable(f"Malformed embedding response: {exc}") from exc

        vectors = payload.ordered_vectors()
        if len(vectors) != len(cleaned):
            EMBEDDING_CALLS.labels(backend="openrouter", outcome="error").inc()
            raise InvalidInput(f"Expected {len(cleaned)} embeddings, provider returned {len(vectors)}")
        EMBEDDING_CALLS.labels(backend="openrouter", outcome="ok").inc()
        logger.debug("Embedded %s texts with %s", len(vectors), self.model)
        return vectors

    async def embed_one(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        return vectors[0]


class HashedEmbeddingClient:
    """Offline hashed bag-of-words embedder with deterministic output."""

    def __init__(self, model: str = "hashed", dim: int = 384, max_chars: int = DEFAULT_MAX_CHARS) -> None:
        self.model = model
        self.dim = dim
        self.max_chars = max_chars

    async def embed(self, texts: Sequence[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for text in texts:
            vector = [0.0] * self.dim
            for token in _tokenize(clean_text(text, self.max_chars)):
                vector[_hash_token(token, self.dim)] += 1.0
            _normalize(vector)
            vectors.append(vector)
        EMBEDDING_CALLS.labels(backend="hashed", outcome="ok").inc()
        return vectors

    async def embed_one(self, text: str) -> list[float]:
        vectors = await self.embed([text])
        return vectors[0]


def create_embedder(settings: Settings, http_client: httpx.AsyncClient | None = None) -> Embedder:
    if settings.embedding_backend == "hashed":
        return HashedEmbeddingClient(dim=settings.embedding_dim, max_chars=settings.embedding_max_chars)
    return EmbeddingClient.from_settings(settings, http_client=http_client)


def _tokenize(text: str) -> list[str]:
    return _TOKEN_RE.findall(text.lower())


def _hash_token(token: str, dim: int) -> int:
    digest = hashlib.blake2b(token.encode("utf-8"), digest_size=8).digest()
    value = int.from_bytes(digest, "big")
    return value % dim


def _normalize(vector: list[float]) -> None:
    norm = math.sqrt(sum(value * value for value in vector))
    if norm == 0:
        return
    inv = 1.0 / norm
    for idx, value in enumerate(vector):
        vector[idx] = value * inv


__all__ = [
    "Embedder",
    "EmbeddingClient",
    "HashedEmbeddingClient",
    "clean_text",
    "create_embedder",
]

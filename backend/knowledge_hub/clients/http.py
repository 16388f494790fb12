"""Shared HTTP plumbing for provider clients."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from knowledge_hub.core.errors import InvalidInput, ProviderUnavailable, RateLimited
from knowledge_hub.core.logging import get_logger

logger = get_logger(__name__)

_INVALID_INPUT_STATUSES = frozenset({400, 413, 422})


class ProviderHTTP:
    """Owns the optional shared ``httpx.AsyncClient`` used by a provider client."""

    provider = "provider"

    def __init__(self, timeout: float = 60.0, http_client: httpx.AsyncClient | None = None) -> None:
        self.timeout = timeout
        self._http_client = http_client

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
            return
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            yield client

    async def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        async with self._client() as client:
            try:
                response = await client.post(url, **kwargs)
            except httpx.TimeoutException as exc:
                logger.warning("%s request timed out: %s", self.provider, url)
                raise ProviderUnavailable(f"{self.provider} request timed out") from exc
            except httpx.HTTPError as exc:
                logger.warning("%s transport error for %s: %s", self.provider, url, exc)
                raise ProviderUnavailable(f"{self.provider} unreachable: {exc}") from exc
        raise_for_provider(response, self.provider)
        return response


def raise_for_provider(response: httpx.Response, provider: str) -> None:
    """Translate a non-2xx provider response into the error taxonomy."""
    if response.is_success:
        return
    status = response.status_code
    detail = response.text[:500]
    message = f"{provider} API error: {status} - {detail}"
    if status == 429:
        retry_after = _parse_retry_after(response.headers.get("retry-after"))
        raise RateLimited(message, status_code=status, retry_after=retry_after)
    if status in _INVALID_INPUT_STATUSES:
        raise InvalidInput(message, status_code=status)
    raise ProviderUnavailable(message, status_code=status)


def _parse_retry_after(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


__all__ = ["ProviderHTTP", "raise_for_provider"]

"""OpenRouter chat-completion client."""

from __future__ import annotations

from typing import Any, AsyncIterable, AsyncIterator, Iterable, Mapping, Sequence

import httpx
import orjson
from pydantic import ValidationError

from knowledge_hub.clients.http import ProviderHTTP, raise_for_provider
from knowledge_hub.clients.schemas import ChatCompletion, ChatCompletionChunk, ChatMessage
from knowledge_hub.core.config import Settings
from knowledge_hub.core.errors import ProviderNotConfigured, ProviderUnavailable
from knowledge_hub.core.logging import get_logger

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are a helpful AI assistant."

MessageLike = ChatMessage | Mapping[str, str]


class OpenRouterClient(ProviderHTTP):
    """Async client for ``/chat/completions`` on an OpenAI-compatible gateway."""

    provider = "OpenRouter"

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://openrouter.ai/api/v1",
        timeout: float = 60.0,
        http_client: httpx.AsyncClient | None = None,
        app_url: str = "http://localhost:3000",
        app_title: str = "Knowledge Hub",
    ) -> None:
        super().__init__(timeout=timeout, http_client=http_client)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.app_url = app_url
        self.app_title = app_title

    @classmethod
    def from_settings(cls, settings: Settings, http_client: httpx.AsyncClient | None = None) -> "OpenRouterClient":
        return cls(
            api_key=settings.openrouter_api_key,
            base_url=settings.openrouter_base_url,
            timeout=settings.request_timeout,
            http_client=http_client,
            app_url=settings.app_url,
            app_title=settings.app_title,
        )

    @property
    def completions_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _headers(self) -> dict[str, str]:
        if not self.api_key:
            raise ProviderNotConfigured("OpenRouter API key not configured")
        return {
            "Authorization": f"Bearer {self.api_key}",
            "HTTP-Referer": self.app_url,
            "X-Title": self.app_title,
        }

    def _body(self, model: str, messages: Sequence[MessageLike], stream: bool, options: Mapping[str, Any]) -> dict[str, Any]:
        return {
            "model": model,
            "messages": [_as_message(message).model_dump() for message in messages],
            "stream": stream,
            **options,
        }

    async def chat(self, model: str, messages: Sequence[MessageLike], **options: Any) -> ChatCompletion:
        """Send a non-streaming chat completion request."""
        response = await self._post(
            self.completions_url,
            headers=self._headers(),
            json=self._body(model, messages, False, options),
        )
        try:
            return ChatCompletion.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise ProviderUnavailable(f"Malformed chat completion from {model}: {exc}") from exc

    async def complete(self, model: str, prompt: str, **options: Any) -> str:
        """Single user-turn convenience wrapper returning the reply text."""
        completion = await self.chat(model, [ChatMessage(role="user", content=prompt)], **options)
        return completion.content

    async def chat_stream(self, model: str, messages: Sequence[MessageLike], **options: Any) -> AsyncIterator[str]:
        """Stream a chat completion, yielding text deltas as they arrive."""
        headers = self._headers()
        body = self._body(model, messages, True, options)
        async with self._client() as client:
            try:
                async with client.stream("POST", self.completions_url, headers=headers, json=body) as response:
                    if not response.is_success:
                        await response.aread()
                        raise_for_provider(response, self.provider)
                    async for delta in parse_sse_stream(response.aiter_lines()):
                        yield delta
            except httpx.HTTPError as exc:
                logger.warning("OpenRouter stream failed: %s", exc)
                raise ProviderUnavailable(f"OpenRouter stream failed: {exc}") from exc


async def parse_sse_stream(lines: AsyncIterable[str]) -> AsyncIterator[str]:
    """Turn ``data:`` lines of an OpenAI-style SSE stream into content deltas."""
    async for line in lines:
        delta = parse_sse_line(line)
        if delta:
            yield delta


def parse_sse_line(line: str) -> str | None:
    trimmed = line.strip()
    if not trimmed or trimmed == "data: [DONE]" or not trimmed.startswith("data: "):
        return None
    try:
        chunk = ChatCompletionChunk.model_validate(orjson.loads(trimmed[6:]))
    except (orjson.JSONDecodeError, ValidationError):
        logger.debug("Skipping malformed stream line: %s", trimmed[:120])
        return None
    return chunk.content


def build_messages(
    messages: Iterable[MessageLike],
    system_prompt: str | None = None,
    rag_context: str | None = None,
) -> list[ChatMessage]:
    """Prepend a system message carrying the prompt and retrieved context."""
    result: list[ChatMessage] = []
    if system_prompt or rag_context:
        content = system_prompt or DEFAULT_SYSTEM_PROMPT
        if rag_context:
            content += f"\n\nRelevant context from the knowledge base:\n{rag_context}"
        result.append(ChatMessage(role="system", content=content))
    result.extend(_as_message(message) for message in messages)
    return result


def _as_message(message: MessageLike) -> ChatMessage:
    if isinstance(message, ChatMessage):
        return message
    return ChatMessage(role=message["role"], content=message["content"])


__all__ = [
    "OpenRouterClient",
    "build_messages",
    "parse_sse_stream",
    "parse_sse_line",
    "DEFAULT_SYSTEM_PROMPT",
]

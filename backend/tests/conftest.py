"""Test fixtures for Knowledge Hub."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.insert(0, str(BACKEND_ROOT))

@pytest.fixture(autouse=True)
def reset_state(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Reset global singletons and environment between tests."""
    monkeypatch.setenv("KHUB_DB_PATH", str(tmp_path / "kb.db"))
    monkeypatch.setenv("KHUB_EMBEDDING_BACKEND", "hashed")
    monkeypatch.setenv("KHUB_EMBEDDING_DIM", "384")
    monkeypatch.setenv("KHUB_STORE_BACKEND", "memory")
    monkeypatch.delenv("KHUB_CONFIG", raising=False)
    monkeypatch.delenv("OPENROUTER_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("KHUB_OPENROUTER_API_KEY", raising=False)
    monkeypatch.delenv("KHUB_OPENAI_API_KEY", raising=False)

    from knowledge_hub.api import dependencies as deps

    deps.reset_dependencies()
    yield
    deps.reset_dependencies()


@pytest.fixture(scope="session")
def sample_text() -> str:
    return "Title\n\nParagraph one.\n\nParagraph two is here."


class FakeChatClient:
    """Scripted stand-in for ``OpenRouterClient.complete``.

    ``responses`` maps a model name to either a list of replies consumed in
    order or a callable receiving the prompt. Replies that are exceptions are
    raised.
    """

    def __init__(self, responses: dict[str, object]) -> None:
        self.responses = {key: list(value) if isinstance(value, list) else value for key, value in responses.items()}
        self.calls: list[tuple[str, str]] = []

    async def complete(self, model: str, prompt: str) -> str:
        self.calls.append((model, prompt))
        script = self.responses[model]
        reply = script(prompt) if callable(script) else script.pop(0)
        if isinstance(reply, BaseException):
            raise reply
        return reply


@pytest.fixture
def fake_chat_factory():
    return FakeChatClient

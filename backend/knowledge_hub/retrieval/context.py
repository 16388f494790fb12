"""Prompt context assembly from search results."""

from __future__ import annotations

from typing import Sequence

from knowledge_hub.models.entities import SearchResult

SOURCE_SEPARATOR = "\n\n---\n\n"


def build_context(results: Sequence[SearchResult]) -> str:
    """Render ranked results as labelled source blocks for a prompt."""
    if not results:
        return ""
    blocks = [
        f"[Source {position}: {result.document.name}]\n{result.chunk.content}"
        for position, result in enumerate(results, start=1)
    ]
    return SOURCE_SEPARATOR.join(blocks)


__all__ = ["build_context", "SOURCE_SEPARATOR"]

"""Chunking utilities."""

from __future__ import annotations

import math
import re

from knowledge_hub.ingest.types import ChunkDescriptor
from knowledge_hub.utils.ids import chunk_id

DEFAULT_CHUNK_SIZE = 2000
DEFAULT_OVERLAP = 200
DEFAULT_MIN_CHUNK_SIZE = 100

# Break points are only searched for in the last BREAK_SEARCH_WINDOW characters
# of a chunk, and only accepted in the back half of that window.
BREAK_SEARCH_WINDOW = 400

_EXCESS_NEWLINES_RE = re.compile(r"\n{3,}")
_SENTENCE_SPLIT_RE = re.compile(r"(?<=[.!?])\s+")
_PARAGRAPH_SPLIT_RE = re.compile(r"\n\n+")

_SENTENCE_BREAKS = (". ", "! ", "? ", ".\n", "!\n", "?\n")


def normalize_text(text: str) -> str:
    """Unify line endings, squeeze blank-line runs to one blank line, strip."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    return _EXCESS_NEWLINES_RE.sub("\n\n", text).strip()


def split_into_chunks(
    text: str,
    document_id: str,
    chunk_size: int = DEFAULT_CHUNK_SIZE,
    overlap: int = DEFAULT_OVERLAP,
    min_chunk_size: int = DEFAULT_MIN_CHUNK_SIZE,
) -> list[ChunkDescriptor]:
    """Split text into overlapping, boundary-aware chunks.

    ``start_index``/``end_index`` address the normalized text; ``content`` is the
    trimmed slice. Chunks whose trimmed content is shorter than
    ``min_chunk_size`` are dropped, except for a text that fits in a single
    chunk, which is always returned whole.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    if overlap < 0:
        raise ValueError("overlap must not be negative")

    normalized = normalize_text(text)
    length = len(normalized)
    if not normalized:
        return []

    if length <= chunk_size:
        return [
            ChunkDescriptor(
                id=chunk_id(document_id, 0),
                document_id=document_id,
                ordinal=0,
                content=normalized,
                start_index=0,
                end_index=length,
            )
        ]

    chunks: list[ChunkDescriptor] = []
    start = 0
    while start < length:
        end = start + chunk_size
        if end < length:
            end = find_break_point(normalized, start, end)
        else:
            end = length

        content = normalized[start:end].strip()
        if len(content) >= min_chunk_size:
            ordinal = len(chunks)
            chunks.append(
                ChunkDescriptor(
                    id=chunk_id(document_id, ordinal),
                    document_id=document_id,
                    ordinal=ordinal,
                    content=content,
                    start_index=start,
                    end_index=end,
                )
            )

        next_start = end - overlap
        if next_start <= start:
            # overlap swallowed the whole chunk; continue without overlap
            next_start = end
        start = next_start
        if start >= length - min_chunk_size:
            break

    return chunks


def find_break_point(text: str, start: int, ideal_end: int) -> int:
    """Return the end offset for a chunk starting at ``start``.

    Looks backwards from ``ideal_end`` for a paragraph break, then a sentence
    end, then a line break, then a space. A candidate in the front half of the
    search window is rejected.
    """
    search_start = max(start, ideal_end - BREAK_SEARCH_WINDOW)
    window = text[search_start:ideal_end]
    half = len(window) * 0.5

    for separator in ("\n\n", *_SENTENCE_BREAKS, "\n", " "):
        index = window.rfind(separator)
        if index != -1 and index > half:
            return search_start + index + len(separator)

    return ideal_end


def estimate_tokens(text: str) -> int:
    """Rough token estimate at four characters per token."""
    return math.ceil(len(text) / 4)


def split_by_sentences(text: str) -> list[str]:
    return [part.strip() for part in _SENTENCE_SPLIT_RE.split(text) if part.strip()]


def split_by_paragraphs(text: str) -> list[str]:
    return [part.strip() for part in _PARAGRAPH_SPLIT_RE.split(text) if part.strip()]


__all__ = [
    "DEFAULT_CHUNK_SIZE",
    "DEFAULT_OVERLAP",
    "DEFAULT_MIN_CHUNK_SIZE",
    "normalize_text",
    "split_into_chunks",
    "find_break_point",
    "estimate_tokens",
    "split_by_sentences",
    "split_by_paragraphs",
]

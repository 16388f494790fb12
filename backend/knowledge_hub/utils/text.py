"""Text processing helpers."""

from __future__ import annotations

import re

import langid

WHITESPACE_RE = re.compile(r"\s+")
NEWLINES_RE = re.compile(r"\n+")

# langid is unreliable on very short snippets
_MIN_LANGUAGE_SAMPLE = 20
_LANGUAGE_SAMPLE_CHARS = 5000


def normalize(text: str) -> str:
    """Collapse whitespace and strip."""
    return WHITESPACE_RE.sub(" ", text).strip()


def collapse_newlines(text: str) -> str:
    """Replace newline runs with a single space and strip."""
    return NEWLINES_RE.sub(" ", text).strip()


def word_count(text: str) -> int:
    """Number of whitespace-delimited tokens."""
    return len(text.split())


def detect_language(text: str) -> str | None:
    """ISO 639-1 code of the dominant language, or ``None`` for tiny inputs."""
    sample = normalize(text[:_LANGUAGE_SAMPLE_CHARS])
    if len(sample) < _MIN_LANGUAGE_SAMPLE:
        return None
    lang, _ = langid.classify(sample)
    return lang

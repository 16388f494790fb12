"""Clock and timestamp formatting helpers."""

from __future__ import annotations

import time


def now_ms() -> int:
    """Epoch milliseconds, the unit stored in ``created_at`` fields."""
    return int(time.time() * 1000)


def format_timestamp(seconds: float, millis_sep: str = ".") -> str:
    """``HH:MM:SS.mmm`` (VTT) or ``HH:MM:SS,mmm`` (SRT)."""
    hours = int(seconds // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)
    millis = int((seconds % 1) * 1000)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}{millis_sep}{millis:03d}"


__all__ = ["now_ms", "format_timestamp"]

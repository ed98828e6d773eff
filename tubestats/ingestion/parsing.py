"""Helpers for reading YouTube API payloads."""

from __future__ import annotations

from typing import Any, Dict, Optional

THUMBNAIL_PREFERENCE = ("high", "medium", "default", "standard", "maxres")


def parse_count(value: Any) -> int:
    """Parse a provider counter (usually a decimal string) to int.

    Missing, non-numeric and negative values resolve to 0.
    """
    if value is None or isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return max(value, 0)
    try:
        number = int(str(value).strip())
    except (TypeError, ValueError):
        try:
            number = int(float(str(value).strip()))
        except (TypeError, ValueError, OverflowError):
            return 0
    return max(number, 0)


def best_thumbnail(thumbnails: Optional[Dict[str, Any]]) -> Optional[str]:
    """Pick the preferred thumbnail URL from a snippet's ``thumbnails`` map."""
    if not thumbnails:
        return None
    for size in THUMBNAIL_PREFERENCE:
        url = (thumbnails.get(size) or {}).get("url")
        if url:
            return url
    return None

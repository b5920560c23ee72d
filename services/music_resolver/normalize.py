"""Label, duration and title helpers shared by every resolver."""

from __future__ import annotations

import math
import re
from typing import Any, Optional
from urllib.parse import SplitResult, unquote

MAX_DURATION_SEC = 12 * 60 * 60
DEFAULT_LABEL_LENGTH = 180

_WHITESPACE_RE = re.compile(r"\s+")
_FILE_EXTENSION_RE = re.compile(r"\.[a-z0-9]{2,5}$", re.IGNORECASE)
_WORD_SEPARATOR_RE = re.compile(r"[-_]+")

_SOURCE_LABELS = {
    "spotify": "Spotify",
    "youtube": "YouTube",
    "soundcloud": "SoundCloud",
    "bandcamp": "Bandcamp",
    "mixcloud": "Mixcloud",
}


def normalize_label(value: Any, fallback: str = "", max_length: int = DEFAULT_LABEL_LENGTH) -> str:
    """Collapse whitespace, trim, and cut to `max_length`; blank -> fallback."""
    cleaned = _WHITESPACE_RE.sub(" ", str(value or "")).strip()
    if not cleaned:
        return fallback
    return cleaned[:max_length]


def clamp_duration_sec(value: Any) -> Optional[float]:
    """
    Coerce a duration to seconds in [0, 12h], rounded to the millisecond.
    Missing, non-numeric or non-finite values become None.
    """
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(numeric):
        return None
    bounded = max(0.0, min(float(MAX_DURATION_SEC), numeric))
    return math.floor(bounded * 1000 + 0.5) / 1000


def infer_title_from_url(parsed: SplitResult) -> str:
    """Guess a human title from the last path segment, else the hostname."""
    segments = [part for part in unquote(parsed.path or "/").split("/") if part]
    last = segments[-1] if segments else ""
    title_like = _WORD_SEPARATOR_RE.sub(" ", _FILE_EXTENSION_RE.sub("", last)).strip()
    hostname = parsed.hostname or ""
    if hostname.startswith("www."):
        hostname = hostname[len("www."):]
    return normalize_label(title_like or hostname, "Untitled")


def source_label(source: Any) -> str:
    return _SOURCE_LABELS.get(str(source or ""), "Audio Link")

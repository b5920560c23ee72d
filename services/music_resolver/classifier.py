"""Hostname-based source classification."""

from __future__ import annotations

from typing import Optional

from services.music_resolver.models import Source

# First match wins.
_HOST_MARKERS: tuple[tuple[tuple[str, ...], Source], ...] = (
    (("spotify",), "spotify"),
    (("youtube", "youtu.be"), "youtube"),
    (("soundcloud",), "soundcloud"),
    (("bandcamp",), "bandcamp"),
    (("mixcloud",), "mixcloud"),
)


def infer_source(hostname: Optional[str]) -> Source:
    host = str(hostname or "").lower()
    for markers, source in _HOST_MARKERS:
        if any(marker in host for marker in markers):
            return source
    return "direct"

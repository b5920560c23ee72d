"""YouTube links: one video id -> one embeddable track."""

from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import SplitResult, parse_qs

from services.music_resolver.fetchers import Fetcher
from services.music_resolver.models import ResolutionError, WorkingTrack, build_track
from services.music_resolver.normalize import infer_title_from_url, normalize_label

log = logging.getLogger("music-resolver.youtube")

YOUTUBE_OEMBED_URL = "https://www.youtube.com/oembed"
YOUTUBE_OEMBED_TIMEOUT = 6.0
_ID_PATH_PREFIXES = {"shorts", "embed", "v"}


def canonical_watch_url(video_id: str) -> str:
    return f"https://www.youtube.com/watch?v={video_id}"


def thumbnail_url(video_id: str) -> str:
    return f"https://img.youtube.com/vi/{video_id}/hqdefault.jpg"


def extract_youtube_video_id(parsed: SplitResult) -> Optional[str]:
    """
    Pull the video id out of youtu.be short links, watch?v= links, and
    /shorts/, /embed/ or /v/ paths. Returns None when there is none.
    """
    host = (parsed.hostname or "").lower()
    parts = [part for part in (parsed.path or "").split("/") if part]

    if "youtu.be" in host:
        return parts[0] if parts else None

    if "youtube.com" in host:
        v = parse_qs(parsed.query).get("v", [""])[0]
        if v:
            return v
        if parts and parts[0] in _ID_PATH_PREFIXES:
            return parts[1] if len(parts) > 1 else None

    return None


async def resolve_youtube(
    parsed: SplitResult,
    fetcher: Fetcher,
    title_hint: str = "",
) -> list[WorkingTrack]:
    video_id = extract_youtube_video_id(parsed)
    if not video_id:
        raise ResolutionError("invalid_youtube_url")

    watch_url = canonical_watch_url(video_id)
    metadata = await fetcher.fetch_json(
        YOUTUBE_OEMBED_URL,
        params={"url": watch_url, "format": "json"},
        timeout=YOUTUBE_OEMBED_TIMEOUT,
    )
    if not isinstance(metadata, dict):
        log.debug(f"No oEmbed metadata for YouTube video {video_id}; using URL-derived title")
        metadata = {}

    title = normalize_label(
        title_hint or metadata.get("title") or infer_title_from_url(parsed),
        "YouTube Video",
    )
    # The embedded player plays the watch URL directly.
    return [
        build_track(
            url=watch_url,
            title=title,
            source="youtube",
            cover_url=metadata.get("thumbnail_url") or thumbnail_url(video_id),
            stream_url=watch_url,
            is_playable=True,
            playback_hint="youtube",
            player_type="youtube",
            video_id=video_id,
        )
    ]

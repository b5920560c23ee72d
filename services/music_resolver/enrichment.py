"""
Preview enrichment via Deezer.

Spotify often has no preview clip for a track (and never has one when we
only got oEmbed metadata). Deezer's public search does, so for every
Spotify track without a stream we search Deezer by title/artist and attach
the first result's 30s preview. Lookups are cached per search pair,
including misses.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

from services.music_resolver.caches import PreviewCache, PreviewMatch
from services.music_resolver.fetchers import Fetcher
from services.music_resolver.models import SEARCH_FIELD_LENGTH, WorkingTrack
from services.music_resolver.normalize import clamp_duration_sec, normalize_label
from services.music_resolver.pool import map_with_concurrency

log = logging.getLogger("music-resolver.enrichment")

DEEZER_SEARCH_URL = "https://api.deezer.com/search"
DEEZER_SEARCH_TIMEOUT = 6.5
ENRICHMENT_CONCURRENCY = 6
# Previews are ~30s snippets whatever the full track length is.
PREVIEW_DURATION_SEC = 30

_DASH_ARTIST_RE = re.compile(r"\s+-\s+(.+)$")
_BY_ARTIST_RE = re.compile(r"\s+by\s+(.+)$", re.IGNORECASE)


def parse_artist_from_title(title: str) -> str:
    """Artist from "Song - Artist" or "Song by Artist" display titles."""
    value = str(title or "")
    match = _DASH_ARTIST_RE.search(value) or _BY_ARTIST_RE.search(value)
    if match:
        return normalize_label(match.group(1), "", SEARCH_FIELD_LENGTH)
    return ""


def search_terms_for(track: WorkingTrack) -> tuple[str, str]:
    """(title, artist) to search with, preferring the retained search fields."""
    title = normalize_label(
        track.search_title,
        normalize_label(track.title.split(" - ")[0], "", SEARCH_FIELD_LENGTH),
        SEARCH_FIELD_LENGTH,
    )
    artist = normalize_label(
        track.search_artist,
        parse_artist_from_title(track.title),
        SEARCH_FIELD_LENGTH,
    )
    return title, artist


def preview_cache_key(title: str, artist: str) -> str:
    return f"{title.lower()}::{artist.lower()}"


def _escape_term(value: str) -> str:
    return str(value or "").replace('"', "").strip()


def build_search_query(title: str, artist: str) -> str:
    parts = []
    if title:
        parts.append(f'track:"{_escape_term(title)}"')
    if artist:
        parts.append(f'artist:"{_escape_term(artist)}"')
    return " ".join(parts)


def apply_preview(track: WorkingTrack, match: PreviewMatch) -> WorkingTrack:
    """Return a copy of `track` that plays `match`'s preview."""
    return track.model_copy(
        update={
            "stream_url": match.stream_url,
            "is_playable": True,
            "playback_hint": "preview",
            "duration_sec": float(PREVIEW_DURATION_SEC),
            "cover_url": track.cover_url or match.cover_url,
        }
    )


def _match_from_item(item: dict) -> PreviewMatch:
    album = item.get("album")
    if not isinstance(album, dict):
        album = {}
    return PreviewMatch(
        stream_url=str(item["preview"]),
        duration_sec=clamp_duration_sec(item.get("duration")),
        cover_url=(
            album.get("cover_xl")
            or album.get("cover_big")
            or album.get("cover_medium")
            or None
        ),
    )


class PreviewEnricher:
    def __init__(
        self,
        fetcher: Fetcher,
        cache: PreviewCache,
        concurrency: int = ENRICHMENT_CONCURRENCY,
    ):
        self._fetcher = fetcher
        self._cache = cache
        self._concurrency = concurrency

    async def find_preview(self, title: str, artist: str) -> Optional[PreviewMatch]:
        """Cached Deezer lookup for a (title, artist) pair."""
        key = preview_cache_key(title, artist)
        hit, cached = self._cache.lookup(key)
        if hit:
            return cached

        query = build_search_query(title, artist)
        if not query:
            self._cache.store(key, None)
            return None

        data = await self._fetcher.fetch_json(
            DEEZER_SEARCH_URL,
            params={"q": query},
            timeout=DEEZER_SEARCH_TIMEOUT,
        )
        items = data.get("data") if isinstance(data, dict) else None
        if not isinstance(items, list):
            items = []

        item = next(
            (i for i in items if isinstance(i, dict) and i.get("preview")),
            None,
        )
        match = _match_from_item(item) if item is not None else None
        self._cache.store(key, match)
        log.debug(f"Deezer preview {'found' if match else 'missing'} for {query!r}")
        return match

    async def enrich_track(self, track: WorkingTrack) -> WorkingTrack:
        if track.source != "spotify" or track.is_playable:
            return track
        title, artist = search_terms_for(track)
        match = await self.find_preview(title, artist)
        return apply_preview(track, match) if match else track

    async def enrich(self, tracks: list[WorkingTrack]) -> list[WorkingTrack]:
        """Enrich every track; a failed lookup leaves that track unchanged."""
        if not tracks:
            return []
        enriched = await map_with_concurrency(
            tracks,
            self._concurrency,
            lambda track, _index: self.enrich_track(track),
        )
        return [
            new if new is not None else original
            for new, original in zip(enriched, tracks)
        ]

"""
Entry point: raw URL in, `ResolutionResult` out.

Input problems (bad URL, non-http scheme, unknown source, YouTube link
without a video id) are the only things reported in `error`. Provider
failures degrade to fewer or lower-quality tracks.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Optional
from urllib.parse import SplitResult, urlsplit

import httpx

from services.common.logging_utils import log_timing
from services.common.sidecar_runtime_utils import build_upstream_client
from services.music_resolver.caches import PreviewCache, TokenCache
from services.music_resolver.classifier import infer_source
from services.music_resolver.config import MAX_RESOLVED_TRACKS, ResolverSettings, load_settings
from services.music_resolver.enrichment import PreviewEnricher
from services.music_resolver.fetchers import Fetcher
from services.music_resolver.models import ResolutionError, ResolutionResult, WorkingTrack
from services.music_resolver.spotify import SpotifyResolver
from services.music_resolver.youtube import resolve_youtube

log = logging.getLogger("music-resolver.pipeline")

_ALLOWED_SCHEMES = {"http", "https"}

# Shared by every resolver built without explicit caches.
_token_cache = TokenCache()
_preview_cache: Optional[PreviewCache] = None


def parse_input_url(value: Any) -> SplitResult:
    """Parse and validate a user-supplied http(s) URL."""
    raw = str(value or "").strip()
    try:
        parsed = urlsplit(raw)
        hostname = parsed.hostname
    except ValueError:
        raise ResolutionError("invalid_url") from None

    if not parsed.scheme:
        raise ResolutionError("invalid_url")
    if parsed.scheme.lower() not in _ALLOWED_SCHEMES:
        raise ResolutionError("invalid_protocol")
    if not hostname:
        raise ResolutionError("invalid_url")
    return parsed


def clamp_max_tracks(value: Any, ceiling: int = MAX_RESOLVED_TRACKS) -> int:
    """Clamp a requested track count into [1, ceiling]; unusable -> ceiling."""
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return ceiling
    if math.isnan(numeric) or numeric == 0:
        return ceiling
    return int(max(1, min(ceiling, numeric)))


def shared_token_cache() -> TokenCache:
    """The process-wide Spotify token slot."""
    return _token_cache


def shared_preview_cache(settings: ResolverSettings) -> PreviewCache:
    """
    The process-wide preview cache. Size and TTL come from the settings of
    the first call; later calls get that same cache whatever they pass.
    """
    global _preview_cache
    if _preview_cache is None:
        _preview_cache = PreviewCache(
            max_entries=settings.preview_cache_size,
            ttl_sec=settings.preview_cache_ttl,
        )
    return _preview_cache


class MusicResolver:
    """Wires fetcher, caches and per-source resolvers around one client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Optional[ResolverSettings] = None,
        *,
        token_cache: Optional[TokenCache] = None,
        preview_cache: Optional[PreviewCache] = None,
    ):
        self.settings = settings or ResolverSettings()
        self.fetcher = Fetcher(client, default_timeout=self.settings.fetch_timeout)
        self.token_cache = token_cache if token_cache is not None else TokenCache()
        self.preview_cache = (
            preview_cache
            if preview_cache is not None
            else PreviewCache(
                max_entries=self.settings.preview_cache_size,
                ttl_sec=self.settings.preview_cache_ttl,
            )
        )
        self.enricher = PreviewEnricher(self.fetcher, self.preview_cache)
        self.spotify = SpotifyResolver(
            self.fetcher,
            self.token_cache,
            self.enricher,
            client_id=self.settings.spotify_client_id,
            client_secret=self.settings.spotify_client_secret,
            max_pages=self.settings.spotify_max_pages,
        )
        self._client = client

    async def aclose(self) -> None:
        await self._client.aclose()

    @log_timing(log, "resolve_input")
    async def resolve_input(
        self,
        url: Any,
        *,
        title_hint: str = "",
        max_tracks: Any = None,
    ) -> ResolutionResult:
        try:
            tracks = await self._dispatch(url, title_hint or "", max_tracks)
        except ResolutionError as err:
            log.info(f"Rejected {str(url)[:200]!r}: {err.kind}")
            return ResolutionResult(error=err.kind)
        return ResolutionResult(tracks=[track.to_public() for track in tracks])

    async def _dispatch(self, url: Any, title_hint: str, max_tracks: Any) -> list[WorkingTrack]:
        parsed = parse_input_url(url)
        bounded_max = clamp_max_tracks(max_tracks, self.settings.track_ceiling)
        source = infer_source(parsed.hostname)

        if source == "spotify":
            tracks = await self.spotify.resolve(parsed, title_hint=title_hint, max_tracks=bounded_max)
            return tracks[:bounded_max]

        if source == "youtube":
            return await resolve_youtube(parsed, self.fetcher, title_hint=title_hint)

        raise ResolutionError("unsupported_source")


async def resolve_input(
    url: Any,
    *,
    title_hint: str = "",
    max_tracks: Any = None,
    settings: Optional[ResolverSettings] = None,
) -> ResolutionResult:
    """
    One-shot resolution with a short-lived HTTP client. Token and preview
    caches are shared across calls for the life of the process.
    """
    settings = settings or load_settings()
    async with build_upstream_client() as client:
        resolver = MusicResolver(
            client,
            settings,
            token_cache=shared_token_cache(),
            preview_cache=shared_preview_cache(settings),
        )
        return await resolver.resolve_input(url, title_hint=title_hint, max_tracks=max_tracks)

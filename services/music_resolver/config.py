"""Environment-driven settings for the music resolver."""

from __future__ import annotations

from dataclasses import dataclass

from services.common.sidecar_runtime_utils import env_float, env_int, env_str
from services.music_resolver.caches import PREVIEW_CACHE_MAX_ENTRIES, PREVIEW_CACHE_TTL
from services.music_resolver.fetchers import DEFAULT_FETCH_TIMEOUT

MAX_RESOLVED_TRACKS = 120
DEFAULT_SPOTIFY_MAX_PAGES = 20
DEFAULT_PORT = 8587


@dataclass(frozen=True)
class ResolverSettings:
    spotify_client_id: str = ""
    spotify_client_secret: str = ""
    # Never above MAX_RESOLVED_TRACKS; see track_ceiling.
    max_tracks: int = MAX_RESOLVED_TRACKS
    preview_cache_size: int = PREVIEW_CACHE_MAX_ENTRIES
    preview_cache_ttl: float = float(PREVIEW_CACHE_TTL)
    # Upper bound on Spotify playlist `next` pages followed per request.
    spotify_max_pages: int = DEFAULT_SPOTIFY_MAX_PAGES
    fetch_timeout: float = DEFAULT_FETCH_TIMEOUT

    @property
    def spotify_api_configured(self) -> bool:
        return bool(self.spotify_client_id and self.spotify_client_secret)

    @property
    def track_ceiling(self) -> int:
        return max(1, min(MAX_RESOLVED_TRACKS, self.max_tracks))


def load_settings() -> ResolverSettings:
    """Read settings from the process environment."""
    return ResolverSettings(
        spotify_client_id=env_str("SPOTIFY_CLIENT_ID"),
        spotify_client_secret=env_str("SPOTIFY_CLIENT_SECRET"),
        max_tracks=env_int("MUSIC_RESOLVER_MAX_TRACKS", str(MAX_RESOLVED_TRACKS)),
        preview_cache_size=env_int("MUSIC_RESOLVER_PREVIEW_CACHE_SIZE", str(PREVIEW_CACHE_MAX_ENTRIES)),
        preview_cache_ttl=env_float("MUSIC_RESOLVER_PREVIEW_CACHE_TTL", str(PREVIEW_CACHE_TTL)),
        spotify_max_pages=env_int("MUSIC_RESOLVER_SPOTIFY_MAX_PAGES", str(DEFAULT_SPOTIFY_MAX_PAGES)),
        fetch_timeout=env_float("MUSIC_RESOLVER_FETCH_TIMEOUT", str(DEFAULT_FETCH_TIMEOUT)),
    )

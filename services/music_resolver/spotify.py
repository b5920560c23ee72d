"""
Spotify links: tracks, albums and playlists.

Resolution is an ordered chain of strategies; the first one that yields at
least one track wins:

  1. Web API with a client-credentials token (needs SPOTIFY_CLIENT_ID and
     SPOTIFY_CLIENT_SECRET; skipped silently without them).
  2. Album/playlist page scraping: the public HTML lists every track as a
     `<meta property="music:song">` tag; each one is resolved via oEmbed.
  3. oEmbed for the link itself. Always produces one track, degrading to a
     URL-derived title when oEmbed is unreachable.

Whatever wins is passed through Deezer preview enrichment.
"""

from __future__ import annotations

import base64
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Sequence
from urllib.parse import SplitResult, urlsplit

from services.music_resolver.caches import DEFAULT_TOKEN_LIFETIME_SEC, TokenCache
from services.music_resolver.enrichment import PREVIEW_DURATION_SEC, PreviewEnricher
from services.music_resolver.fetchers import Fetcher
from services.music_resolver.models import SEARCH_FIELD_LENGTH, WorkingTrack, build_track
from services.music_resolver.normalize import infer_title_from_url, normalize_label
from services.music_resolver.pool import map_with_concurrency

log = logging.getLogger("music-resolver.spotify")

SPOTIFY_TOKEN_URL = "https://accounts.spotify.com/api/token"
SPOTIFY_API_BASE = "https://api.spotify.com/v1"
SPOTIFY_OEMBED_URL = "https://open.spotify.com/oembed"

SUPPORTED_SPOTIFY_TYPES = ("track", "playlist", "album")
COLLECTION_TYPES = ("playlist", "album")

TOKEN_TIMEOUT = 7.0
OEMBED_TIMEOUT = 6.0
HTML_TIMEOUT = 9.0
HTML_TRACK_CONCURRENCY = 5

PLAYLIST_FIELDS = (
    "name,images,external_urls,"
    "tracks.items(track(name,duration_ms,preview_url,external_urls,artists(name),album(images))),"
    "tracks.next"
)

_META_TAG_RE = re.compile(r"<meta\s+[^>]*>", re.IGNORECASE)
_MUSIC_SONG_RE = re.compile(r'(?:property|name)="music:song"', re.IGNORECASE)
_CONTENT_RE = re.compile(r'content="([^"]+)"', re.IGNORECASE)


@dataclass(frozen=True)
class SpotifyResource:
    resource_type: str
    resource_id: str


@dataclass(frozen=True)
class SpotifyRequest:
    """Everything a strategy needs to resolve one link."""
    parsed: SplitResult
    resource: Optional[SpotifyResource]
    max_tracks: int

    @property
    def url(self) -> str:
        return self.parsed.geturl()


Strategy = Callable[[SpotifyRequest], Awaitable[list[WorkingTrack]]]


# ════════════════════════════════════════════════════════════════════
# Parsing
# ════════════════════════════════════════════════════════════════════

def parse_spotify_resource(parsed: SplitResult) -> Optional[SpotifyResource]:
    """
    Find (type, id) in an open.spotify.com path. Localized `intl-xx`
    segments are skipped; the first track/playlist/album segment wins.
    """
    if "spotify.com" not in (parsed.hostname or "").lower():
        return None

    parts = [
        part
        for part in (parsed.path or "").split("/")
        if part and not part.startswith("intl-")
    ]
    for i, part in enumerate(parts):
        if part not in SUPPORTED_SPOTIFY_TYPES:
            continue
        resource_id = (parts[i + 1] if i + 1 < len(parts) else "").split("?")[0].strip()
        if not resource_id:
            return None
        return SpotifyResource(resource_type=part, resource_id=resource_id)

    return None


def extract_spotify_track_urls(html: Optional[str]) -> list[str]:
    """Distinct `music:song` meta URLs from a Spotify page, in page order."""
    if not html:
        return []
    urls: list[str] = []
    for tag in _META_TAG_RE.findall(html):
        if not _MUSIC_SONG_RE.search(tag):
            continue
        content = _CONTENT_RE.search(tag)
        url = content.group(1).strip() if content else ""
        if url:
            urls.append(url)
    return list(dict.fromkeys(urls))


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def _first_image_url(images: Any) -> Optional[str]:
    if isinstance(images, list) and images and isinstance(images[0], dict):
        return images[0].get("url") or None
    return None


def _spotify_link(obj: Any) -> Optional[str]:
    if isinstance(obj, dict) and isinstance(obj.get("external_urls"), dict):
        return obj["external_urls"].get("spotify") or None
    return None


def _duration_from_ms(value: Any) -> Optional[float]:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return None
    return numeric / 1000 if math.isfinite(numeric) else None


def map_spotify_track(
    track: Any,
    fallback_url: Optional[str] = None,
    fallback_image: Optional[str] = None,
) -> Optional[WorkingTrack]:
    """Map a Web API track object; None when it has no name."""
    if not isinstance(track, dict) or not track.get("name"):
        return None

    artists = [
        normalize_label(artist.get("name"))
        for artist in (track.get("artists") if isinstance(track.get("artists"), list) else [])
        if isinstance(artist, dict)
    ]
    artists = [name for name in artists if name]
    artist_label = ", ".join(artists)
    name = str(track["name"])
    preview_url = track.get("preview_url") or None

    return build_track(
        url=_spotify_link(track) or fallback_url or "",
        title=f"{name} - {artist_label}" if artist_label else name,
        source="spotify",
        cover_url=_first_image_url(_as_dict(track.get("album")).get("images")) or fallback_image,
        # A preview is a ~30s snippet, not the full song.
        duration_sec=PREVIEW_DURATION_SEC if preview_url else _duration_from_ms(track.get("duration_ms")),
        stream_url=preview_url,
        is_playable=bool(preview_url),
        playback_hint="preview" if preview_url else "external",
        search_title=normalize_label(name, "", SEARCH_FIELD_LENGTH),
        search_artist=artists[0] if artists else "",
    )


async def first_non_empty(
    strategies: Sequence[Strategy],
    request: SpotifyRequest,
) -> list[WorkingTrack]:
    """Run strategies in order and return the first non-empty result."""
    for strategy in strategies:
        name = getattr(strategy, "__name__", repr(strategy))
        tracks = await strategy(request)
        if tracks:
            log.debug(f"{name} resolved {len(tracks)} track(s) for {request.url}")
            return tracks
        log.debug(f"{name} produced nothing for {request.url}")
    return []


# ════════════════════════════════════════════════════════════════════
# Resolver
# ════════════════════════════════════════════════════════════════════

class SpotifyResolver:
    def __init__(
        self,
        fetcher: Fetcher,
        token_cache: TokenCache,
        enricher: PreviewEnricher,
        *,
        client_id: str = "",
        client_secret: str = "",
        max_pages: int = 20,
    ):
        self._fetcher = fetcher
        self._token_cache = token_cache
        self._enricher = enricher
        self._client_id = client_id.strip()
        self._client_secret = client_secret.strip()
        self._max_pages = max_pages

    # ── Tier 1: Web API ────────────────────────────────────────────

    async def get_access_token(self) -> Optional[str]:
        """Cached client-credentials token, or None without credentials."""
        if not self._client_id or not self._client_secret:
            return None

        cached = self._token_cache.get()
        if cached:
            return cached

        basic = base64.b64encode(f"{self._client_id}:{self._client_secret}".encode()).decode()
        payload = await self._fetcher.fetch_json(
            SPOTIFY_TOKEN_URL,
            method="POST",
            headers={"Authorization": f"Basic {basic}"},
            data={"grant_type": "client_credentials"},
            timeout=TOKEN_TIMEOUT,
        )
        if not isinstance(payload, dict) or not payload.get("access_token"):
            log.warning("Spotify client-credentials exchange failed; skipping Web API")
            return None

        try:
            expires_in = float(payload.get("expires_in"))
        except (TypeError, ValueError):
            expires_in = DEFAULT_TOKEN_LIFETIME_SEC
        if not math.isfinite(expires_in):
            expires_in = DEFAULT_TOKEN_LIFETIME_SEC

        self._token_cache.set(str(payload["access_token"]), expires_in)
        log.info(f"Obtained Spotify access token (expires_in={expires_in:.0f}s)")
        return self._token_cache.token

    async def _fetch_api(self, url: str, token: str, params: Optional[dict] = None) -> Optional[dict]:
        data = await self._fetcher.fetch_json(
            url,
            params=params,
            headers={"Authorization": f"Bearer {token}"},
        )
        return data if isinstance(data, dict) else None

    async def resolve_with_api(self, request: SpotifyRequest) -> list[WorkingTrack]:
        resource = request.resource
        if resource is None:
            return []
        token = await self.get_access_token()
        if not token:
            return []

        if resource.resource_type == "track":
            track = await self._fetch_api(f"{SPOTIFY_API_BASE}/tracks/{resource.resource_id}", token)
            resolved = map_spotify_track(track, request.url)
            return [resolved] if resolved else []

        if resource.resource_type == "album":
            return await self._resolve_album(request, token)

        if resource.resource_type == "playlist":
            return await self._resolve_playlist(request, token)

        return []

    async def _resolve_album(self, request: SpotifyRequest, token: str) -> list[WorkingTrack]:
        album = await self._fetch_api(f"{SPOTIFY_API_BASE}/albums/{request.resource.resource_id}", token)
        if album is None:
            return []

        images = album.get("images") or []
        album_image = _first_image_url(images)
        album_link = _spotify_link(album)
        items = _as_dict(album.get("tracks")).get("items")
        if not isinstance(items, list):
            return []

        resolved: list[WorkingTrack] = []
        for item in items[: request.max_tracks]:
            if not isinstance(item, dict):
                continue
            # Album track items carry no album block of their own.
            track = {
                **item,
                "album": {"images": images},
                "external_urls": item.get("external_urls") or album.get("external_urls"),
            }
            mapped = map_spotify_track(
                track,
                _spotify_link(item) or album_link or request.url,
                album_image,
            )
            if mapped:
                resolved.append(mapped)
        return resolved

    async def _resolve_playlist(self, request: SpotifyRequest, token: str) -> list[WorkingTrack]:
        playlist = await self._fetch_api(
            f"{SPOTIFY_API_BASE}/playlists/{request.resource.resource_id}",
            token,
            params={"fields": PLAYLIST_FIELDS},
        )
        if playlist is None:
            return []

        fallback_url = _spotify_link(playlist) or request.url
        playlist_image = _first_image_url(playlist.get("images"))
        resolved: list[WorkingTrack] = []

        def _collect(items: Any) -> None:
            if not isinstance(items, list):
                return
            for item in items:
                if len(resolved) >= request.max_tracks:
                    return
                track = item.get("track") if isinstance(item, dict) else None
                mapped = map_spotify_track(
                    track,
                    _spotify_link(track) or fallback_url,
                    playlist_image,
                )
                if mapped:
                    resolved.append(mapped)

        tracks_block = _as_dict(playlist.get("tracks"))
        _collect(tracks_block.get("items"))

        next_url = tracks_block.get("next")
        pages_fetched = 0
        while next_url and len(resolved) < request.max_tracks:
            if pages_fetched >= self._max_pages:
                log.warning(
                    f"Stopped paging playlist {request.resource.resource_id} after "
                    f"{pages_fetched} pages ({len(resolved)} tracks)"
                )
                break
            page = await self._fetch_api(str(next_url), token)
            pages_fetched += 1
            if page is None:
                break
            _collect(page.get("items"))
            next_url = page.get("next")

        return resolved

    # ── Tier 2: page scraping ──────────────────────────────────────

    async def resolve_with_html(self, request: SpotifyRequest) -> list[WorkingTrack]:
        if request.resource is None or request.resource.resource_type not in COLLECTION_TYPES:
            return []

        html = await self._fetcher.fetch_text(request.url, timeout=HTML_TIMEOUT)
        track_urls = extract_spotify_track_urls(html)[: request.max_tracks]
        if not track_urls:
            return []

        mapped = await map_with_concurrency(
            track_urls,
            HTML_TRACK_CONCURRENCY,
            lambda track_url, _index: self.resolve_track_url_with_oembed(track_url),
        )
        return [track for track in mapped if track is not None]

    async def resolve_track_url_with_oembed(self, track_url: str) -> Optional[WorkingTrack]:
        """oEmbed a scraped track URL; None if it is unparseable or unreachable."""
        try:
            parsed = urlsplit(track_url)
        except ValueError:
            return None
        if not parsed.scheme or not parsed.hostname:
            return None
        return await self._oembed_track(parsed, keep_on_failure=False)

    # ── Tier 3: oEmbed ─────────────────────────────────────────────

    async def resolve_with_oembed(self, request: SpotifyRequest) -> list[WorkingTrack]:
        track = await self._oembed_track(request.parsed, keep_on_failure=True)
        return [track] if track else []

    async def _oembed_track(self, parsed: SplitResult, *, keep_on_failure: bool) -> Optional[WorkingTrack]:
        url = parsed.geturl()
        metadata = await self._fetcher.fetch_json(
            SPOTIFY_OEMBED_URL,
            params={"url": url},
            timeout=OEMBED_TIMEOUT,
        )
        if not isinstance(metadata, dict):
            if not keep_on_failure:
                return None
            log.info(f"Spotify oEmbed unavailable for {url}; returning link-only track")
            metadata = {}

        return build_track(
            url=url,
            title=normalize_label(metadata.get("title"), infer_title_from_url(parsed)),
            source="spotify",
            cover_url=metadata.get("thumbnail_url"),
            is_playable=False,
            playback_hint="external",
            search_title=normalize_label(metadata.get("title"), "", SEARCH_FIELD_LENGTH),
        )

    # ── Chain ──────────────────────────────────────────────────────

    def strategies(self) -> list[Strategy]:
        return [self.resolve_with_api, self.resolve_with_html, self.resolve_with_oembed]

    async def resolve(
        self,
        parsed: SplitResult,
        *,
        title_hint: str = "",
        max_tracks: int,
    ) -> list[WorkingTrack]:
        request = SpotifyRequest(
            parsed=parsed,
            resource=parse_spotify_resource(parsed),
            max_tracks=max_tracks,
        )
        tracks = await first_non_empty(self.strategies(), request)

        # A hint names one item; it never renames a whole collection.
        if title_hint and len(tracks) == 1:
            only = tracks[0]
            tracks = [only.model_copy(update={"title": normalize_label(title_hint, only.title)})]

        return await self._enricher.enrich(tracks[:max_tracks])

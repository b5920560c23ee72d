"""
Music Link Resolver: FastAPI sidecar for soundspan.

Turns a pasted Spotify or YouTube link into a list of track descriptors the
player UI can queue: title, cover, and where available a short preview
stream. Spotify links are resolved through the Web API when client
credentials are configured, then page scraping, then oEmbed; tracks without
a preview get one from Deezer when it has a match.

The Node.js backend calls this service over HTTP on port 8587.
"""

from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from services.common.logging_utils import configure_service_logger
from services.common.sidecar_runtime_utils import build_upstream_client, env_int
from services.music_resolver.config import DEFAULT_PORT, load_settings
from services.music_resolver.models import ResolutionResult
from services.music_resolver.pipeline import MusicResolver, shared_preview_cache, shared_token_cache

# ── Logging ─────────────────────────────────────────────────────────
log = configure_service_logger("music-resolver")

# ── FastAPI app ─────────────────────────────────────────────────────
app = FastAPI(title="soundspan Music Link Resolver", version="1.0.0")

# ── Resolver (created on first use, one HTTP client per process) ───
_resolver: Optional[MusicResolver] = None


# ════════════════════════════════════════════════════════════════════
# Models
# ════════════════════════════════════════════════════════════════════

class ResolveRequest(BaseModel):
    """Link to resolve, with an optional display title and track cap."""
    model_config = ConfigDict(populate_by_name=True, alias_generator=to_camel)

    url: str
    title_hint: str = ""
    max_tracks: Optional[int] = None


# ════════════════════════════════════════════════════════════════════
# Helpers
# ════════════════════════════════════════════════════════════════════

def _get_resolver() -> MusicResolver:
    global _resolver
    if _resolver is None:
        settings = load_settings()
        _resolver = MusicResolver(
            build_upstream_client(),
            settings,
            token_cache=shared_token_cache(),
            preview_cache=shared_preview_cache(settings),
        )
    return _resolver


# ════════════════════════════════════════════════════════════════════
# Routes
# ════════════════════════════════════════════════════════════════════

@app.get("/health")
async def health():
    resolver = _get_resolver()
    return {
        "status": "ok",
        "service": "music-resolver",
        "spotify_api_configured": resolver.settings.spotify_api_configured,
        "preview_cache_entries": len(resolver.preview_cache),
    }


@app.post("/resolve", response_model=ResolutionResult)
async def resolve(req: ResolveRequest):
    """Resolve one link. Input problems come back in `error`, not as 4xx."""
    try:
        return await _get_resolver().resolve_input(
            req.url,
            title_hint=req.title_hint,
            max_tracks=req.max_tracks,
        )
    except Exception as e:
        log.error(f"Resolve failed for url={req.url!r}: {e}")
        raise HTTPException(status_code=500, detail=str(e))


# ── Lifecycle ───────────────────────────────────────────────────────

@app.on_event("startup")
async def startup():
    settings = _get_resolver().settings
    log.info("Music Link Resolver starting up")
    log.info(
        f"Config: spotify_api={'on' if settings.spotify_api_configured else 'off'}, "
        f"max_tracks={settings.track_ceiling}, "
        f"spotify_max_pages={settings.spotify_max_pages}, "
        f"preview_cache={settings.preview_cache_size} entries/{settings.preview_cache_ttl:.0f}s, "
        f"fetch_timeout={settings.fetch_timeout}s"
    )
    if not settings.spotify_api_configured:
        log.info("SPOTIFY_CLIENT_ID/SECRET not set; Spotify links use scraping and oEmbed only")


@app.on_event("shutdown")
async def shutdown():
    global _resolver
    if _resolver is not None:
        removed = _resolver.preview_cache.clean()
        if removed:
            log.debug(f"Cleaned {removed} expired preview cache entries")
        await _resolver.aclose()
        _resolver = None
    log.info("Music Link Resolver shutting down")


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=env_int("MUSIC_RESOLVER_PORT", str(DEFAULT_PORT)))

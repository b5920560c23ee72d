"""Tests for the FastAPI sidecar routes."""

import pytest
from fastapi.testclient import TestClient

import services.music_resolver.app as app_module
from services.music_resolver.config import ResolverSettings


@pytest.fixture
def client(monkeypatch: pytest.MonkeyPatch, make_resolver) -> TestClient:
    monkeypatch.setattr(app_module, "_resolver", make_resolver())
    return TestClient(app_module.app)


def test_health_reports_configuration(client: TestClient) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "status": "ok",
        "service": "music-resolver",
        "spotify_api_configured": False,
        "preview_cache_entries": 0,
    }


def test_health_reflects_spotify_credentials(monkeypatch: pytest.MonkeyPatch, make_resolver) -> None:
    settings = ResolverSettings(spotify_client_id="id", spotify_client_secret="secret")
    monkeypatch.setattr(app_module, "_resolver", make_resolver(settings))

    response = TestClient(app_module.app).get("/health")

    assert response.json()["spotify_api_configured"] is True


def test_resolve_returns_camel_case_tracks(client: TestClient, upstream) -> None:
    upstream.json("www.youtube.com", "/oembed", {"title": "Video"})

    response = client.post("/resolve", json={"url": "https://youtu.be/dQw4w9WgXcQ"})

    assert response.status_code == 200
    body = response.json()
    assert body["error"] is None
    [track] = body["tracks"]
    assert track["url"] == "https://www.youtube.com/watch?v=dQw4w9WgXcQ"
    assert track["sourceLabel"] == "YouTube"
    assert track["playbackHint"] == "youtube"
    assert track["isPlayable"] is True
    assert track["videoId"] == "dQw4w9WgXcQ"
    assert "searchTitle" not in track


def test_resolve_accepts_title_hint_and_max_tracks(client: TestClient, upstream) -> None:
    urls = [f"https://open.spotify.com/track/s{n}" for n in range(5)]
    tags = "".join(f'<meta property="music:song" content="{u}">' for u in urls)
    upstream.text("open.spotify.com", "/playlist/pl1", f"<html>{tags}</html>")
    upstream.json("open.spotify.com", "/oembed", {"title": "Tune"})

    response = client.post(
        "/resolve",
        json={"url": "https://open.spotify.com/playlist/pl1", "titleHint": "Ignored", "maxTracks": 2},
    )

    assert response.status_code == 200
    assert [t["title"] for t in response.json()["tracks"]] == ["Tune", "Tune"]


@pytest.mark.parametrize(
    ("url", "error"),
    [
        ("::::", "invalid_url"),
        ("ftp://example.com/x.mp3", "invalid_protocol"),
        ("https://example.com/x.mp3", "unsupported_source"),
        ("https://www.youtube.com/@channel", "invalid_youtube_url"),
    ],
)
def test_input_errors_are_reported_in_envelope(client: TestClient, url: str, error: str) -> None:
    response = client.post("/resolve", json={"url": url})

    assert response.status_code == 200
    assert response.json() == {"tracks": [], "error": error}


def test_unexpected_failure_is_500(monkeypatch: pytest.MonkeyPatch) -> None:
    class Broken:
        async def resolve_input(self, *args, **kwargs):
            raise RuntimeError("resolver exploded")

    monkeypatch.setattr(app_module, "_resolver", Broken())

    response = TestClient(app_module.app).post("/resolve", json={"url": "https://youtu.be/x"})

    assert response.status_code == 500
    assert response.json()["detail"] == "resolver exploded"


def test_missing_url_is_rejected(client: TestClient) -> None:
    assert client.post("/resolve", json={}).status_code == 422


def test_app_resolver_uses_process_caches(monkeypatch: pytest.MonkeyPatch) -> None:
    import services.music_resolver.pipeline as pipeline

    monkeypatch.setattr(app_module, "_resolver", None)
    monkeypatch.setattr(pipeline, "_preview_cache", None)

    resolver = app_module._get_resolver()

    assert resolver.token_cache is pipeline.shared_token_cache()
    assert resolver.preview_cache is pipeline.shared_preview_cache(resolver.settings)

import asyncio

import httpx
import pytest

from services.music_resolver.fetchers import Fetcher


def _fetcher(handler, default_timeout: float = 7.0) -> Fetcher:
    return Fetcher(httpx.AsyncClient(transport=httpx.MockTransport(handler)), default_timeout)


@pytest.mark.anyio
async def test_fetch_json_returns_decoded_body() -> None:
    fetcher = _fetcher(lambda req: httpx.Response(200, json={"title": "ok", "q": req.url.params["q"]}))
    assert await fetcher.fetch_json("https://api.test/x", params={"q": "a b"}) == {"title": "ok", "q": "a b"}


@pytest.mark.anyio
async def test_fetch_json_sends_method_headers_and_form() -> None:
    seen = {}

    def handler(req: httpx.Request) -> httpx.Response:
        seen["method"] = req.method
        seen["auth"] = req.headers.get("authorization")
        seen["body"] = req.content.decode()
        return httpx.Response(200, json={})

    fetcher = _fetcher(handler)
    await fetcher.fetch_json(
        "https://api.test/token",
        method="POST",
        headers={"Authorization": "Basic abc"},
        data={"grant_type": "client_credentials"},
    )
    assert seen == {"method": "POST", "auth": "Basic abc", "body": "grant_type=client_credentials"}


@pytest.mark.anyio
@pytest.mark.parametrize("status", [301, 404, 429, 500])
async def test_non_success_status_is_none(status: int) -> None:
    fetcher = _fetcher(lambda _req: httpx.Response(status, json={"error": "x"}))
    assert await fetcher.fetch_json("https://api.test/x") is None
    assert await fetcher.fetch_text("https://api.test/x") is None


@pytest.mark.anyio
async def test_invalid_json_is_none() -> None:
    fetcher = _fetcher(lambda _req: httpx.Response(200, text="<html>not json</html>"))
    assert await fetcher.fetch_json("https://api.test/x") is None
    assert await fetcher.fetch_text("https://api.test/x") == "<html>not json</html>"


@pytest.mark.anyio
async def test_network_error_is_none() -> None:
    def handler(req: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=req)

    assert await _fetcher(handler).fetch_json("https://api.test/x") is None


@pytest.mark.anyio
async def test_timeout_cancels_request_and_returns_none() -> None:
    cancelled = asyncio.Event()

    async def handler(_req: httpx.Request) -> httpx.Response:
        try:
            await asyncio.sleep(5)
        except asyncio.CancelledError:
            cancelled.set()
            raise
        return httpx.Response(200, json={})

    fetcher = _fetcher(handler)
    assert await fetcher.fetch_json("https://api.test/slow", timeout=0.05) is None
    assert cancelled.is_set()


@pytest.mark.anyio
async def test_default_timeout_applies_when_not_overridden() -> None:
    async def handler(_req: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, text="late")

    fetcher = _fetcher(handler, default_timeout=0.05)
    assert await fetcher.fetch_text("https://api.test/slow") is None

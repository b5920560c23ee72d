"""Fake upstream providers for resolver tests."""

from __future__ import annotations

from typing import Any, Callable, Optional

import httpx
import pytest

from services.music_resolver.caches import PreviewCache, TokenCache
from services.music_resolver.config import ResolverSettings
from services.music_resolver.pipeline import MusicResolver

Responder = Callable[[httpx.Request], Any]


class FakeUpstream:
    """
    Route table for httpx.MockTransport keyed by (method, host, path).
    Unrouted requests get a 404; every request is recorded.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str, str], Responder] = {}
        self.calls: list[httpx.Request] = []

    def add(self, host: str, path: str, responder: Responder, method: str = "GET") -> None:
        self.routes[(method, host, path)] = responder

    def json(self, host: str, path: str, payload, status: int = 200, method: str = "GET") -> None:
        self.add(host, path, lambda _req: httpx.Response(status, json=payload), method=method)

    def text(self, host: str, path: str, body: str, status: int = 200) -> None:
        self.add(host, path, lambda _req: httpx.Response(status, text=body))

    def calls_to(self, host: str, path: Optional[str] = None) -> list[httpx.Request]:
        return [
            req
            for req in self.calls
            if req.url.host == host and (path is None or req.url.path == path)
        ]

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        responder = self.routes.get((request.method, request.url.host, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"error": "not found"})
        result = responder(request)
        if not isinstance(result, httpx.Response):
            result = await result
        return result


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_resolver(upstream: FakeUpstream):
    def _make(
        settings: Optional[ResolverSettings] = None,
        *,
        token_cache: Optional[TokenCache] = None,
        preview_cache: Optional[PreviewCache] = None,
    ) -> MusicResolver:
        client = httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))
        return MusicResolver(
            client,
            settings or ResolverSettings(),
            token_cache=token_cache,
            preview_cache=preview_cache,
        )

    return _make

"""Shared runtime helpers for Python sidecar services."""

from __future__ import annotations

import os
from typing import Optional

import httpx

DEFAULT_UPSTREAM_CONNECT_TIMEOUT = 5.0
DEFAULT_UPSTREAM_READ_TIMEOUT = 10.0

# Realistic browser User-Agent; some providers serve stripped pages to bots.
BROWSER_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/131.0.0.0 Safari/537.36"
)


def env_int(name: str, default: str) -> int:
    """Parse an integer env var using a string default value."""
    return int(os.getenv(name, default))


def env_float(name: str, default: str) -> float:
    """Parse a float env var using a string default value."""
    return float(os.getenv(name, default))


def env_str(name: str, default: str = "") -> str:
    """Read a string env var, treating blank values as unset."""
    return (os.getenv(name) or "").strip() or default


def upstream_timeout() -> httpx.Timeout:
    """Return the default timeout for short upstream API requests."""
    return httpx.Timeout(
        DEFAULT_UPSTREAM_READ_TIMEOUT,
        connect=DEFAULT_UPSTREAM_CONNECT_TIMEOUT,
    )


def build_upstream_client(
    user_agent: Optional[str] = BROWSER_USER_AGENT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """Build an AsyncClient for metadata lookups against third-party APIs."""
    client_kwargs = {
        "timeout": upstream_timeout(),
        "follow_redirects": True,
    }
    if user_agent is not None:
        client_kwargs["headers"] = {"User-Agent": user_agent}
    if transport is not None:
        client_kwargs["transport"] = transport
    return httpx.AsyncClient(**client_kwargs)

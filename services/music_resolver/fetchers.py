"""
Best-effort upstream fetches.

Every provider call in the resolver goes through `Fetcher`. A fetch either
returns the decoded body or None: non-2xx responses, timeouts, transport
errors and undecodable bodies all come back as None so each caller has to
decide what absence means for it (usually: try the next tier).
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional

import httpx

log = logging.getLogger("music-resolver.fetch")

DEFAULT_FETCH_TIMEOUT = 7.0


class Fetcher:
    """Timeout-guarded JSON/text retrieval over a shared AsyncClient."""

    def __init__(self, client: httpx.AsyncClient, default_timeout: float = DEFAULT_FETCH_TIMEOUT):
        self._client = client
        self._default_timeout = default_timeout

    async def _request(
        self,
        url: str,
        *,
        method: str = "GET",
        params: Optional[Mapping[str, str]] = None,
        headers: Optional[Mapping[str, str]] = None,
        data: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> Optional[httpx.Response]:
        budget = timeout if timeout is not None else self._default_timeout
        try:
            # wait_for cancels the in-flight request once the budget is spent,
            # including time spent waiting for a pooled connection.
            response = await asyncio.wait_for(
                self._client.request(
                    method,
                    url,
                    params=params,
                    headers=headers,
                    data=data,
                    timeout=budget,
                ),
                timeout=budget,
            )
        except asyncio.TimeoutError:
            log.debug(f"{method} {url} timed out after {budget:.1f}s")
            return None
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            log.debug(f"{method} {url} failed: {e}")
            return None

        if not response.is_success:
            log.debug(f"{method} {url} returned HTTP {response.status_code}")
            return None
        return response

    async def fetch_json(self, url: str, **kwargs: Any) -> Optional[Any]:
        """Fetch `url` and decode JSON; None on any failure."""
        response = await self._request(url, **kwargs)
        if response is None:
            return None
        try:
            return response.json()
        except ValueError as e:
            log.debug(f"Undecodable JSON from {url}: {e}")
            return None

    async def fetch_text(self, url: str, **kwargs: Any) -> Optional[str]:
        """Fetch `url` as text; None on any failure."""
        response = await self._request(url, **kwargs)
        if response is None:
            return None
        try:
            return response.text
        except (UnicodeDecodeError, LookupError) as e:
            log.debug(f"Undecodable text from {url}: {e}")
            return None

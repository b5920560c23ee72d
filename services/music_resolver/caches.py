"""
Process-wide caches used by the resolver.

Both caches tolerate stale reads and unlocked concurrent writes: a token
that expires slightly early just triggers another (idempotent) exchange, and
two requests racing on the same preview key store the same value.
"""

from __future__ import annotations

import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Callable, Optional

Clock = Callable[[], float]

TOKEN_SAFETY_MARGIN_SEC = 20.0
DEFAULT_TOKEN_LIFETIME_SEC = 3500.0
PREVIEW_CACHE_MAX_ENTRIES = 2048
PREVIEW_CACHE_TTL = 6 * 60 * 60  # 6 hours


class TokenCache:
    """Single-slot cache for a client-credentials access token."""

    def __init__(self, clock: Clock = time.time, safety_margin_sec: float = TOKEN_SAFETY_MARGIN_SEC):
        self._clock = clock
        self._safety_margin_ms = safety_margin_sec * 1000
        self.token: Optional[str] = None
        self.expires_at_ms: float = 0.0

    def _now_ms(self) -> float:
        return self._clock() * 1000

    def get(self) -> Optional[str]:
        """Return the token if it is still valid past the safety margin."""
        if self.token and self.expires_at_ms > self._now_ms() + self._safety_margin_ms:
            return self.token
        return None

    def set(self, token: str, expires_in_sec: float = DEFAULT_TOKEN_LIFETIME_SEC) -> None:
        self.token = token
        self.expires_at_ms = self._now_ms() + expires_in_sec * 1000


@dataclass(frozen=True)
class PreviewMatch:
    """A playable preview snippet found on the secondary provider."""
    stream_url: str
    duration_sec: Optional[float] = None
    cover_url: Optional[str] = None


class PreviewCache:
    """
    LRU + TTL cache of preview lookups keyed by "title::artist".

    A stored None is a remembered miss, so repeated lookups of a track with
    no preview do not hit the network again until the entry expires.
    """

    def __init__(
        self,
        max_entries: int = PREVIEW_CACHE_MAX_ENTRIES,
        ttl_sec: float = PREVIEW_CACHE_TTL,
        clock: Clock = time.time,
    ):
        self._entries: OrderedDict[str, dict] = OrderedDict()
        self._max_entries = max(1, max_entries)
        self._ttl_sec = ttl_sec
        self._clock = clock

    def lookup(self, key: str) -> tuple[bool, Optional[PreviewMatch]]:
        """Return (hit, match). A hit with match=None is a cached miss."""
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        if entry["expires_at"] <= self._clock():
            del self._entries[key]
            return False, None
        self._entries.move_to_end(key)
        return True, entry["match"]

    def store(self, key: str, match: Optional[PreviewMatch]) -> None:
        self._entries[key] = {
            "match": match,
            "expires_at": self._clock() + self._ttl_sec,
        }
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clean(self) -> int:
        """Drop expired entries; returns how many were removed."""
        now = self._clock()
        expired = [k for k, v in self._entries.items() if v["expires_at"] <= now]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries

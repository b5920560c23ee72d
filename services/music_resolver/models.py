"""Track and result records returned by the resolver."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from pydantic.alias_generators import to_camel

from services.music_resolver.normalize import (
    clamp_duration_sec,
    normalize_label,
    source_label,
)

Source = Literal["spotify", "youtube", "soundcloud", "bandcamp", "mixcloud", "direct"]
PlaybackHint = Literal["youtube", "preview", "external", "stream", "audio-default"]
ErrorKind = Literal[
    "invalid_url",
    "invalid_protocol",
    "invalid_youtube_url",
    "unsupported_source",
]

DEFAULT_TRACK_TITLE = "Untitled Track"
SEARCH_FIELD_LENGTH = 140


class ResolutionError(Exception):
    """Input could not be resolved at all; `kind` is reported to the caller."""

    def __init__(self, kind: ErrorKind):
        super().__init__(kind)
        self.kind: ErrorKind = kind


# ════════════════════════════════════════════════════════════════════
# Models
# ════════════════════════════════════════════════════════════════════

class ResolvedTrack(BaseModel):
    """Caller-facing track descriptor. Serialized with camelCase keys."""
    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )

    url: str
    title: str = DEFAULT_TRACK_TITLE
    source: Source
    source_label: str = ""
    cover_url: Optional[str] = None
    duration_sec: Optional[float] = None
    stream_url: Optional[str] = None
    is_playable: bool = False
    playback_hint: PlaybackHint = "external"
    player_type: str = "audio"
    video_id: str = ""

    @model_validator(mode="before")
    @classmethod
    def _derive_source_label(cls, data: Any) -> Any:
        # The label is a pure function of the source; callers never pick it.
        if isinstance(data, dict) and "source" in data:
            data = {k: v for k, v in data.items() if k != "sourceLabel"}
            data["source_label"] = source_label(data["source"])
        return data

    @field_validator("url", mode="before")
    @classmethod
    def _trim_url(cls, value: Any) -> str:
        return str(value or "").strip()

    @field_validator("title", mode="before")
    @classmethod
    def _clean_title(cls, value: Any) -> str:
        return normalize_label(value, DEFAULT_TRACK_TITLE)

    @field_validator("cover_url", "stream_url", mode="before")
    @classmethod
    def _optional_url(cls, value: Any) -> Optional[str]:
        return str(value) if value else None

    @field_validator("duration_sec", mode="before")
    @classmethod
    def _clamp_duration(cls, value: Any) -> Optional[float]:
        return clamp_duration_sec(value)

    @field_validator("player_type", mode="before")
    @classmethod
    def _clean_player_type(cls, value: Any) -> str:
        return normalize_label(value or "audio", "audio", 20)

    @field_validator("video_id", mode="before")
    @classmethod
    def _clean_video_id(cls, value: Any) -> str:
        return normalize_label(value, "", 32)

    @model_validator(mode="after")
    def _playable_needs_stream(self) -> "ResolvedTrack":
        if self.is_playable and not self.stream_url:
            raise ValueError("a playable track must carry a stream_url")
        return self


class WorkingTrack(ResolvedTrack):
    """
    Track as passed between resolver stages. Carries the search pair used
    to cross-reference previews; `to_public()` drops it.
    """

    search_title: str = ""
    search_artist: str = ""

    @field_validator("search_title", "search_artist", mode="before")
    @classmethod
    def _clean_search_field(cls, value: Any) -> str:
        return normalize_label(value, "", SEARCH_FIELD_LENGTH)

    def to_public(self) -> ResolvedTrack:
        return ResolvedTrack.model_validate(
            self.model_dump(exclude={"search_title", "search_artist"})
        )


class ResolutionResult(BaseModel):
    """Envelope returned for every resolution request."""
    tracks: list[ResolvedTrack] = []
    error: Optional[ErrorKind] = None


def build_track(
    *,
    url: Any,
    title: Any,
    source: Source,
    cover_url: Any = None,
    duration_sec: Any = None,
    stream_url: Any = None,
    is_playable: bool = False,
    playback_hint: Optional[PlaybackHint] = None,
    search_title: Any = "",
    search_artist: Any = "",
    player_type: Any = "audio",
    video_id: Any = "",
) -> WorkingTrack:
    """Build a normalized working track; playable only when a stream exists."""
    playable = bool(is_playable) and bool(stream_url)
    return WorkingTrack(
        url=url,
        title=title,
        source=source,
        cover_url=cover_url,
        duration_sec=duration_sec,
        stream_url=stream_url,
        is_playable=playable,
        playback_hint=playback_hint or ("stream" if playable else "external"),
        search_title=search_title,
        search_artist=search_artist,
        player_type=player_type,
        video_id=video_id,
    )

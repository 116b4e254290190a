"""Data models for title lookups."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

TITLE_TYPES = ("movie", "series", "episode")


def normalize_type(value: str | None) -> str:
    """OMDb types outside movie/series/episode are treated as movies."""
    if value in TITLE_TYPES:
        return value
    return "movie"


@dataclass
class Title:
    """A title as returned by the lookup service."""

    imdbId: str
    title: str
    type: str = "movie"
    year: str | None = None
    posterUrl: str | None = None
    plot: str | None = None
    raw: dict[str, Any] | None = field(default=None, repr=False)

    @classmethod
    def from_omdb(cls, payload: dict[str, Any], keep_raw: bool = False) -> Title:
        """Build a Title from an OMDb search item or title response."""
        poster = payload.get("Poster")
        return cls(
            imdbId=payload["imdbID"],
            title=payload.get("Title") or payload["imdbID"],
            type=normalize_type(payload.get("Type")),
            year=payload.get("Year"),
            posterUrl=poster if poster and poster != "N/A" else None,
            plot=payload.get("Plot"),
            raw=payload if keep_raw else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data.pop("raw")
        return data

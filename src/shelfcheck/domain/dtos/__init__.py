"""Catalog DTOs - transient, typed views of TMDB and MusicBrainz payloads.

Hey future me - these are NEVER persisted! An analyzer fetches them, diffs owned items
against them and throws them away. The clients fill missing fields with defaults
(missing list -> [], missing number -> 0, missing string -> None).

Dates stay catalog strings ("2021-03-04", sometimes just "2021"); use
shelfcheck.domain.value_objects.parse_catalog_date when comparing.
"""

from dataclasses import dataclass, field

from shelfcheck.domain.value_objects import (
    ReleaseCategory,
    classify_release_group,
    parse_year,
)

# =============================================================================
# SHARED
# =============================================================================


@dataclass
class CatalogSearchResult:
    """One hit of a catalog search (movie, show, artist or release group)."""

    id: str
    title: str
    date: str | None = None
    score: int = 0

    @property
    def year(self) -> int | None:
        return parse_year(self.date)


# =============================================================================
# TMDB: MOVIES & COLLECTIONS
# =============================================================================


@dataclass
class CatalogMovie:
    id: str
    title: str
    release_date: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    collection_id: str | None = None
    collection_name: str | None = None

    @property
    def year(self) -> int | None:
        return parse_year(self.release_date)


@dataclass
class CatalogCollection:
    """TMDB collection ("franchise") with its member movies ("parts")."""

    id: str
    name: str
    parts: list[CatalogMovie] = field(default_factory=list)
    poster_path: str | None = None
    backdrop_path: str | None = None


# =============================================================================
# TMDB: TV
# =============================================================================


@dataclass
class CatalogSeasonSummary:
    season_number: int
    air_date: str | None = None
    episode_count: int = 0


@dataclass
class CatalogShow:
    id: str
    name: str
    status: str | None = None
    first_air_date: str | None = None
    poster_path: str | None = None
    backdrop_path: str | None = None
    seasons: list[CatalogSeasonSummary] = field(default_factory=list)


@dataclass
class CatalogEpisode:
    season_number: int
    episode_number: int
    name: str = ""
    air_date: str | None = None
    still_path: str | None = None

    @property
    def key(self) -> tuple[int, int]:
        return (self.season_number, self.episode_number)


@dataclass
class CatalogSeason:
    season_number: int
    episodes: list[CatalogEpisode] = field(default_factory=list)
    poster_path: str | None = None


# =============================================================================
# MUSICBRAINZ
# =============================================================================


@dataclass
class CatalogReleaseGroup:
    id: str
    title: str
    first_release_date: str | None = None
    primary_type: str | None = None
    secondary_types: list[str] = field(default_factory=list)

    @property
    def year(self) -> int | None:
        return parse_year(self.first_release_date)

    @property
    def category(self) -> ReleaseCategory | None:
        return classify_release_group(self.primary_type, self.secondary_types)


@dataclass
class CatalogArtist:
    id: str
    name: str
    sort_name: str | None = None
    country: str | None = None
    type: str | None = None
    begin: str | None = None
    end: str | None = None
    release_groups: list[CatalogReleaseGroup] = field(default_factory=list)


@dataclass
class CatalogTrack:
    id: str
    title: str
    position: int = 0
    disc_number: int = 1
    duration_ms: int | None = None


@dataclass
class CatalogRelease:
    """One concrete release (pressing) of a release group."""

    id: str
    title: str
    status: str | None = None
    formats: list[str] = field(default_factory=list)
    tracks: list[CatalogTrack] = field(default_factory=list)

    @property
    def has_media(self) -> bool:
        return bool(self.formats) or bool(self.tracks)


__all__ = [
    "CatalogArtist",
    "CatalogCollection",
    "CatalogEpisode",
    "CatalogMovie",
    "CatalogRelease",
    "CatalogReleaseGroup",
    "CatalogSearchResult",
    "CatalogSeason",
    "CatalogSeasonSummary",
    "CatalogShow",
    "CatalogTrack",
]

"""Completeness records and the typed missing-item lists they carry.

Hey future me - records hold REAL lists of dataclasses (list[MissingEpisode] etc.), never
JSON strings! Encoding to JSON happens exactly once, in the persistence mapper. Each record
subclass knows which MissingItem type it carries (missing_item_type) and which extra fields
it has (details_to_dict / details_from_dict), so the store can stay generic.

One record per (kind, unit_key, scope). Re-analysis overwrites it.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, ClassVar

from shelfcheck.domain.exceptions import ValidationError
from shelfcheck.domain.value_objects import (
    AnalysisScope,
    CompletenessKind,
    ReleaseCategory,
)

# =============================================================================
# MISSING ITEMS
# =============================================================================


@dataclass(frozen=True)
class MissingItem:
    """Base for the per-domain missing item variants."""

    title: str

    def to_dict(self) -> dict[str, Any]:
        raise NotImplementedError

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MissingItem":
        raise NotImplementedError


@dataclass(frozen=True)
class MissingEpisode(MissingItem):
    season_number: int
    episode_number: int
    air_date: str | None = None

    @property
    def key(self) -> tuple[int, int]:
        return (self.season_number, self.episode_number)

    def to_dict(self) -> dict[str, Any]:
        return {
            "season_number": self.season_number,
            "episode_number": self.episode_number,
            "title": self.title,
            "air_date": self.air_date,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MissingEpisode":
        return cls(
            title=data.get("title") or "",
            season_number=int(data.get("season_number") or 0),
            episode_number=int(data.get("episode_number") or 0),
            air_date=data.get("air_date"),
        )


@dataclass(frozen=True)
class MissingMovie(MissingItem):
    external_id: str
    year: int | None = None
    poster_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "title": self.title,
            "year": self.year,
            "poster_url": self.poster_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MissingMovie":
        return cls(
            title=data.get("title") or "",
            external_id=str(data.get("external_id") or ""),
            year=data.get("year"),
            poster_url=data.get("poster_url"),
        )


@dataclass(frozen=True)
class MissingRelease(MissingItem):
    """Missing album, EP or single of an artist."""

    external_id: str
    category: ReleaseCategory
    year: int | None = None
    cover_art_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "title": self.title,
            "category": self.category.value,
            "year": self.year,
            "cover_art_url": self.cover_art_url,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MissingRelease":
        return cls(
            title=data.get("title") or "",
            external_id=str(data.get("external_id") or ""),
            category=ReleaseCategory(data.get("category") or ReleaseCategory.ALBUM.value),
            year=data.get("year"),
            cover_art_url=data.get("cover_art_url"),
        )


@dataclass(frozen=True)
class MissingTrack(MissingItem):
    external_id: str
    track_number: int
    disc_number: int = 1
    duration_ms: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "external_id": self.external_id,
            "title": self.title,
            "track_number": self.track_number,
            "disc_number": self.disc_number,
            "duration_ms": self.duration_ms,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "MissingTrack":
        return cls(
            title=data.get("title") or "",
            external_id=str(data.get("external_id") or ""),
            track_number=int(data.get("track_number") or 0),
            disc_number=int(data.get("disc_number") or 1),
            duration_ms=data.get("duration_ms"),
        )


# =============================================================================
# RECORDS
# =============================================================================


# Listen up, owned_count vs owned_item_count: owned_count is what the percentage is based on
# (clamped to total_count, or the matched count for discographies). owned_item_count is the RAW
# number of owned items the unit had when analyzed - the skip heuristic compares against THAT,
# otherwise a clamped series (25 owned, 20 in catalog) would never be skipped again.
@dataclass(kw_only=True)
class CompletenessRecord:
    """Persisted completeness result for one logical unit in one scope."""

    kind: ClassVar[CompletenessKind]
    missing_item_type: ClassVar[type[MissingItem]] = MissingItem

    unit_key: str
    title: str
    scope: AnalysisScope = field(default_factory=AnalysisScope)
    external_id: str | None = None
    total_count: int = 0
    owned_count: int = 0
    owned_item_count: int = 0
    completeness_percentage: int = 0
    missing_items: list[Any] = field(default_factory=list)
    poster_url: str | None = None
    backdrop_url: str | None = None
    status: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate invariants."""
        if not self.unit_key:
            raise ValidationError(f"{self.kind} record has no unit key")
        if not 0 <= self.completeness_percentage <= 100:
            raise ValidationError(
                f"Completeness percentage out of range: {self.completeness_percentage}"
            )
        if self.total_count < 0 or self.owned_count < 0:
            raise ValidationError("Completeness counts cannot be negative")

    @property
    def is_matched(self) -> bool:
        return self.external_id is not None

    @property
    def is_complete(self) -> bool:
        return self.is_matched and self.completeness_percentage >= 100

    @property
    def missing_count(self) -> int:
        return len(self.missing_items)

    def details_to_dict(self) -> dict[str, Any]:
        """Subclass-specific fields, stored as one JSON column."""
        return {}

    @classmethod
    def details_from_dict(cls, data: dict[str, Any]) -> dict[str, Any]:
        """Turn the JSON details column back into constructor kwargs."""
        return {}

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "unit_key": self.unit_key,
            "title": self.title,
            "source_id": self.scope.source_id,
            "library_id": self.scope.library_id,
            "external_id": self.external_id,
            "total_count": self.total_count,
            "owned_count": self.owned_count,
            "completeness_percentage": self.completeness_percentage,
            "missing_items": [item.to_dict() for item in self.missing_items],
            "poster_url": self.poster_url,
            "backdrop_url": self.backdrop_url,
            "status": self.status,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            **self.details_to_dict(),
        }


@dataclass(kw_only=True)
class SeriesCompleteness(CompletenessRecord):
    """Episode completeness of one TV series. Counts exclude specials (season 0)."""

    kind: ClassVar[CompletenessKind] = CompletenessKind.SERIES
    missing_item_type: ClassVar[type[MissingItem]] = MissingEpisode

    total_seasons: int = 0
    owned_seasons: int = 0
    missing_seasons: list[int] = field(default_factory=list)

    @property
    def total_episodes(self) -> int:
        return self.total_count

    @property
    def owned_episodes(self) -> int:
        return self.owned_count

    def details_to_dict(self) -> dict[str, Any]:
        return {
            "total_seasons": self.total_seasons,
            "owned_seasons": self.owned_seasons,
            "missing_seasons": list(self.missing_seasons),
        }

    @classmethod
    def details_from_dict(cls, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "total_seasons": int(data.get("total_seasons") or 0),
            "owned_seasons": int(data.get("owned_seasons") or 0),
            "missing_seasons": [int(s) for s in data.get("missing_seasons") or []],
        }


@dataclass(kw_only=True)
class CollectionCompleteness(CompletenessRecord):
    """Movie collection (franchise) completeness. unit_key is the collection id."""

    kind: ClassVar[CompletenessKind] = CompletenessKind.COLLECTION
    missing_item_type: ClassVar[type[MissingItem]] = MissingMovie

    owned_external_ids: list[str] = field(default_factory=list)

    def details_to_dict(self) -> dict[str, Any]:
        return {"owned_external_ids": list(self.owned_external_ids)}

    @classmethod
    def details_from_dict(cls, data: dict[str, Any]) -> dict[str, Any]:
        return {"owned_external_ids": [str(i) for i in data.get("owned_external_ids") or []]}


@dataclass(kw_only=True)
class ArtistCompleteness(CompletenessRecord):
    """Discography completeness of one artist.

    total_count/owned_count hold the WEIGHTED totals (album 3, EP 2, single 1);
    the per-category fields hold plain counts.
    """

    kind: ClassVar[CompletenessKind] = CompletenessKind.ARTIST
    missing_item_type: ClassVar[type[MissingItem]] = MissingRelease

    total_albums: int = 0
    owned_albums: int = 0
    total_eps: int = 0
    owned_eps: int = 0
    total_singles: int = 0
    owned_singles: int = 0
    country: str | None = None
    artist_type: str | None = None
    active_from: str | None = None
    active_until: str | None = None

    def missing_in(self, category: ReleaseCategory) -> list[MissingRelease]:
        return [item for item in self.missing_items if item.category is category]

    @property
    def missing_albums(self) -> list[MissingRelease]:
        return self.missing_in(ReleaseCategory.ALBUM)

    @property
    def missing_eps(self) -> list[MissingRelease]:
        return self.missing_in(ReleaseCategory.EP)

    @property
    def missing_singles(self) -> list[MissingRelease]:
        return self.missing_in(ReleaseCategory.SINGLE)

    def details_to_dict(self) -> dict[str, Any]:
        return {
            "total_albums": self.total_albums,
            "owned_albums": self.owned_albums,
            "total_eps": self.total_eps,
            "owned_eps": self.owned_eps,
            "total_singles": self.total_singles,
            "owned_singles": self.owned_singles,
            "country": self.country,
            "artist_type": self.artist_type,
            "active_from": self.active_from,
            "active_until": self.active_until,
        }

    @classmethod
    def details_from_dict(cls, data: dict[str, Any]) -> dict[str, Any]:
        counts = {
            name: int(data.get(name) or 0)
            for name in (
                "total_albums",
                "owned_albums",
                "total_eps",
                "owned_eps",
                "total_singles",
                "owned_singles",
            )
        }
        return {
            **counts,
            "country": data.get("country"),
            "artist_type": data.get("artist_type"),
            "active_from": data.get("active_from"),
            "active_until": data.get("active_until"),
        }


@dataclass(kw_only=True)
class AlbumCompleteness(CompletenessRecord):
    """Track completeness of one owned album. unit_key is the owned album's item id."""

    kind: ClassVar[CompletenessKind] = CompletenessKind.ALBUM
    missing_item_type: ClassVar[type[MissingItem]] = MissingTrack

    artist_name: str | None = None
    release_id: str | None = None

    @property
    def release_group_id(self) -> str | None:
        return self.external_id

    def details_to_dict(self) -> dict[str, Any]:
        return {"artist_name": self.artist_name, "release_id": self.release_id}

    @classmethod
    def details_from_dict(cls, data: dict[str, Any]) -> dict[str, Any]:
        return {
            "artist_name": data.get("artist_name"),
            "release_id": data.get("release_id"),
        }


RECORD_TYPES: dict[CompletenessKind, type[CompletenessRecord]] = {
    CompletenessKind.SERIES: SeriesCompleteness,
    CompletenessKind.COLLECTION: CollectionCompleteness,
    CompletenessKind.ARTIST: ArtistCompleteness,
    CompletenessKind.ALBUM: AlbumCompleteness,
}


@dataclass(frozen=True)
class CompletenessStats:
    """Aggregate numbers over all records of one kind/scope."""

    total: int
    complete: int
    incomplete: int
    unmatched: int
    total_missing: int
    average_completeness: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "total": self.total,
            "complete": self.complete,
            "incomplete": self.incomplete,
            "unmatched": self.unmatched,
            "total_missing": self.total_missing,
            "average_completeness": self.average_completeness,
        }

    @classmethod
    def from_records(cls, records: list[CompletenessRecord]) -> "CompletenessStats":
        matched = [r for r in records if r.is_matched]
        complete = sum(1 for r in matched if r.is_complete)
        average = (
            round(sum(r.completeness_percentage for r in matched) / len(matched), 1)
            if matched
            else 0.0
        )
        return cls(
            total=len(records),
            complete=complete,
            incomplete=len(matched) - complete,
            unmatched=len(records) - len(matched),
            total_missing=sum(r.missing_count for r in matched),
            average_completeness=average,
        )


__all__ = [
    "RECORD_TYPES",
    "AlbumCompleteness",
    "ArtistCompleteness",
    "CollectionCompleteness",
    "CompletenessRecord",
    "CompletenessStats",
    "MissingEpisode",
    "MissingItem",
    "MissingMovie",
    "MissingRelease",
    "MissingTrack",
    "SeriesCompleteness",
]

"""Owned media items as seen by the completeness engine."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from shelfcheck.domain.exceptions import ValidationError
from shelfcheck.domain.value_objects import ProviderType


class MediaKind(str, Enum):
    """Kind of locally owned item."""

    MOVIE = "movie"
    EPISODE = "episode"
    ALBUM = "album"
    TRACK = "track"

    def __str__(self) -> str:
        return self.value


# Hey future me, OwnedItem is READ-ONLY for this engine! Library scanning (another part of the
# app) creates and updates them; we only read them, group them and diff them against the
# catalog. The field soup is deliberate: one flat type for movies, episodes, albums and tracks
# keeps the store port tiny (one get_owned_items(filter) call). Fields that don't apply to a
# kind simply stay None.
#
# external_id = primary catalog ID (TMDB id for movies/shows, MusicBrainz release group id for
# albums, MusicBrainz recording id for tracks). xref_id = alternate industry id a provider
# embedded in its metadata, usually an IMDB "tt..." id.
@dataclass(kw_only=True)
class OwnedItem:
    """A locally owned movie, episode, album or track."""

    id: str
    kind: MediaKind
    title: str
    source_id: str
    source_type: ProviderType = ProviderType.OTHER
    library_id: str | None = None
    provider_item_id: str | None = None
    year: int | None = None

    # Catalog identifiers
    external_id: str | None = None
    xref_id: str | None = None

    # Quality proxy (video/audio bitrate) - only used to break dedup ties
    quality_proxy: float | None = None

    # Episode identity
    series_title: str | None = None
    series_external_id: str | None = None
    season_number: int | None = None
    episode_number: int | None = None

    # Music identity
    artist_name: str | None = None
    artist_external_id: str | None = None
    album_title: str | None = None
    parent_id: str | None = None
    track_number: int | None = None
    disc_number: int | None = None

    has_artwork: bool = False
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        """Validate essential fields."""
        if not self.id:
            raise ValidationError("Owned item id cannot be empty")
        if self.kind is MediaKind.EPISODE and self.series_title is None:
            raise ValidationError(f"Episode {self.id} has no series title")

    @property
    def quality(self) -> float:
        return self.quality_proxy or 0.0

    @property
    def episode_key(self) -> tuple[int, int] | None:
        """(season, episode) or None when either number is unknown."""
        if self.season_number is None or self.episode_number is None:
            return None
        return (self.season_number, self.episode_number)

    @property
    def is_special(self) -> bool:
        """Season 0 holds specials, which never count towards completeness."""
        return self.season_number == 0

    def is_better_than(self, other: "OwnedItem") -> bool:
        """Strictly higher quality proxy wins; ties keep the incumbent."""
        return self.quality > other.quality


@dataclass(frozen=True)
class OwnedItemFilter:
    """Filter for ILocalStore.get_owned_items. None fields don't filter."""

    kind: MediaKind | None = None
    source_id: str | None = None
    library_id: str | None = None
    series_title: str | None = None
    artist_name: str | None = None
    parent_id: str | None = None
    ids: tuple[str, ...] | None = None


@dataclass
class ArtworkUpdate:
    """Artwork URLs pushed back into the store for local sources."""

    poster_url: str | None = None
    backdrop_url: str | None = None
    thumb_url: str | None = None
    season_poster_url: str | None = None
    extra: dict[str, str] = field(default_factory=dict)

    def is_empty(self) -> bool:
        return not any(
            (
                self.poster_url,
                self.backdrop_url,
                self.thumb_url,
                self.season_poster_url,
                self.extra,
            )
        )


__all__ = ["ArtworkUpdate", "MediaKind", "OwnedItem", "OwnedItemFilter"]

"""Logical units an analyzer computes one CompletenessRecord for."""

from dataclasses import dataclass, field

from shelfcheck.domain.entities.owned_item import OwnedItem


@dataclass(kw_only=True)
class AnalysisUnit:
    """One series, collection, artist or album plus the owned items behind it.

    Attributes:
        key: Record identity inside its kind (series title, collection id, ...)
        title: Display label for progress and logs
        items: Owned items belonging to the unit (already deduplicated)
        external_id: Catalog id if known up front (cached or resolved during dedup)
    """

    key: str
    title: str
    items: list[OwnedItem] = field(default_factory=list)
    external_id: str | None = None
    year: int | None = None
    xref_id: str | None = None

    @property
    def owned_count(self) -> int:
        return len(self.items)


@dataclass(kw_only=True)
class SeriesUnit(AnalysisUnit):
    """TV series; items are episodes from one or more providers."""

    @property
    def regular_episodes(self) -> list[OwnedItem]:
        return [ep for ep in self.items if not ep.is_special]

    @property
    def owned_count(self) -> int:
        return len(self.regular_episodes)


@dataclass(kw_only=True)
class CollectionUnit(AnalysisUnit):
    """Movie collection discovered from owned movies; external_id is the collection id."""

    @property
    def owned_external_ids(self) -> list[str]:
        seen: dict[str, None] = {}
        for movie in self.items:
            if movie.external_id:
                seen.setdefault(movie.external_id, None)
        return list(seen)


@dataclass(kw_only=True)
class ArtistUnit(AnalysisUnit):
    """Artist; items are the artist's owned albums."""


@dataclass(kw_only=True)
class AlbumUnit(AnalysisUnit):
    """One owned album; items are its owned tracks."""

    album: OwnedItem
    artist_name: str


__all__ = ["AlbumUnit", "AnalysisUnit", "ArtistUnit", "CollectionUnit", "SeriesUnit"]

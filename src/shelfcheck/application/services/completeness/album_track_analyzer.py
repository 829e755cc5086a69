"""Album completeness: owned tracks vs. the canonical release's track list."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rapidfuzz import fuzz

from shelfcheck.application.services.completeness.base import (
    UNMATCHED_STATUS,
    CompletenessAnalyzer,
    ScanContext,
)
from shelfcheck.domain.dtos import CatalogRelease, CatalogSearchResult
from shelfcheck.domain.entities import (
    AlbumCompleteness,
    AlbumUnit,
    MediaKind,
    MissingTrack,
    OwnedItem,
    OwnedItemFilter,
)
from shelfcheck.domain.value_objects import (
    AnalysisScope,
    CompletenessKind,
    calculate_completeness,
    clean_title_for_search,
    normalize_release_title,
    normalize_track_title,
)

if TYPE_CHECKING:
    from shelfcheck.domain.ports import ILocalStore
    from shelfcheck.infrastructure.integrations import MusicBrainzClient

logger = logging.getLogger(__name__)

# Minimum title similarity (0-100) for a search hit to beat the top-ranked result
TITLE_MATCH_THRESHOLD = 85.0


@dataclass
class AlbumCatalog:
    release: CatalogRelease
    cover_art_url: str | None = None


def pick_release_group(
    results: list[CatalogSearchResult], title: str
) -> CatalogSearchResult | None:
    """Best title match among search hits, else MusicBrainz' top hit.

    Hey future me - MusicBrainz ranks by Lucene score, which happily puts "Abbey Road
    (Super Deluxe)" above "Abbey Road". Comparing normalized titles with rapidfuzz fixes
    most of those; below the threshold we trust MusicBrainz' ranking.
    """
    if not results:
        return None
    wanted = normalize_release_title(title)
    scored = [
        (fuzz.ratio(wanted, normalize_release_title(result.title)), index)
        for index, result in enumerate(results)
    ]
    best_score, best_index = max(scored, key=lambda pair: (pair[0], -pair[1]))
    if best_score >= TITLE_MATCH_THRESHOLD:
        return results[best_index]
    return results[0]


class AlbumTrackAnalyzer(CompletenessAnalyzer[AlbumUnit]):
    """Track completeness per owned album (second stage of a discography run)."""

    kind = CompletenessKind.ALBUM

    def __init__(self, store: ILocalStore, musicbrainz: MusicBrainzClient) -> None:
        super().__init__(store)
        self._musicbrainz = musicbrainz

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    def _build_units(
        self, albums: list[OwnedItem], tracks: list[OwnedItem]
    ) -> list[AlbumUnit]:
        tracks_by_album: dict[str, list[OwnedItem]] = {}
        for track in tracks:
            if track.parent_id:
                tracks_by_album.setdefault(track.parent_id, []).append(track)

        return [
            AlbumUnit(
                key=album.id,
                title=album.album_title or album.title,
                items=tracks_by_album.get(album.id, []),
                external_id=album.external_id,
                year=album.year,
                album=album,
                artist_name=album.artist_name or "",
            )
            for album in albums
        ]

    async def enumerate_units(self, context: ScanContext) -> list[AlbumUnit]:
        albums = await self._store.get_owned_items(
            self.owned_filter(context.scope, kind=MediaKind.ALBUM)
        )
        tracks = await self._store.get_owned_items(
            self.owned_filter(context.scope, kind=MediaKind.TRACK)
        )
        return self._build_units(albums, tracks)

    async def find_unit(self, unit_key: str, context: ScanContext) -> AlbumUnit | None:
        albums = await self._store.get_owned_items(
            OwnedItemFilter(kind=MediaKind.ALBUM, ids=(unit_key,))
        )
        if not albums:
            return None
        tracks = await self._store.get_owned_items(
            OwnedItemFilter(kind=MediaKind.TRACK, parent_id=unit_key)
        )
        return self._build_units(albums, tracks)[0]

    # Stored release group id first (cheap), else artist + cleaned title search.
    # A search hit is written back so the next run skips the search.
    async def resolve_external_id(
        self, unit: AlbumUnit, context: ScanContext
    ) -> str | None:
        if unit.external_id:
            return unit.external_id

        results = await self._musicbrainz.search_release_group(
            unit.artist_name or None, clean_title_for_search(unit.title)
        )
        best = pick_release_group(results, unit.title)
        if best is None or not best.id:
            return None

        await self.write_back_external_id(unit.album.id, best.id)
        return best.id

    async def fetch_catalog(
        self, external_id: str, unit: AlbumUnit, context: ScanContext
    ) -> AlbumCatalog | None:
        release = await self._musicbrainz.get_release_tracks(external_id)
        if release is None:
            return None
        cover = None
        if not unit.album.has_artwork:
            cover = await self._musicbrainz.get_cover_art_url(external_id, 500)
        return AlbumCatalog(release=release, cover_art_url=cover)

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def build_record(
        self,
        unit: AlbumUnit,
        external_id: str,
        catalog: AlbumCatalog,
        context: ScanContext,
    ) -> AlbumCompleteness:
        owned_titles = {normalize_track_title(track.title) for track in unit.items}
        owned_titles.discard("")

        tracks = catalog.release.tracks
        missing = [
            MissingTrack(
                title=track.title,
                external_id=track.id,
                track_number=track.position,
                disc_number=track.disc_number,
                duration_ms=track.duration_ms,
            )
            for track in tracks
            if normalize_track_title(track.title) not in owned_titles
        ]

        total = len(tracks)
        owned = total - len(missing)

        return AlbumCompleteness(
            unit_key=unit.key,
            title=unit.title,
            scope=context.scope,
            external_id=external_id,
            total_count=total,
            owned_count=owned,
            owned_item_count=unit.owned_count,
            completeness_percentage=calculate_completeness(owned, total),
            missing_items=missing,
            poster_url=catalog.cover_art_url,
            artist_name=unit.artist_name or None,
            release_id=catalog.release.id or None,
        )

    def build_unmatched_record(
        self, unit: AlbumUnit, scope: AnalysisScope
    ) -> AlbumCompleteness:
        return AlbumCompleteness(
            unit_key=unit.key,
            title=unit.title,
            scope=scope,
            owned_count=unit.owned_count,
            owned_item_count=unit.owned_count,
            completeness_percentage=0,
            status=UNMATCHED_STATUS,
            artist_name=unit.artist_name or None,
        )

    def artwork_targets(self, unit: AlbumUnit) -> list[OwnedItem]:
        return [unit.album]

    async def apply_manual_match(self, unit: AlbumUnit, external_id: str) -> None:
        await super().apply_manual_match(unit, external_id)
        await self.write_back_external_id(unit.album.id, external_id)


__all__ = ["AlbumCatalog", "AlbumTrackAnalyzer", "pick_release_group"]

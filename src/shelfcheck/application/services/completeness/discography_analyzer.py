"""Discography completeness: owned albums vs. an artist's MusicBrainz release groups.

Hey future me - the percentage here is WEIGHTED. A missing studio album hurts more than a
missing single: album 3, EP 2, single 1. Example (3 albums, owns 2; 2 singles, owns 1):

    weighted total = 3*3 + 2*1 = 11
    weighted owned = 2*3 + 1*1 = 7
    percentage     = round(700 / 11) = 64

Owned per category is the MATCHED count (owned titles that exist in the catalog), so a
bootleg we own never pushes an artist over 100%.

Matching is by normalized title ("OK Computer (Remastered)" == "OK Computer") OR by the
release group id an album item already carries.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING

from shelfcheck.application.services.completeness.base import (
    UNMATCHED_STATUS,
    CompletenessAnalyzer,
    ScanContext,
)
from shelfcheck.application.services.entity_deduplicator import keep_best
from shelfcheck.domain.dtos import CatalogArtist, CatalogReleaseGroup
from shelfcheck.domain.entities import (
    ArtistCompleteness,
    ArtistUnit,
    ArtworkUpdate,
    CompletenessRecord,
    MediaKind,
    MissingRelease,
)
from shelfcheck.domain.exceptions import ExternalServiceError
from shelfcheck.domain.value_objects import (
    AnalysisScope,
    CompletenessKind,
    ReleaseCategory,
    calculate_completeness,
    is_digital_format,
    is_released,
    normalize_release_title,
)

if TYPE_CHECKING:
    from shelfcheck.application.services.external_id_resolver import ExternalIdResolver
    from shelfcheck.domain.ports import ILocalStore
    from shelfcheck.infrastructure.integrations import MusicBrainzClient

logger = logging.getLogger(__name__)

VINYL_FILTER_SETTING = "completeness_filter_vinyl_only"

_CATEGORY_ORDER = {
    ReleaseCategory.ALBUM: 0,
    ReleaseCategory.EP: 1,
    ReleaseCategory.SINGLE: 2,
}


@dataclass
class DiscographyCatalog:
    """Artist details plus the release groups that count towards completeness."""

    artist: CatalogArtist
    release_groups: list[CatalogReleaseGroup] = field(default_factory=list)


def _parse_flag(value: str | None) -> bool | None:
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


class DiscographyAnalyzer(CompletenessAnalyzer[ArtistUnit]):
    """Weighted album/EP/single completeness per artist."""

    kind = CompletenessKind.ARTIST

    def __init__(
        self,
        store: ILocalStore,
        musicbrainz: MusicBrainzClient,
        resolver: ExternalIdResolver,
        *,
        filter_vinyl_only: bool = False,
    ) -> None:
        super().__init__(store)
        self._musicbrainz = musicbrainz
        self._resolver = resolver
        self._default_vinyl_filter = filter_vinyl_only

    # Options win, then the store setting (UI toggle), then the configured default
    async def prepare(self, context: ScanContext) -> ScanContext:
        if context.options.filter_vinyl_only is not None:
            return context
        stored = _parse_flag(await self._store.get_setting(VINYL_FILTER_SETTING))
        vinyl_only = self._default_vinyl_filter if stored is None else stored
        context.options = replace(context.options, filter_vinyl_only=vinyl_only)
        return context

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    async def enumerate_units(self, context: ScanContext) -> list[ArtistUnit]:
        albums = await self._store.get_owned_items(
            self.owned_filter(context.scope, kind=MediaKind.ALBUM)
        )

        groups: dict[str, ArtistUnit] = {}
        for album in albums:
            name = (album.artist_name or "").strip()
            if not name:
                continue
            unit = groups.get(name.casefold())
            if unit is None:
                unit = ArtistUnit(key=name, title=name)
                groups[name.casefold()] = unit
            unit.items.append(album)
            if unit.external_id is None and album.artist_external_id:
                unit.external_id = album.artist_external_id

        # Same album from two providers counts once
        if context.options.should_deduplicate(context.scope):
            for unit in groups.values():
                unit.items = keep_best(
                    unit.items,
                    lambda a: a.external_id
                    or normalize_release_title(a.album_title or a.title)
                    or None,
                )

        logger.info(f"Discography scan: {len(albums)} albums by {len(groups)} artists")
        return list(groups.values())

    async def resolve_external_id(
        self, unit: ArtistUnit, context: ScanContext
    ) -> str | None:
        if unit.external_id:
            return unit.external_id
        return await self._resolver.resolve_artist(unit.title)

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    def _is_counted(self, group: CatalogReleaseGroup, context: ScanContext) -> bool:
        category = group.category
        if category is None:
            return False
        if category is ReleaseCategory.EP and not context.options.include_eps:
            return False
        if category is ReleaseCategory.SINGLE and not context.options.include_singles:
            return False
        # MusicBrainz leaves first-release-date empty for plenty of legit groups
        return is_released(group.first_release_date, context.today, include_undated=True)

    # Hey future me - the vinyl check costs ONE extra request per release group, at 1.5s each
    # on MusicBrainz. That's why it's opt-in. A group only counts as vinyl-only when it has
    # releases and every single one of them is vinyl. If the check itself fails we keep the
    # group - better a false "missing" than silently hiding a real gap.
    async def is_vinyl_only(self, release_group_id: str) -> bool:
        try:
            releases = await self._musicbrainz.get_release_group_releases(release_group_id)
        except ExternalServiceError as e:
            logger.warning(f"Vinyl check failed for {release_group_id}, keeping it: {e}")
            return False
        if not releases:
            return False
        for release in releases:
            if not release.formats:
                return False
            if any(is_digital_format(fmt) for fmt in release.formats):
                return False
        return True

    async def fetch_catalog(
        self, external_id: str, unit: ArtistUnit, context: ScanContext
    ) -> DiscographyCatalog | None:
        artist = await self._musicbrainz.get_artist(external_id)
        if artist is None:
            return None

        groups = [
            group
            for group in await self._musicbrainz.get_release_groups(external_id)
            if self._is_counted(group, context)
        ]

        if context.options.filter_vinyl_only and groups:
            vinyl_flags = await asyncio.gather(
                *(self.is_vinyl_only(group.id) for group in groups)
            )
            excluded = sum(vinyl_flags)
            groups = [g for g, vinyl in zip(groups, vinyl_flags, strict=True) if not vinyl]
            if excluded:
                logger.debug(f"'{unit.title}': excluded {excluded} vinyl-only groups")

        return DiscographyCatalog(artist=artist, release_groups=groups)

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def build_record(
        self,
        unit: ArtistUnit,
        external_id: str,
        catalog: DiscographyCatalog,
        context: ScanContext,
    ) -> ArtistCompleteness:
        owned_ids = {album.external_id for album in unit.items if album.external_id}
        owned_titles = {
            normalize_release_title(album.album_title or album.title)
            for album in unit.items
        }
        owned_titles.discard("")

        totals = dict.fromkeys(ReleaseCategory, 0)
        owned = dict.fromkeys(ReleaseCategory, 0)
        missing: list[MissingRelease] = []

        for group in catalog.release_groups:
            category = group.category
            if category is None:
                continue
            totals[category] += 1
            if group.id in owned_ids or normalize_release_title(group.title) in owned_titles:
                owned[category] += 1
            else:
                missing.append(
                    MissingRelease(
                        title=group.title,
                        external_id=group.id,
                        category=category,
                        year=group.year,
                        cover_art_url=self._musicbrainz.build_cover_art_url(group.id, 250),
                    )
                )

        missing.sort(
            key=lambda m: (_CATEGORY_ORDER[m.category], m.year or 0, m.title.casefold())
        )
        weighted_total = sum(c.weight * n for c, n in totals.items())
        weighted_owned = sum(c.weight * n for c, n in owned.items())
        artist = catalog.artist

        return ArtistCompleteness(
            unit_key=unit.key,
            title=artist.name or unit.title,
            scope=context.scope,
            external_id=external_id,
            total_count=weighted_total,
            owned_count=weighted_owned,
            owned_item_count=unit.owned_count,
            completeness_percentage=calculate_completeness(weighted_owned, weighted_total),
            missing_items=missing,
            total_albums=totals[ReleaseCategory.ALBUM],
            owned_albums=owned[ReleaseCategory.ALBUM],
            total_eps=totals[ReleaseCategory.EP],
            owned_eps=owned[ReleaseCategory.EP],
            total_singles=totals[ReleaseCategory.SINGLE],
            owned_singles=owned[ReleaseCategory.SINGLE],
            country=artist.country,
            artist_type=artist.type,
            active_from=artist.begin,
            active_until=artist.end,
        )

    def build_unmatched_record(
        self, unit: ArtistUnit, scope: AnalysisScope
    ) -> ArtistCompleteness:
        return ArtistCompleteness(
            unit_key=unit.key,
            title=unit.title,
            scope=scope,
            owned_count=unit.owned_count,
            owned_item_count=unit.owned_count,
            completeness_percentage=0,
            status=UNMATCHED_STATUS,
        )

    # MusicBrainz has no artist images, nothing to push
    def artwork_for(self, record: CompletenessRecord, unit: ArtistUnit) -> ArtworkUpdate:
        return ArtworkUpdate()


__all__ = ["VINYL_FILTER_SETTING", "DiscographyAnalyzer", "DiscographyCatalog"]

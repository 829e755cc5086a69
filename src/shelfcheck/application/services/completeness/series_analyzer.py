"""Series completeness: owned episodes vs. TMDB's aired episodes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from shelfcheck.application.services.completeness.base import (
    UNMATCHED_STATUS,
    CompletenessAnalyzer,
    ScanContext,
)
from shelfcheck.domain.dtos import CatalogEpisode, CatalogSeason, CatalogShow
from shelfcheck.domain.entities import (
    MediaKind,
    MissingEpisode,
    SeriesCompleteness,
    SeriesUnit,
)
from shelfcheck.domain.exceptions import ExternalServiceError
from shelfcheck.domain.value_objects import (
    AnalysisScope,
    CompletenessKind,
    calculate_completeness,
    is_released,
)

if TYPE_CHECKING:
    from shelfcheck.application.services.entity_deduplicator import EntityDeduplicator
    from shelfcheck.application.services.external_id_resolver import ExternalIdResolver
    from shelfcheck.domain.ports import ILocalStore
    from shelfcheck.infrastructure.integrations import TMDBClient

logger = logging.getLogger(__name__)

UNKNOWN_STATUS = "Unknown"


@dataclass
class ShowCatalog:
    """Show details plus the fetched seasons (regular seasons only)."""

    show: CatalogShow
    seasons: dict[int, CatalogSeason] = field(default_factory=dict)


class SeriesAnalyzer(CompletenessAnalyzer[SeriesUnit]):
    """Episode completeness per TV series."""

    kind = CompletenessKind.SERIES

    def __init__(
        self,
        store: ILocalStore,
        tmdb: TMDBClient,
        resolver: ExternalIdResolver,
        deduplicator: EntityDeduplicator,
    ) -> None:
        super().__init__(store)
        self._tmdb = tmdb
        self._resolver = resolver
        self._deduplicator = deduplicator

    async def ensure_ready(self) -> None:
        await self._tmdb.ensure_configured()

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    async def enumerate_units(self, context: ScanContext) -> list[SeriesUnit]:
        await context.report_scanning(0, 0, "Scanning episodes")
        episodes = await self._store.get_owned_items(
            self.owned_filter(context.scope, kind=MediaKind.EPISODE)
        )

        if context.options.should_deduplicate(context.scope):
            units = await self._deduplicator.deduplicate_series(episodes)
        else:
            units = self._deduplicator.group_series(episodes)

        logger.info(f"Series scan: {len(episodes)} episodes in {len(units)} series")
        return units

    # Hey future me - with dedup on, a unit can hold episodes filed under OTHER titles by other
    # providers (merged by catalog id). Filtering by title here would rebuild the unit from one
    # provider only and overwrite the merged record with fewer owned episodes.
    # The whole scope is grouped exactly like enumerate_units() does.
    async def find_unit(self, unit_key: str, context: ScanContext) -> SeriesUnit | None:
        if context.options.should_deduplicate(context.scope):
            episodes = await self._store.get_owned_items(
                self.owned_filter(context.scope, kind=MediaKind.EPISODE)
            )
            units = await self._deduplicator.deduplicate_series(episodes)
        else:
            episodes = await self._store.get_owned_items(
                self.owned_filter(
                    context.scope, kind=MediaKind.EPISODE, series_title=unit_key
                )
            )
            units = self._deduplicator.group_series(episodes)
        return next((unit for unit in units if unit.key == unit_key), None)

    async def resolve_external_id(
        self, unit: SeriesUnit, context: ScanContext
    ) -> str | None:
        if unit.external_id:
            return unit.external_id
        return await self._resolver.resolve_series(
            unit.title, unit.year, None, unit.xref_id
        )

    # -------------------------------------------------------------------------
    # Catalog
    # -------------------------------------------------------------------------

    # Hey future me - seasons are fetched in chunks of MAX_SEASONS_PER_CALL via
    # append_to_response. If a chunk blows up (TMDB sometimes 500s on huge appends) we fall
    # back to one call per season for THAT chunk only. Season 0 (specials) and seasons that
    # haven't started airing are never requested.
    async def fetch_catalog(
        self, external_id: str, unit: SeriesUnit, context: ScanContext
    ) -> ShowCatalog | None:
        show = await self._tmdb.get_tv_show(external_id)
        if show is None:
            return None

        wanted = [
            season.season_number
            for season in show.seasons
            if season.season_number > 0
            and is_released(season.air_date, context.today, include_undated=True)
        ]

        catalog = ShowCatalog(show=show)
        step = self._tmdb.MAX_SEASONS_PER_CALL
        for start in range(0, len(wanted), step):
            chunk = wanted[start : start + step]
            try:
                _, seasons = await self._tmdb.get_seasons_batch(external_id, chunk)
            except ExternalServiceError as e:
                logger.warning(
                    f"Season batch {chunk[0]}-{chunk[-1]} failed for '{unit.title}', "
                    f"fetching seasons one by one: {e}"
                )
                seasons = {}
                for number in chunk:
                    season = await self._tmdb.get_season(external_id, number)
                    if season is not None:
                        seasons[number] = season
            catalog.seasons.update(seasons)

        return catalog

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    def aired_episodes(
        self, catalog: ShowCatalog, context: ScanContext
    ) -> list[CatalogEpisode]:
        """Regular-season episodes with an air date on or before today."""
        return [
            episode
            for number in sorted(catalog.seasons)
            if number > 0
            for episode in catalog.seasons[number].episodes
            if is_released(episode.air_date, context.today)
        ]

    def build_record(
        self,
        unit: SeriesUnit,
        external_id: str,
        catalog: ShowCatalog,
        context: ScanContext,
    ) -> SeriesCompleteness:
        aired = self.aired_episodes(catalog, context)
        owned_keys = {
            ep.episode_key for ep in unit.regular_episodes if ep.episode_key is not None
        }

        missing = [
            MissingEpisode(
                title=episode.name,
                season_number=episode.season_number,
                episode_number=episode.episode_number,
                air_date=episode.air_date,
            )
            for episode in aired
            if episode.key not in owned_keys
        ]

        aired_seasons = sorted({episode.season_number for episode in aired})
        owned_seasons = {
            episode.season_number for episode in aired if episode.key in owned_keys
        }
        missing_seasons = [n for n in aired_seasons if n not in owned_seasons]

        # Nothing aired yet (or only specials) is 0%, not complete
        total = len(aired)
        owned = min(unit.owned_count, total)
        show = catalog.show

        return SeriesCompleteness(
            unit_key=unit.key,
            title=unit.title,
            scope=context.scope,
            external_id=external_id,
            total_count=total,
            owned_count=owned,
            owned_item_count=unit.owned_count,
            completeness_percentage=calculate_completeness(owned, total, empty=0),
            missing_items=missing,
            poster_url=self._tmdb.build_image_url(show.poster_path),
            backdrop_url=self._tmdb.build_image_url(show.backdrop_path, "original"),
            status=show.status or UNKNOWN_STATUS,
            total_seasons=len(aired_seasons),
            owned_seasons=len(owned_seasons),
            missing_seasons=missing_seasons,
        )

    def build_unmatched_record(
        self, unit: SeriesUnit, scope: AnalysisScope
    ) -> SeriesCompleteness:
        return SeriesCompleteness(
            unit_key=unit.key,
            title=unit.title,
            scope=scope,
            owned_count=unit.owned_count,
            owned_item_count=unit.owned_count,
            completeness_percentage=0,
            status=UNMATCHED_STATUS,
        )


__all__ = ["SeriesAnalyzer", "ShowCatalog"]

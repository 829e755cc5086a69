"""Collection completeness: owned movies vs. the TMDB collection they belong to."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import TYPE_CHECKING

from shelfcheck.application.services.completeness.base import (
    UNMATCHED_STATUS,
    CompletenessAnalyzer,
    ScanContext,
)
from shelfcheck.domain.dtos import CatalogCollection, CatalogMovie
from shelfcheck.domain.entities import (
    CollectionCompleteness,
    CollectionUnit,
    MediaKind,
    MissingMovie,
    OwnedItem,
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
    from shelfcheck.domain.ports import ILocalStore
    from shelfcheck.infrastructure.integrations import TMDBClient

logger = logging.getLogger(__name__)


class CollectionAnalyzer(CompletenessAnalyzer[CollectionUnit]):
    """Movie collection (franchise) completeness.

    Collections aren't stored anywhere locally - they are DISCOVERED: every owned movie is
    matched to TMDB, its details tell us which collection it belongs to, and movies sharing
    a collection id form one unit. That discovery is the SCANNING phase and it's the
    expensive part (one movie-details call per uncached movie), so it runs in batches and
    honours cancellation between batches.
    """

    kind = CompletenessKind.COLLECTION

    def __init__(
        self,
        store: ILocalStore,
        tmdb: TMDBClient,
        deduplicator: EntityDeduplicator,
        *,
        scan_batch_size: int = 10,
    ) -> None:
        super().__init__(store)
        self._tmdb = tmdb
        self._deduplicator = deduplicator
        self._scan_batch_size = scan_batch_size

    async def ensure_ready(self) -> None:
        await self._tmdb.ensure_configured()

    # -------------------------------------------------------------------------
    # Units
    # -------------------------------------------------------------------------

    async def _movie_details(
        self, movie: OwnedItem, stored_id: str | None
    ) -> CatalogMovie | None:
        """TMDB details of an owned movie (resolving and caching its id first)."""
        external_id = await self._deduplicator.resolve_movie_id(movie)
        if external_id is None:
            return None
        if external_id != stored_id:
            await self.write_back_external_id(movie.id, external_id)
        return await self._tmdb.get_movie(external_id)

    async def enumerate_units(self, context: ScanContext) -> list[CollectionUnit]:
        movies = await self._store.get_owned_items(
            self.owned_filter(context.scope, kind=MediaKind.MOVIE)
        )
        stored_ids = {movie.id: movie.external_id for movie in movies}
        if context.options.should_deduplicate(context.scope):
            movies = await self._deduplicator.deduplicate_movies(movies)

        units: dict[str, CollectionUnit] = {}
        total = len(movies)

        for start in range(0, total, self._scan_batch_size):
            if context.token.is_cancelled:
                logger.info("Collection scan cancelled")
                break

            batch = movies[start : start + self._scan_batch_size]
            await context.report_scanning(start, total, batch[0].title)

            details = await asyncio.gather(
                *(self._movie_details(movie, stored_ids[movie.id]) for movie in batch),
                return_exceptions=True,
            )
            for movie, detail in zip(batch, details, strict=True):
                if isinstance(detail, BaseException):
                    if not isinstance(detail, ExternalServiceError):
                        raise detail
                    logger.warning(f"Collection scan: skipping '{movie.title}': {detail}")
                    continue
                if detail is None or detail.collection_id is None:
                    continue

                unit = units.get(detail.collection_id)
                if unit is None:
                    unit = CollectionUnit(
                        key=detail.collection_id,
                        title=detail.collection_name or detail.collection_id,
                        external_id=detail.collection_id,
                    )
                    units[detail.collection_id] = unit
                if movie.external_id != detail.id:
                    movie = replace(movie, external_id=detail.id)
                unit.items.append(movie)

        logger.info(f"Collection scan: {total} movies in {len(units)} collections")
        return list(units.values())

    async def resolve_external_id(
        self, unit: CollectionUnit, context: ScanContext
    ) -> str | None:
        return unit.external_id

    async def fetch_catalog(
        self, external_id: str, unit: CollectionUnit, context: ScanContext
    ) -> CatalogCollection | None:
        return await self._tmdb.get_collection(external_id)

    # -------------------------------------------------------------------------
    # Records
    # -------------------------------------------------------------------------

    # Listen up, a "collection" with only one RELEASED movie isn't a collection yet
    # (announced sequel, or TMDB grouping a single film) - no record at all, returning None.
    # Undated parts are treated as unreleased.
    def build_record(
        self,
        unit: CollectionUnit,
        external_id: str,
        catalog: CatalogCollection,
        context: ScanContext,
    ) -> CollectionCompleteness | None:
        released = [
            part for part in catalog.parts if is_released(part.release_date, context.today)
        ]
        if len(released) <= 1:
            return None

        owned_ids = set(unit.owned_external_ids)
        missing = [
            MissingMovie(
                title=part.title,
                external_id=part.id,
                year=part.year,
                poster_url=self._tmdb.build_image_url(part.poster_path, "w300"),
            )
            for part in sorted(released, key=lambda p: p.release_date or "")
            if part.id not in owned_ids
        ]

        total = len(released)
        owned = sum(1 for part in released if part.id in owned_ids)

        return CollectionCompleteness(
            unit_key=unit.key,
            title=catalog.name or unit.title,
            scope=context.scope,
            external_id=external_id,
            total_count=total,
            owned_count=owned,
            owned_item_count=unit.owned_count,
            completeness_percentage=calculate_completeness(owned, total),
            missing_items=missing,
            poster_url=self._tmdb.build_image_url(catalog.poster_path),
            backdrop_url=self._tmdb.build_image_url(catalog.backdrop_path, "original"),
            owned_external_ids=sorted(owned_ids),
        )

    def build_unmatched_record(
        self, unit: CollectionUnit, scope: AnalysisScope
    ) -> CollectionCompleteness:
        return CollectionCompleteness(
            unit_key=unit.key,
            title=unit.title,
            scope=scope,
            owned_count=unit.owned_count,
            owned_item_count=unit.owned_count,
            completeness_percentage=0,
            status=UNMATCHED_STATUS,
            owned_external_ids=unit.owned_external_ids,
        )


__all__ = ["CollectionAnalyzer"]

"""Composition root: builds clients, analyzers, runners and services.

Hey future me - there are NO module-level singletons in this codebase. Everything is built
here, once, and handed down explicitly. One TMDB client and one MusicBrainz client are shared
by every domain: ONE rate limiter and ONE cache per catalog.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from shelfcheck.application.cache import InMemoryCache
from shelfcheck.application.services.completeness import (
    AlbumTrackAnalyzer,
    CollectionAnalyzer,
    DiscographyAnalyzer,
    SeriesAnalyzer,
)
from shelfcheck.application.services.completeness_service import CompletenessService
from shelfcheck.application.services.entity_deduplicator import EntityDeduplicator
from shelfcheck.application.services.external_id_resolver import ExternalIdResolver
from shelfcheck.application.workers.completeness_job_runner import (
    AnalysisStage,
    CompletenessJobRunner,
)
from shelfcheck.config import Settings, get_settings
from shelfcheck.domain.ports import ILocalStore
from shelfcheck.domain.value_objects import AnalysisOptions, AnalysisPhase
from shelfcheck.infrastructure.integrations import MusicBrainzClient, TMDBClient
from shelfcheck.infrastructure.observability import configure_logging
from shelfcheck.infrastructure.persistence import Database, SqlAlchemyLocalStore

logger = logging.getLogger(__name__)

TMDB_API_KEY_SETTING = "tmdb_api_key"


@dataclass
class ServiceContainer:
    """Everything the app needs to run completeness analysis."""

    settings: Settings
    store: ILocalStore
    tmdb: TMDBClient
    musicbrainz: MusicBrainzClient
    resolver: ExternalIdResolver
    deduplicator: EntityDeduplicator
    series: CompletenessService
    collections: CompletenessService
    discography: CompletenessService
    albums: CompletenessService

    @classmethod
    def create(cls, settings: Settings, store: ILocalStore) -> ServiceContainer:
        """Wire up all services for one store."""

        async def load_tmdb_key() -> str | None:
            return await store.get_setting(TMDB_API_KEY_SETTING)

        tmdb = TMDBClient(
            settings.tmdb,
            cache=InMemoryCache(default_ttl_seconds=settings.tmdb.cache_ttl_seconds),
            api_key_loader=load_tmdb_key,
        )
        musicbrainz = MusicBrainzClient(
            settings.musicbrainz,
            cache=InMemoryCache(default_ttl_seconds=settings.musicbrainz.cache_ttl_seconds),
        )
        resolver = ExternalIdResolver(tmdb=tmdb, musicbrainz=musicbrainz)
        deduplicator = EntityDeduplicator(resolver)

        analysis = settings.analysis
        default_options = AnalysisOptions(reanalyze_after_days=analysis.reanalyze_after_days)

        def runner(name: str, *stages: AnalysisStage) -> CompletenessJobRunner:
            return CompletenessJobRunner(
                name,
                store,
                list(stages),
                checkpoint_interval=analysis.checkpoint_interval,
                default_options=default_options,
            )

        series_analyzer = SeriesAnalyzer(store, tmdb, resolver, deduplicator)
        collection_analyzer = CollectionAnalyzer(
            store, tmdb, deduplicator, scan_batch_size=analysis.collection_batch_size
        )
        discography_analyzer = DiscographyAnalyzer(
            store, musicbrainz, resolver, filter_vinyl_only=analysis.filter_vinyl_only
        )
        album_analyzer = AlbumTrackAnalyzer(store, musicbrainz)

        artists_stage = AnalysisStage(
            AnalysisPhase.ARTISTS, discography_analyzer, analysis.music_batch_size
        )
        albums_stage = AnalysisStage(
            AnalysisPhase.ALBUMS, album_analyzer, analysis.music_batch_size
        )

        series = CompletenessService(
            "series",
            series_analyzer,
            runner(
                "series",
                AnalysisStage(
                    AnalysisPhase.ANALYZING, series_analyzer, analysis.series_batch_size
                ),
            ),
            resolver=resolver,
        )
        collections = CompletenessService(
            "collections",
            collection_analyzer,
            runner(
                "collections",
                AnalysisStage(
                    AnalysisPhase.FETCHING,
                    collection_analyzer,
                    analysis.collection_batch_size,
                ),
            ),
            resolver=resolver,
        )
        discography = CompletenessService(
            "discography",
            discography_analyzer,
            runner("discography", artists_stage, albums_stage),
            resolver=resolver,
        )
        albums = CompletenessService(
            "albums",
            album_analyzer,
            runner("albums", albums_stage),
            resolver=resolver,
        )

        logger.info("Completeness services ready")
        return cls(
            settings=settings,
            store=store,
            tmdb=tmdb,
            musicbrainz=musicbrainz,
            resolver=resolver,
            deduplicator=deduplicator,
            series=series,
            collections=collections,
            discography=discography,
            albums=albums,
        )

    @property
    def services(self) -> dict[str, CompletenessService]:
        return {
            "series": self.series,
            "collections": self.collections,
            "discography": self.discography,
            "albums": self.albums,
        }

    def cancel_all(self) -> int:
        """Cancel every running job. Returns how many were running."""
        return sum(1 for service in self.services.values() if service.cancel())

    async def aclose(self) -> None:
        """Close the HTTP clients."""
        await self.tmdb.close()
        await self.musicbrainz.close()
        logger.debug("Catalog clients closed")


# Yo, this is the ONE entry point for a host process (web app, CLI, scheduler).
# Shutdown order: cancel jobs, close HTTP clients, dispose the engine.
@asynccontextmanager
async def lifespan(settings: Settings | None = None) -> AsyncIterator[ServiceContainer]:
    """Start the engine against the configured database; tear it down on exit."""
    settings = settings or get_settings()
    configure_logging(
        log_level=settings.logging.level,
        json_format=settings.logging.json_format,
        app_name=settings.app_name,
    )
    logger.info(f"Starting {settings.app_name}")

    db = Database(settings.database)
    await db.create_tables()
    container = ServiceContainer.create(settings, SqlAlchemyLocalStore(db))
    try:
        yield container
    finally:
        cancelled = container.cancel_all()
        if cancelled:
            logger.info(f"Cancelled {cancelled} running completeness job(s) on shutdown")
        await container.aclose()
        await db.close()
        logger.info(f"{settings.app_name} stopped")


__all__ = ["TMDB_API_KEY_SETTING", "ServiceContainer", "lifespan"]

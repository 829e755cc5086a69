"""Shared fixtures for the ShelfCheck test suite."""

from collections.abc import AsyncIterator

import pytest

from fakes import TODAY, FakeClock, FakeLocalStore
from shelfcheck.application.services.completeness.base import ScanContext
from shelfcheck.application.services.entity_deduplicator import EntityDeduplicator
from shelfcheck.application.services.external_id_resolver import ExternalIdResolver
from shelfcheck.config.settings import MusicBrainzSettings, TMDBSettings
from shelfcheck.domain.value_objects import AnalysisOptions
from shelfcheck.infrastructure.integrations import MusicBrainzClient, TMDBClient
from shelfcheck.infrastructure.rate_limiter import (
    FixedDelayRateLimiter,
    RateLimiterConfig,
    SlidingWindowRateLimiter,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeLocalStore:
    return FakeLocalStore()


@pytest.fixture
def tmdb_settings() -> TMDBSettings:
    return TMDBSettings(api_key="test-key")


@pytest.fixture
def musicbrainz_settings() -> MusicBrainzSettings:
    return MusicBrainzSettings(
        app_name="TestApp",
        app_version="1.0.0",
        contact="test@example.com",
    )


@pytest.fixture
async def tmdb_client(
    tmdb_settings: TMDBSettings, clock: FakeClock
) -> AsyncIterator[TMDBClient]:
    client = TMDBClient(
        tmdb_settings,
        rate_limiter=SlidingWindowRateLimiter(
            config=RateLimiterConfig(max_requests=40, window_seconds=1.0),
            name="tmdb",
            clock=clock,
            sleep=clock.sleep,
        ),
    )
    yield client
    await client.close()


@pytest.fixture
async def musicbrainz_client(
    musicbrainz_settings: MusicBrainzSettings, clock: FakeClock
) -> AsyncIterator[MusicBrainzClient]:
    client = MusicBrainzClient(
        musicbrainz_settings,
        rate_limiter=FixedDelayRateLimiter(
            config=RateLimiterConfig(min_interval_seconds=1.5),
            name="musicbrainz",
            clock=clock,
            sleep=clock.sleep,
        ),
        retry_sleep=clock.sleep,
    )
    yield client
    await client.close()


@pytest.fixture
def resolver(
    tmdb_client: TMDBClient, musicbrainz_client: MusicBrainzClient
) -> ExternalIdResolver:
    return ExternalIdResolver(tmdb=tmdb_client, musicbrainz=musicbrainz_client)


@pytest.fixture
def deduplicator(resolver: ExternalIdResolver) -> EntityDeduplicator:
    return EntityDeduplicator(resolver)


@pytest.fixture
def context() -> ScanContext:
    """Scan context pinned to a fixed "today" without skip-if-fresh."""
    return ScanContext(options=AnalysisOptions(skip_recently_analyzed=False), today=TODAY)

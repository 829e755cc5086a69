"""Tests for CompletenessService."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import FakeLocalStore, make_album, make_track
from shelfcheck.application.services.completeness import AlbumTrackAnalyzer
from shelfcheck.application.services.completeness_service import CompletenessService
from shelfcheck.application.services.external_id_resolver import ExternalIdResolver
from shelfcheck.application.workers.completeness_job_runner import (
    AnalysisStage,
    CompletenessJobRunner,
)
from shelfcheck.domain.dtos import CatalogRelease, CatalogTrack
from shelfcheck.domain.entities import AlbumCompleteness
from shelfcheck.domain.exceptions import EntityNotFoundException, ValidationError
from shelfcheck.domain.value_objects import (
    AnalysisOptions,
    AnalysisPhase,
    AnalysisScope,
    CompletenessKind,
)
from shelfcheck.infrastructure.integrations import MusicBrainzClient

RELEASE = CatalogRelease(
    id="rel-1",
    title="Nevermind",
    tracks=[
        CatalogTrack(id="t1", title="Smells Like Teen Spirit", position=1),
        CatalogTrack(id="t2", title="In Bloom", position=2),
    ],
)


def album_record(
    key: str, title: str, percentage: int, matched: bool = True
) -> AlbumCompleteness:
    return AlbumCompleteness(
        unit_key=key,
        title=title,
        external_id=f"rg-{key}" if matched else None,
        total_count=10,
        owned_count=percentage // 10,
        completeness_percentage=percentage,
        missing_items=[],
    )


@pytest.fixture
def service(
    store: FakeLocalStore,
    musicbrainz_client: MusicBrainzClient,
    resolver: ExternalIdResolver,
    mocker: MagicMock,
) -> CompletenessService:
    mocker.patch.object(
        musicbrainz_client, "get_release_tracks", AsyncMock(return_value=RELEASE)
    )
    mocker.patch.object(musicbrainz_client, "get_cover_art_url", AsyncMock(return_value=None))
    analyzer = AlbumTrackAnalyzer(store, musicbrainz_client)
    runner = CompletenessJobRunner(
        "albums",
        store,
        [AnalysisStage(AnalysisPhase.ALBUMS, analyzer)],
        default_options=AnalysisOptions(skip_recently_analyzed=False),
    )
    return CompletenessService("albums", analyzer, runner, resolver=resolver)


class TestCompletenessServiceAnalysis:
    """analyze_all / analyze_one / fix_match."""

    async def test_analyze_all_runs_the_job(
        self, service: CompletenessService, store: FakeLocalStore
    ) -> None:
        store.items = [
            make_album("a1", "Nirvana", "Nevermind", external_id="rg-1"),
            make_album("a2", "Nirvana", "Bleach", external_id="rg-2"),
        ]

        result = await service.analyze_all()

        assert result.completed
        assert result.analyzed == 2
        assert len(await service.get_records()) == 2
        assert service.get_status()["state"] == "completed"
        assert service.get_status()["kind"] == "album"

    async def test_analyze_one(
        self, service: CompletenessService, store: FakeLocalStore
    ) -> None:
        store.items = [
            make_album("a1", "Nirvana", "Nevermind", external_id="rg-1"),
            make_track("t1", "a1", "In Bloom", 2),
        ]

        record = await service.analyze_one("a1")

        assert record is not None
        assert record.completeness_percentage == 50
        assert store.events == ["upsert:a1"]

    async def test_analyze_one_unknown_unit(self, service: CompletenessService) -> None:
        assert await service.analyze_one("nope") is None

    async def test_fix_match_pins_id_and_reanalyzes(
        self,
        service: CompletenessService,
        store: FakeLocalStore,
        musicbrainz_client: MusicBrainzClient,
    ) -> None:
        store.items = [make_album("a1", "Nirvana", "Nevermind", external_id="wrong")]

        record = await service.fix_match("a1", "  rg-1 ")

        assert record.external_id == "rg-1"
        assert store.settings["completeness_manual_match:album:a1"] == "rg-1"
        musicbrainz_client.get_release_tracks.assert_awaited_once_with("rg-1")

    async def test_fix_match_rejects_empty_id(self, service: CompletenessService) -> None:
        with pytest.raises(ValidationError):
            await service.fix_match("a1", "   ")

    async def test_fix_match_unknown_unit(self, service: CompletenessService) -> None:
        with pytest.raises(EntityNotFoundException):
            await service.fix_match("nope", "rg-1")


class TestCompletenessServiceRecords:
    """Record getters (no catalog access)."""

    @pytest.fixture
    async def seeded(
        self, service: CompletenessService, store: FakeLocalStore
    ) -> CompletenessService:
        for record in (
            album_record("a", "Bleach", 80),
            album_record("b", "Nevermind", 100),
            album_record("c", "In Utero", 30),
            album_record("d", "Unknown Demo", 0, matched=False),
            album_record("e", "Incesticide", 30),
        ):
            await store.upsert_completeness_record(record)
        return service

    async def test_get_incomplete_least_complete_first(
        self, seeded: CompletenessService
    ) -> None:
        titles = [record.title for record in await seeded.get_incomplete()]

        assert titles == ["In Utero", "Incesticide", "Bleach"]

    async def test_get_stats(self, seeded: CompletenessService) -> None:
        stats = await seeded.get_stats()

        assert stats.total == 5
        assert stats.complete == 1
        assert stats.incomplete == 3
        assert stats.unmatched == 1
        assert stats.average_completeness == 60.0

    async def test_get_and_delete_record(self, seeded: CompletenessService) -> None:
        assert (await seeded.get_record("b")).title == "Nevermind"
        assert await seeded.get_record("b", AnalysisScope(source_id="plex-1")) is None

        assert await seeded.delete_record("b") is True
        assert await seeded.delete_record("b") is False
        assert await seeded.get_record("b") is None

    async def test_kind(self, service: CompletenessService) -> None:
        assert service.kind is CompletenessKind.ALBUM
        assert service.cancel() is False

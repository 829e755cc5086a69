"""Tests for AlbumTrackAnalyzer."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from fakes import FakeLocalStore, make_album, make_track
from shelfcheck.application.services.completeness import AlbumTrackAnalyzer
from shelfcheck.application.services.completeness.album_track_analyzer import (
    pick_release_group,
)
from shelfcheck.application.services.completeness.base import ScanContext
from shelfcheck.domain.dtos import CatalogRelease, CatalogSearchResult, CatalogTrack
from shelfcheck.domain.value_objects import CompletenessKind, ProviderType
from shelfcheck.infrastructure.integrations import MusicBrainzClient

RELEASE = CatalogRelease(
    id="rel-1",
    title="Nevermind",
    status="Official",
    tracks=[
        CatalogTrack(id="t1", title="Smells Like Teen Spirit", position=1),
        CatalogTrack(id="t2", title="In Bloom", position=2),
        CatalogTrack(id="t3", title="Come as You Are", position=3, duration_ms=219000),
        CatalogTrack(id="t4", title="Breed", position=4),
    ],
)
COVER = "https://coverartarchive.org/release-group/rg-1/front-500"


@pytest.fixture
def analyzer(
    store: FakeLocalStore, musicbrainz_client: MusicBrainzClient
) -> AlbumTrackAnalyzer:
    return AlbumTrackAnalyzer(store, musicbrainz_client)


@pytest.fixture
def release(mocker: MagicMock, musicbrainz_client: MusicBrainzClient) -> AsyncMock:
    mocker.patch.object(
        musicbrainz_client, "get_cover_art_url", AsyncMock(return_value=COVER)
    )
    return mocker.patch.object(
        musicbrainz_client, "get_release_tracks", AsyncMock(return_value=RELEASE)
    )


class TestPickReleaseGroup:
    """Search hit selection."""

    def test_close_title_beats_ranking(self) -> None:
        results = [
            CatalogSearchResult(id="deluxe", title="Nevermind (Super Deluxe Box)"),
            CatalogSearchResult(id="plain", title="Nevermind"),
        ]
        assert pick_release_group(results, "Nevermind (Remastered)").id == "plain"

    def test_falls_back_to_top_hit(self) -> None:
        results = [
            CatalogSearchResult(id="a", title="Something Else"),
            CatalogSearchResult(id="b", title="Entirely Different"),
        ]
        assert pick_release_group(results, "Nevermind").id == "a"
        assert pick_release_group([], "Nevermind") is None


class TestAlbumTracks:
    """Track diffing per album."""

    async def test_missing_tracks(
        self,
        analyzer: AlbumTrackAnalyzer,
        store: FakeLocalStore,
        release: AsyncMock,
        context: ScanContext,
    ) -> None:
        store.items = [
            make_album("alb", "Nirvana", "Nevermind", external_id="rg-1"),
            make_track("tr1", "alb", "Smells Like Teen Spirit", 1),
            make_track("tr3", "alb", "come as you are!", 3),
            make_track("other", "another-album", "Breed", 4),
        ]

        [unit] = await analyzer.enumerate_units(context)
        record = await analyzer.analyze_unit(unit, context)

        release.assert_awaited_once_with("rg-1")
        assert record.total_count == 4
        assert record.owned_count == 2
        assert record.completeness_percentage == 50
        assert [(m.track_number, m.title) for m in record.missing_items] == [
            (2, "In Bloom"),
            (4, "Breed"),
        ]
        assert record.release_id == "rel-1"
        assert record.artist_name == "Nirvana"
        assert record.poster_url == COVER
        assert store.record(CompletenessKind.ALBUM, "alb") is record

    async def test_search_result_is_written_back(
        self,
        analyzer: AlbumTrackAnalyzer,
        store: FakeLocalStore,
        musicbrainz_client: MusicBrainzClient,
        release: AsyncMock,
        context: ScanContext,
        mocker: MagicMock,
    ) -> None:
        store.items = [make_album("alb", "Nirvana", "Nevermind (Deluxe Edition)")]
        search = mocker.patch.object(
            musicbrainz_client,
            "search_release_group",
            AsyncMock(return_value=[CatalogSearchResult(id="rg-1", title="Nevermind")]),
        )

        [unit] = await analyzer.enumerate_units(context)
        record = await analyzer.analyze_unit(unit, context)

        search.assert_awaited_once_with("Nirvana", "Nevermind")
        assert store.external_id_updates == [("alb", "rg-1")]
        assert record.external_id == "rg-1"
        assert record.completeness_percentage == 0

    async def test_no_search_hit_is_unmatched(
        self,
        analyzer: AlbumTrackAnalyzer,
        store: FakeLocalStore,
        musicbrainz_client: MusicBrainzClient,
        context: ScanContext,
        mocker: MagicMock,
    ) -> None:
        store.items = [
            make_album("alb", "Garage Band", "Demo Tape"),
            make_track("tr1", "alb", "Song", 1),
        ]
        mocker.patch.object(
            musicbrainz_client, "search_release_group", AsyncMock(return_value=[])
        )

        [unit] = await analyzer.enumerate_units(context)
        record = await analyzer.analyze_unit(unit, context)

        assert record.status == "unmatched"
        assert record.owned_count == 1
        assert store.external_id_updates == []

    async def test_cover_only_fetched_for_albums_without_artwork(
        self,
        analyzer: AlbumTrackAnalyzer,
        store: FakeLocalStore,
        musicbrainz_client: MusicBrainzClient,
        release: AsyncMock,
        context: ScanContext,
    ) -> None:
        store.items = [
            make_album("alb", "Nirvana", "Nevermind", external_id="rg-1", has_artwork=True)
        ]

        [unit] = await analyzer.enumerate_units(context)
        record = await analyzer.analyze_unit(unit, context)

        musicbrainz_client.get_cover_art_url.assert_not_awaited()
        assert record.poster_url is None

    async def test_cover_pushed_to_local_album(
        self,
        analyzer: AlbumTrackAnalyzer,
        store: FakeLocalStore,
        release: AsyncMock,
        context: ScanContext,
    ) -> None:
        store.sources = {"local-1": ProviderType.LOCAL}
        store.items = [
            make_album("alb", "Nirvana", "Nevermind", external_id="rg-1"),
            make_track("tr1", "alb", "Breed", 4),
        ]

        [unit] = await analyzer.enumerate_units(context)
        await analyzer.analyze_unit(unit, context)

        assert [item_id for item_id, _ in store.artwork_updates] == ["alb"]
        assert store.artwork_updates[0][1].poster_url == COVER


class TestAlbumManualMatch:
    """fix_match support for albums."""

    async def test_manual_match_writes_album_id(
        self,
        analyzer: AlbumTrackAnalyzer,
        store: FakeLocalStore,
        release: AsyncMock,
        context: ScanContext,
    ) -> None:
        store.items = [make_album("alb", "Nirvana", "Nevermind", external_id="wrong")]

        unit = await analyzer.find_unit("alb", context)
        assert unit is not None
        await analyzer.apply_manual_match(unit, "rg-1")
        await analyzer.analyze_unit(unit, context)

        assert store.settings["completeness_manual_match:album:alb"] == "rg-1"
        assert store.external_id_updates == [("alb", "rg-1")]
        release.assert_awaited_once_with("rg-1")

    async def test_find_unknown_album(
        self, analyzer: AlbumTrackAnalyzer, context: ScanContext
    ) -> None:
        assert await analyzer.find_unit("missing", context) is None

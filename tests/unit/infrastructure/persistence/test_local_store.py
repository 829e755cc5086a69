"""Tests for SqlAlchemyLocalStore against a temporary SQLite database."""

from collections.abc import AsyncIterator
from pathlib import Path

import pytest

from fakes import make_album, make_episode, make_movie, make_track
from shelfcheck.config import DatabaseSettings
from shelfcheck.domain.entities import (
    ArtistCompleteness,
    ArtworkUpdate,
    MediaKind,
    MissingEpisode,
    MissingRelease,
    OwnedItemFilter,
    SeriesCompleteness,
)
from shelfcheck.domain.exceptions import EntityNotFoundException, InvalidStateException
from shelfcheck.domain.value_objects import (
    AnalysisScope,
    CompletenessKind,
    ProviderType,
    ReleaseCategory,
)
from shelfcheck.infrastructure.persistence import Database, SqlAlchemyLocalStore


@pytest.fixture
async def database(tmp_path: Path) -> AsyncIterator[Database]:
    db = Database(DatabaseSettings(url=f"sqlite+aiosqlite:///{tmp_path}/test.db"))
    await db.create_tables()
    yield db
    await db.close()


@pytest.fixture
def sql_store(database: Database) -> SqlAlchemyLocalStore:
    return SqlAlchemyLocalStore(database)


def series_record(
    key: str = "Lost", scope: AnalysisScope | None = None
) -> SeriesCompleteness:
    return SeriesCompleteness(
        unit_key=key,
        title=key,
        scope=scope or AnalysisScope(),
        external_id="4607",
        total_count=20,
        owned_count=2,
        owned_item_count=2,
        completeness_percentage=10,
        missing_items=[
            MissingEpisode(title="Pilot (2)", season_number=1, episode_number=2)
        ],
        status="Ended",
        total_seasons=2,
        owned_seasons=1,
        missing_seasons=[2],
    )


class TestOwnedItems:
    """Owned item reads, filters and write-backs."""

    async def test_round_trip_and_filters(self, sql_store: SqlAlchemyLocalStore) -> None:
        await sql_store.save_owned_items(
            [
                make_episode("e1", "Lost", 1, 1, quality_proxy=4000.0),
                make_episode("e2", "Lost", 1, 2, source_id="jellyfin-1", library_id="tv"),
                make_movie("m1", "Alien", year=1979, xref_id="tt0078748"),
                make_album("a1", "Nirvana", "Nevermind"),
                make_track("t1", "a1", "Breed", 4),
            ]
        )

        episodes = await sql_store.get_owned_items(OwnedItemFilter(kind=MediaKind.EPISODE))
        assert [ep.id for ep in episodes] == ["e1", "e2"]
        assert episodes[0].episode_key == (1, 1)
        assert episodes[0].quality_proxy == 4000.0

        scoped = await sql_store.get_owned_items(
            OwnedItemFilter(kind=MediaKind.EPISODE, source_id="jellyfin-1", library_id="tv")
        )
        assert [ep.id for ep in scoped] == ["e2"]

        [movie] = await sql_store.get_owned_items(OwnedItemFilter(kind=MediaKind.MOVIE))
        assert (movie.year, movie.xref_id) == (1979, "tt0078748")

        albums = await sql_store.get_owned_items(OwnedItemFilter(artist_name="NIRVANA"))
        assert [a.id for a in albums] == ["a1"]

        tracks = await sql_store.get_owned_items(OwnedItemFilter(parent_id="a1"))
        assert [t.track_number for t in tracks] == [4]

        by_id = await sql_store.get_owned_items(OwnedItemFilter(ids=("m1", "t1")))
        assert {item.id for item in by_id} == {"m1", "t1"}

    async def test_save_updates_existing(self, sql_store: SqlAlchemyLocalStore) -> None:
        await sql_store.save_owned_items([make_movie("m1", "Alien")])
        await sql_store.save_owned_items([make_movie("m1", "Alien (Director's Cut)")])

        [movie] = await sql_store.get_owned_items(OwnedItemFilter())
        assert movie.title == "Alien (Director's Cut)"

    async def test_source_types(self, sql_store: SqlAlchemyLocalStore) -> None:
        await sql_store.save_media_source("disk", "Music folder", ProviderType.LOCAL)

        assert await sql_store.get_source_type("disk") is ProviderType.LOCAL
        assert await sql_store.get_source_type("unknown") is None

    async def test_artwork_and_external_id_write_back(
        self, sql_store: SqlAlchemyLocalStore
    ) -> None:
        await sql_store.save_owned_items([make_album("a1", "Nirvana", "Nevermind")])

        await sql_store.update_item_artwork(
            "a1", ArtworkUpdate(poster_url="https://example.test/front.jpg")
        )
        await sql_store.update_item_external_id("a1", "rg-1")

        [album] = await sql_store.get_owned_items(OwnedItemFilter())
        assert album.has_artwork
        assert album.external_id == "rg-1"

    async def test_write_back_unknown_item(self, sql_store: SqlAlchemyLocalStore) -> None:
        with pytest.raises(EntityNotFoundException):
            await sql_store.update_item_external_id("ghost", "rg-1")
        with pytest.raises(EntityNotFoundException):
            await sql_store.update_item_artwork("ghost", ArtworkUpdate(poster_url="x"))


class TestCompletenessRecords:
    """Record persistence."""

    async def test_round_trip(self, sql_store: SqlAlchemyLocalStore) -> None:
        await sql_store.upsert_completeness_record(series_record())

        record = await sql_store.get_completeness_record(
            CompletenessKind.SERIES, "Lost", AnalysisScope()
        )

        assert isinstance(record, SeriesCompleteness)
        assert record.completeness_percentage == 10
        assert record.missing_seasons == [2]
        assert record.missing_items[0].key == (1, 2)
        assert record.created_at is not None
        assert record.updated_at.tzinfo is not None

    async def test_artist_record_round_trip(self, sql_store: SqlAlchemyLocalStore) -> None:
        await sql_store.upsert_completeness_record(
            ArtistCompleteness(
                unit_key="Nirvana",
                title="Nirvana",
                external_id="5b11f4ce",
                total_count=11,
                owned_count=7,
                completeness_percentage=64,
                missing_items=[
                    MissingRelease(
                        title="In Utero",
                        external_id="rg-3",
                        category=ReleaseCategory.ALBUM,
                        year=1993,
                    )
                ],
                total_albums=3,
                owned_albums=2,
                country="US",
            )
        )

        [record] = await sql_store.list_completeness_records(CompletenessKind.ARTIST)

        assert record.owned_albums == 2
        assert record.country == "US"
        assert record.missing_albums[0].year == 1993

    async def test_upsert_keeps_created_at(self, sql_store: SqlAlchemyLocalStore) -> None:
        first = series_record()
        await sql_store.upsert_completeness_record(first)
        second = series_record()
        second.completeness_percentage = 50
        await sql_store.upsert_completeness_record(second)

        [stored] = await sql_store.list_completeness_records(CompletenessKind.SERIES)
        assert stored.completeness_percentage == 50
        assert stored.created_at == first.created_at
        assert stored.updated_at >= stored.created_at

    async def test_scopes_are_separate(self, sql_store: SqlAlchemyLocalStore) -> None:
        plex = AnalysisScope(source_id="plex-1")
        await sql_store.upsert_completeness_record(series_record())
        await sql_store.upsert_completeness_record(series_record(scope=plex))

        assert len(await sql_store.list_completeness_records(CompletenessKind.SERIES)) == 2
        [scoped] = await sql_store.list_completeness_records(CompletenessKind.SERIES, plex)
        assert scoped.scope == plex

        assert await sql_store.delete_completeness_record(
            CompletenessKind.SERIES, "Lost", plex
        )
        assert not await sql_store.delete_completeness_record(
            CompletenessKind.SERIES, "Lost", plex
        )
        assert await sql_store.list_completeness_records(CompletenessKind.SERIES, plex) == []


class TestSettingsAndBatches:
    """Settings table and write batching."""

    async def test_settings(self, sql_store: SqlAlchemyLocalStore) -> None:
        assert await sql_store.get_setting("tmdb_api_key") is None

        await sql_store.set_setting("tmdb_api_key", "abc")
        await sql_store.set_setting("tmdb_api_key", "def")

        assert await sql_store.get_setting("tmdb_api_key") == "def"

    async def test_batch_is_visible_and_committed(
        self, sql_store: SqlAlchemyLocalStore, database: Database
    ) -> None:
        await sql_store.begin_write_batch()
        assert sql_store.in_write_batch
        await sql_store.upsert_completeness_record(series_record())

        # Reads inside the batch see uncommitted writes
        assert await sql_store.get_completeness_record(
            CompletenessKind.SERIES, "Lost", AnalysisScope()
        )
        await sql_store.force_checkpoint()
        await sql_store.end_write_batch()

        fresh = SqlAlchemyLocalStore(database)
        assert len(await fresh.list_completeness_records(CompletenessKind.SERIES)) == 1

    async def test_batches_do_not_nest(self, sql_store: SqlAlchemyLocalStore) -> None:
        await sql_store.begin_write_batch()
        try:
            with pytest.raises(InvalidStateException):
                await sql_store.begin_write_batch()
        finally:
            await sql_store.end_write_batch()

        assert not sql_store.in_write_batch

    async def test_checkpoint_and_end_without_batch_are_noops(
        self, sql_store: SqlAlchemyLocalStore
    ) -> None:
        await sql_store.force_checkpoint()
        await sql_store.end_write_batch()

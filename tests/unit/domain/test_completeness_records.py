"""Tests for completeness records, missing items and owned items."""

import pytest

from shelfcheck.domain.entities import (
    ArtistCompleteness,
    ArtworkUpdate,
    CollectionCompleteness,
    CompletenessStats,
    MediaKind,
    MissingEpisode,
    MissingMovie,
    MissingRelease,
    OwnedItem,
    SeriesCompleteness,
    SeriesUnit,
)
from shelfcheck.domain.exceptions import ValidationError
from shelfcheck.domain.value_objects import AnalysisScope, ReleaseCategory


class TestCompletenessRecord:
    """Tests for record invariants."""

    def test_percentage_out_of_range_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SeriesCompleteness(unit_key="Lost", title="Lost", completeness_percentage=101)

    def test_empty_unit_key_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SeriesCompleteness(unit_key="", title="Lost")

    def test_unmatched_is_never_complete(self) -> None:
        record = SeriesCompleteness(
            unit_key="Lost", title="Lost", completeness_percentage=100
        )
        assert not record.is_matched
        assert not record.is_complete

    def test_to_dict_contains_details_and_missing(self) -> None:
        record = SeriesCompleteness(
            unit_key="Lost",
            title="Lost",
            scope=AnalysisScope(source_id="plex-1"),
            external_id="4607",
            total_count=2,
            owned_count=1,
            completeness_percentage=50,
            missing_items=[MissingEpisode(title="Pilot 2", season_number=1, episode_number=2)],
            total_seasons=1,
            owned_seasons=1,
        )

        data = record.to_dict()

        assert data["kind"] == "series"
        assert data["source_id"] == "plex-1"
        assert data["missing_items"][0]["episode_number"] == 2
        assert data["total_seasons"] == 1
        assert data["missing_seasons"] == []

    def test_artist_missing_by_category(self) -> None:
        record = ArtistCompleteness(
            unit_key="Nirvana",
            title="Nirvana",
            external_id="mbid",
            missing_items=[
                MissingRelease(title="Bleach", external_id="a", category=ReleaseCategory.ALBUM),
                MissingRelease(title="Sliver", external_id="s", category=ReleaseCategory.SINGLE),
            ],
        )
        assert [m.title for m in record.missing_albums] == ["Bleach"]
        assert [m.title for m in record.missing_singles] == ["Sliver"]
        assert record.missing_eps == []

    def test_details_from_dict_tolerates_missing_keys(self) -> None:
        kwargs = ArtistCompleteness.details_from_dict({"total_albums": "3"})
        assert kwargs["total_albums"] == 3
        assert kwargs["owned_singles"] == 0
        assert kwargs["country"] is None


class TestMissingItems:
    """Tests for missing item (de)serialization defaults."""

    def test_missing_movie_from_partial_dict(self) -> None:
        movie = MissingMovie.from_dict({"title": "Aliens", "external_id": 679})
        assert movie.external_id == "679"
        assert movie.year is None

    def test_missing_release_default_category(self) -> None:
        release = MissingRelease.from_dict({"title": "X", "external_id": "1"})
        assert release.category is ReleaseCategory.ALBUM


class TestCompletenessStats:
    """Tests for CompletenessStats.from_records()."""

    def test_aggregates_matched_records_only(self) -> None:
        records = [
            CollectionCompleteness(
                unit_key="1", title="A", external_id="1", completeness_percentage=100
            ),
            CollectionCompleteness(
                unit_key="2",
                title="B",
                external_id="2",
                completeness_percentage=50,
                missing_items=[MissingMovie(title="X", external_id="9")],
            ),
            CollectionCompleteness(unit_key="3", title="C", status="unmatched"),
        ]

        stats = CompletenessStats.from_records(records)

        assert stats.total == 3
        assert stats.complete == 1
        assert stats.incomplete == 1
        assert stats.unmatched == 1
        assert stats.total_missing == 1
        assert stats.average_completeness == 75.0

    def test_empty(self) -> None:
        stats = CompletenessStats.from_records([])
        assert stats.to_dict()["average_completeness"] == 0.0
        assert stats.total == 0


class TestOwnedItem:
    """Tests for OwnedItem validation and helpers."""

    def test_episode_requires_series_title(self) -> None:
        with pytest.raises(ValidationError):
            OwnedItem(id="e1", kind=MediaKind.EPISODE, title="Pilot", source_id="plex-1")

    def test_empty_id_rejected(self) -> None:
        with pytest.raises(ValidationError):
            OwnedItem(id="", kind=MediaKind.MOVIE, title="Alien", source_id="plex-1")

    def test_quality_tie_keeps_incumbent(self) -> None:
        a = OwnedItem(
            id="a", kind=MediaKind.MOVIE, title="Alien", source_id="s", quality_proxy=8000
        )
        b = OwnedItem(
            id="b", kind=MediaKind.MOVIE, title="Alien", source_id="s", quality_proxy=8000
        )
        assert not b.is_better_than(a)
        assert OwnedItem(
            id="c", kind=MediaKind.MOVIE, title="Alien", source_id="s", quality_proxy=9000
        ).is_better_than(a)

    def test_series_unit_ignores_specials(self) -> None:
        episodes = [
            OwnedItem(
                id=f"e{n}",
                kind=MediaKind.EPISODE,
                title="x",
                source_id="s",
                series_title="Lost",
                season_number=season,
                episode_number=n,
            )
            for n, season in ((1, 1), (2, 1), (3, 0))
        ]
        unit = SeriesUnit(key="Lost", title="Lost", items=episodes)
        assert unit.owned_count == 2

    def test_artwork_update_is_empty(self) -> None:
        assert ArtworkUpdate().is_empty()
        assert not ArtworkUpdate(extra={"logo": "u"}).is_empty()

"""Tests for TMDB client implementation."""

import re

import pytest
from pytest_httpx import HTTPXMock

from shelfcheck.config.settings import TMDBSettings
from shelfcheck.domain.exceptions import CatalogHttpError, ConfigurationError
from shelfcheck.infrastructure.integrations.tmdb_client import TMDBClient

API = "https://api.themoviedb.org/3"


class TestTMDBClientConfiguration:
    """API key handling."""

    async def test_missing_key_raises_before_any_request(
        self, httpx_mock: HTTPXMock
    ) -> None:
        client = TMDBClient(TMDBSettings(api_key=None))

        with pytest.raises(ConfigurationError):
            await client.search_movie("Alien")

        assert httpx_mock.get_requests() == []

    async def test_key_loaded_from_fallback_source(self) -> None:
        async def loader() -> str | None:
            return "stored-key"

        client = TMDBClient(TMDBSettings(api_key=None), api_key_loader=loader)

        assert await client.ensure_configured() == "stored-key"

    async def test_api_key_sent_but_not_in_cache_key(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=f"{API}/movie/603?api_key=test-key&language=en-US",
            json={"id": 603, "title": "The Matrix"},
        )

        await tmdb_client.get_movie("603")

        request = httpx_mock.get_requests()[0]
        assert request.url.params["api_key"] == "test-key"
        assert await tmdb_client.cache.exists("/movie/603")


class TestTMDBClientMovies:
    """Movie, search and collection lookups."""

    async def test_search_movie(self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/search/movie\?.*"),
            json={
                "results": [
                    {"id": 348, "title": "Alien", "release_date": "1979-05-25"},
                    {"id": 999, "original_title": "Alien 2", "release_date": ""},
                ]
            },
        )

        results = await tmdb_client.search_movie("Alien", 1979)

        assert [r.id for r in results] == ["348", "999"]
        assert results[0].year == 1979
        assert results[1].title == "Alien 2"
        assert results[1].date is None
        assert httpx_mock.get_requests()[0].url.params["year"] == "1979"

    async def test_get_movie_with_collection(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/movie/348\?.*"),
            json={
                "id": 348,
                "title": "Alien",
                "release_date": "1979-05-25",
                "belongs_to_collection": {"id": 8091, "name": "Alien Collection"},
            },
        )

        movie = await tmdb_client.get_movie("348")

        assert movie is not None
        assert movie.collection_id == "8091"
        assert movie.collection_name == "Alien Collection"

    async def test_get_movie_404_returns_none(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/movie/1\?.*"),
            status_code=404,
            json={"status_message": "The resource you requested could not be found."},
        )

        assert await tmdb_client.get_movie("1") is None

    async def test_get_movie_500_raises(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=re.compile(rf"{re.escape(API)}/movie/1\?.*"), status_code=500)

        with pytest.raises(CatalogHttpError):
            await tmdb_client.get_movie("1")

    async def test_find_by_external_id(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/find/tt0078748\?.*"),
            json={"movie_results": [{"id": 348, "title": "Alien"}], "tv_results": []},
        )

        found = await tmdb_client.find_by_external_id("tt0078748")

        assert [r.id for r in found.movie_results] == ["348"]
        assert found.tv_results == []
        assert httpx_mock.get_requests()[0].url.params["external_source"] == "imdb_id"

    async def test_get_collection(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/collection/8091\?.*"),
            json={
                "id": 8091,
                "name": "Alien Collection",
                "parts": [
                    {"id": 348, "title": "Alien", "release_date": "1979-05-25"},
                    {"id": 679, "title": "Aliens", "release_date": "1986-07-18"},
                ],
            },
        )

        collection = await tmdb_client.get_collection("8091")

        assert collection is not None
        assert [part.id for part in collection.parts] == ["348", "679"]

    async def test_null_list_entries_are_dropped(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/search/movie\?.*"),
            json={"results": [None, {"id": 348, "title": "Alien"}, "junk"]},
        )
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/collection/8091\?.*"),
            json={"id": 8091, "name": "Alien Collection", "parts": [None, {"id": 679}]},
        )
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/tv/4607/season/1\?.*"),
            json={"season_number": 1, "episodes": [None, {"episode_number": 1}]},
        )

        hits = await tmdb_client.search_movie("Alien")
        collection = await tmdb_client.get_collection("8091")
        season = await tmdb_client.get_season("4607", 1)

        assert [hit.id for hit in hits] == ["348"]
        assert collection is not None
        assert [part.id for part in collection.parts] == ["679"]
        assert season is not None
        assert [ep.key for ep in season.episodes] == [(1, 1)]


class TestTMDBClientTV:
    """Show and season lookups."""

    async def test_get_seasons_batch_uses_append_to_response(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/tv/4607\?.*"),
            json={
                "id": 4607,
                "name": "Lost",
                "status": "Ended",
                "seasons": [
                    {"season_number": 0, "episode_count": 3},
                    {"season_number": 1, "air_date": "2004-09-22", "episode_count": 2},
                    {"season_number": 2, "air_date": "2005-09-21", "episode_count": 1},
                ],
                "season/1": {
                    "season_number": 1,
                    "episodes": [
                        {"episode_number": 1, "name": "Pilot (1)", "air_date": "2004-09-22"},
                        {"episode_number": 2, "name": "Pilot (2)", "air_date": "2004-09-29"},
                    ],
                },
                "season/2": {
                    "season_number": 2,
                    "episodes": [{"episode_number": 1, "name": "Man of Science"}],
                },
            },
        )

        show, seasons = await tmdb_client.get_seasons_batch("4607", [1, 2])

        assert show is not None
        assert show.status == "Ended"
        assert [s.season_number for s in show.seasons] == [0, 1, 2]
        assert sorted(seasons) == [1, 2]
        assert [ep.key for ep in seasons[1].episodes] == [(1, 1), (1, 2)]
        assert seasons[2].episodes[0].air_date is None
        params = httpx_mock.get_requests()[0].url.params
        assert params["append_to_response"] == "season/1,season/2"

    async def test_get_seasons_batch_chunks_large_shows(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        for _ in range(2):
            httpx_mock.add_response(
                url=re.compile(rf"{re.escape(API)}/tv/1\?.*"),
                json={"id": 1, "name": "Long Show", "seasons": []},
            )

        await tmdb_client.get_seasons_batch("1", range(1, 26))

        requests = httpx_mock.get_requests()
        assert len(requests) == 2
        assert requests[1].url.params["append_to_response"].startswith("season/21,")

    async def test_get_tv_show_404(
        self, tmdb_client: TMDBClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=re.compile(rf"{re.escape(API)}/tv/9\?.*"), status_code=404)

        assert await tmdb_client.get_tv_show("9") is None


class TestTMDBClientImages:
    """Image URL building."""

    def test_build_image_url(self, tmdb_settings: TMDBSettings) -> None:
        client = TMDBClient(tmdb_settings)

        assert (
            client.build_image_url("/poster.jpg")
            == "https://image.tmdb.org/t/p/w500/poster.jpg"
        )
        assert (
            client.build_image_url("/bd.jpg", "original")
            == "https://image.tmdb.org/t/p/original/bd.jpg"
        )
        assert client.build_image_url(None) is None

"""Tests for MusicBrainz client implementation."""

import re

import httpx
import pytest
from pytest_httpx import HTTPXMock

from fakes import FakeClock
from shelfcheck.config.settings import MusicBrainzSettings
from shelfcheck.domain.exceptions import NonRetryableCatalogError
from shelfcheck.infrastructure.integrations.musicbrainz_client import MusicBrainzClient

API = "https://musicbrainz.org/ws/2"
CAA = "https://coverartarchive.org"


def api_url(path: str) -> re.Pattern[str]:
    return re.compile(rf"{re.escape(API)}{re.escape(path)}\?.*")


class TestMusicBrainzClientInit:
    """Test MusicBrainz client initialization."""

    def test_init_with_settings(self, musicbrainz_settings: MusicBrainzSettings) -> None:
        """Test client initialization with settings."""
        client = MusicBrainzClient(musicbrainz_settings)
        assert client.settings == musicbrainz_settings
        assert client.rate_limiter.get_stats()["min_interval_seconds"] == 1.5
        assert client.retry_policy.max_retries == 3

    async def test_user_agent_and_json_format(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=api_url("/artist/abc"), json={"id": "abc", "name": "X"})

        await musicbrainz_client.get_artist("abc")

        request = httpx_mock.get_requests()[0]
        assert request.headers["User-Agent"] == "TestApp/1.0.0 ( test@example.com )"
        assert request.url.params["fmt"] == "json"

    async def test_requests_are_spaced(
        self,
        musicbrainz_client: MusicBrainzClient,
        clock: FakeClock,
        httpx_mock: HTTPXMock,
    ) -> None:
        for artist in ("a", "b", "c"):
            httpx_mock.add_response(url=api_url(f"/artist/{artist}"), json={"id": artist})

        for artist in ("a", "b", "c"):
            await musicbrainz_client.get_artist(artist)

        assert clock.now == pytest.approx(3.0)


class TestMusicBrainzClientArtists:
    """Artist search, lookup and release group browsing."""

    async def test_search_artist_uses_phrase_query(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=api_url("/artist"),
            json={
                "artists": [
                    {"id": "5b11f4ce", "name": "Nirvana", "score": 100},
                    {"id": "", "name": "broken"},
                    {"id": "other", "name": "Nirvana (UK)", "score": "88"},
                ]
            },
        )

        results = await musicbrainz_client.search_artist("Nirvana")

        assert [r.id for r in results] == ["5b11f4ce", "other"]
        assert results[1].score == 88
        query = httpx_mock.get_requests()[0].url.params["query"]
        assert query == 'artist:"Nirvana"'

    async def test_get_artist(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=api_url("/artist/5b11f4ce"),
            json={
                "id": "5b11f4ce",
                "name": "Nirvana",
                "country": "US",
                "type": "Group",
                "life-span": {"begin": "1987", "end": "1994-04-05"},
            },
        )

        artist = await musicbrainz_client.get_artist("5b11f4ce")

        assert artist is not None
        assert artist.country == "US"
        assert artist.begin == "1987"
        assert artist.end == "1994-04-05"

    async def test_get_artist_404_returns_none(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=api_url("/artist/gone"), status_code=404)

        assert await musicbrainz_client.get_artist("gone") is None
        assert len(httpx_mock.get_requests()) == 1

    async def test_400_is_not_retried(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(url=api_url("/artist/bad"), status_code=400)

        with pytest.raises(NonRetryableCatalogError):
            await musicbrainz_client.get_artist("bad")

    async def test_get_release_groups_pages(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        musicbrainz_client.RELEASE_GROUP_PAGE_SIZE = 2
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/release-group\?.*offset=0.*"),
            json={
                "release-group-count": 3,
                "release-groups": [
                    {"id": "rg1", "title": "Bleach", "primary-type": "Album"},
                    {
                        "id": "rg2",
                        "title": "Nevermind",
                        "primary-type": "Album",
                        "first-release-date": "1991-09-24",
                    },
                ],
            },
        )
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/release-group\?.*offset=2.*"),
            json={
                "release-group-count": 3,
                "release-groups": [
                    {
                        "id": "rg3",
                        "title": "MTV Unplugged in New York",
                        "primary-type": "Album",
                        "secondary-types": ["Live"],
                    }
                ],
            },
        )

        groups = await musicbrainz_client.get_release_groups("5b11f4ce")

        assert [g.id for g in groups] == ["rg1", "rg2", "rg3"]
        assert groups[1].year == 1991
        assert groups[2].category is None
        assert len(httpx_mock.get_requests()) == 2


class TestMusicBrainzClientReleases:
    """Releases, tracks and formats."""

    async def test_get_release_group_releases_formats(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=api_url("/release"),
            json={
                "releases": [
                    {"id": "r1", "title": "X", "media": [{"format": '12" Vinyl'}]},
                    {"id": "r2", "title": "X", "media": [{"format": "CD"}, {}]},
                ]
            },
        )

        releases = await musicbrainz_client.get_release_group_releases("rg1")

        assert releases[0].formats == ['12" Vinyl']
        assert releases[1].formats == ["CD", ""]
        params = httpx_mock.get_requests()[0].url.params
        assert params["release-group"] == "rg1"
        assert params["inc"] == "media"

    async def test_get_release_tracks_prefers_official(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/release\?.*status=official.*"),
            json={
                "releases": [
                    {"id": "empty", "title": "Nevermind", "media": []},
                    {
                        "id": "r1",
                        "title": "Nevermind",
                        "status": "Official",
                        "media": [
                            {
                                "format": "CD",
                                "position": 1,
                                "tracks": [
                                    {
                                        "position": 1,
                                        "title": "Smells Like Teen Spirit",
                                        "length": 301920,
                                        "recording": {"id": "rec1"},
                                    },
                                    {
                                        "position": "2",
                                        "recording": {"id": "rec2", "title": "In Bloom"},
                                    },
                                ],
                            }
                        ],
                    },
                ]
            },
        )

        release = await musicbrainz_client.get_release_tracks("rg2")

        assert release is not None
        assert release.id == "r1"
        assert [t.id for t in release.tracks] == ["rec1", "rec2"]
        assert release.tracks[0].duration_ms == 301920
        assert release.tracks[1].title == "In Bloom"
        assert release.tracks[1].position == 2
        assert release.tracks[1].duration_ms is None

    async def test_get_release_tracks_falls_back_to_any_status(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/release\?.*status=official.*"),
            json={"releases": []},
        )
        httpx_mock.add_response(
            url=re.compile(rf"{re.escape(API)}/release\?(?!.*status=).*"),
            json={
                "releases": [
                    {
                        "id": "boot",
                        "title": "Live Bootleg",
                        "media": [{"format": "CD", "tracks": [{"title": "A", "position": 1}]}],
                    }
                ]
            },
        )

        release = await musicbrainz_client.get_release_tracks("rg9")

        assert release is not None
        assert release.id == "boot"
        assert len(httpx_mock.get_requests()) == 2

    async def test_search_release_group_escapes_quotes(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            url=api_url("/release-group"),
            json={"release-groups": [{"id": "rg", "title": 'The "Blue" Album'}]},
        )

        results = await musicbrainz_client.search_release_group("Weezer", 'The "Blue" Album')

        assert results[0].id == "rg"
        query = httpx_mock.get_requests()[0].url.params["query"]
        assert query == 'releasegroup:"The \\"Blue\\" Album" AND artist:"Weezer"'


class TestMusicBrainzClientCoverArt:
    """CoverArtArchive helpers."""

    def test_build_cover_art_url(self, musicbrainz_settings: MusicBrainzSettings) -> None:
        client = MusicBrainzClient(musicbrainz_settings)

        assert client.build_cover_art_url("rg1", 250) == f"{CAA}/release-group/rg1/front-250"
        assert client.build_cover_art_url("rg1") == f"{CAA}/release-group/rg1/front"
        assert client.build_cover_art_url("rg1", 333) == f"{CAA}/release-group/rg1/front"

    async def test_get_cover_art_url_found(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="HEAD", url=f"{CAA}/release-group/rg1/front-500", status_code=200
        )

        url = await musicbrainz_client.get_cover_art_url("rg1", 500)

        assert url == f"{CAA}/release-group/rg1/front-500"

    async def test_get_cover_art_url_missing(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_response(
            method="HEAD", url=f"{CAA}/release-group/rg1/front-500", status_code=404
        )

        assert await musicbrainz_client.get_cover_art_url("rg1") is None

    async def test_get_cover_art_url_network_error(
        self, musicbrainz_client: MusicBrainzClient, httpx_mock: HTTPXMock
    ) -> None:
        httpx_mock.add_exception(httpx.ConnectError("down"))

        assert await musicbrainz_client.get_cover_art_url("rg1") is None

"""TMDB (The Movie Database) client for film and TV catalog lookups."""

import logging
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

import httpx

from shelfcheck.application.cache import InMemoryCache
from shelfcheck.config.settings import TMDBSettings
from shelfcheck.domain.dtos import (
    CatalogCollection,
    CatalogEpisode,
    CatalogMovie,
    CatalogSearchResult,
    CatalogSeason,
    CatalogSeasonSummary,
    CatalogShow,
)
from shelfcheck.domain.exceptions import CatalogHttpError, ConfigurationError
from shelfcheck.infrastructure.integrations.catalog_client import (
    CatalogClient,
    Params,
    ParamValue,
)
from shelfcheck.infrastructure.rate_limiter import (
    RateLimiter,
    SlidingWindowRateLimiter,
)

logger = logging.getLogger(__name__)

ApiKeyLoader = Callable[[], Awaitable[str | None]]


@dataclass
class FindResults:
    """Result of /find/{external_id}: matches split by media type."""

    movie_results: list[CatalogSearchResult] = field(default_factory=list)
    tv_results: list[CatalogSearchResult] = field(default_factory=list)


# Hey future me - TMDB ids are ints on the wire, but we carry them as strings everywhere
# (same as MusicBrainz UUIDs) so records and owned items have ONE external_id type.
def _str_id(value: Any) -> str | None:
    if value is None or value == "":
        return None
    return str(value)


def _as_int(value: Any, default: int = 0) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _dicts(value: Any) -> list[dict[str, Any]]:
    """Object entries of a JSON list (nulls and scalars dropped)."""
    return [entry for entry in _as_list(value) if isinstance(entry, dict)]


class TMDBClient(CatalogClient):
    """HTTP client for TMDB API v3 operations.

    Every call goes through CatalogClient.fetch, so it is cached for 24h, rate limited
    to 40 req/s and capped at 10 in-flight requests.
    """

    SERVICE_NAME = "tmdb"
    API_BASE_URL = "https://api.themoviedb.org/3"
    IMAGE_BASE_URL = "https://image.tmdb.org/t/p/"
    MAX_SEASONS_PER_CALL = 20

    def __init__(
        self,
        settings: TMDBSettings,
        *,
        rate_limiter: RateLimiter | None = None,
        cache: InMemoryCache[str, Any] | None = None,
        api_key_loader: ApiKeyLoader | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize TMDB client.

        Args:
            settings: TMDB configuration settings
            rate_limiter: Shared limiter (defaults to 40 req/s sliding window)
            cache: Response cache
            api_key_loader: Fallback key source when settings carry no key
                (e.g. the "tmdb_api_key" store setting)
            http_client: Pre-built httpx client (tests)
        """
        super().__init__(
            base_url=settings.base_url or self.API_BASE_URL,
            rate_limiter=rate_limiter
            or SlidingWindowRateLimiter.for_tmdb(
                max_requests=settings.requests_per_window,
                window_seconds=settings.window_seconds,
                buffer_seconds=settings.buffer_seconds,
            ),
            cache=cache,
            max_concurrent=settings.max_concurrent,
            timeout=settings.timeout_seconds,
            cache_ttl_seconds=settings.cache_ttl_seconds,
            http_client=http_client,
        )
        self.settings = settings
        self._api_key: str | None = settings.api_key or None
        self._api_key_loader = api_key_loader
        self._image_base_url = settings.image_base_url or self.IMAGE_BASE_URL

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    async def ensure_configured(self) -> str:
        """Return the API key, loading it from the fallback source if needed.

        Raises:
            ConfigurationError: No key in settings or the fallback source
        """
        if not self._api_key and self._api_key_loader is not None:
            self._api_key = await self._api_key_loader() or None
        if not self._api_key:
            raise ConfigurationError(
                "TMDB API key not configured (set TMDB_API_KEY or the tmdb_api_key setting)"
            )
        return self._api_key

    def set_api_key(self, api_key: str | None) -> None:
        """Replace the key (settings changed). Cached responses stay valid."""
        self._api_key = api_key or None

    def _default_params(self) -> dict[str, ParamValue]:
        params: dict[str, ParamValue] = {"language": self.settings.language}
        if self._api_key:
            params["api_key"] = self._api_key
        return params

    async def fetch(
        self, endpoint: str, params: Params | None = None, *, use_cache: bool = True
    ) -> dict[str, Any]:
        """Like CatalogClient.fetch, but fails fast without an API key."""
        await self.ensure_configured()
        return await super().fetch(endpoint, params, use_cache=use_cache)

    # Yo, 404 from TMDB is a normal "no such id" answer (deleted movie, bad cached id).
    # Callers get None and write an unmatched record instead of counting a failure.
    async def _fetch_or_none(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        try:
            return await self.fetch(endpoint, params)
        except CatalogHttpError as e:
            if e.status_code == 404:
                logger.debug(f"TMDB: {endpoint} not found")
                return None
            raise

    # -------------------------------------------------------------------------
    # Search & find
    # -------------------------------------------------------------------------

    async def search_movie(
        self, query: str, year: int | None = None
    ) -> list[CatalogSearchResult]:
        """Search movies by title, optionally narrowed to a release year."""
        data = await self.fetch("/search/movie", {"query": query, "year": year})
        return [self._parse_movie_hit(hit) for hit in _dicts(data.get("results"))]

    async def search_tv_show(
        self, query: str, year: int | None = None
    ) -> list[CatalogSearchResult]:
        """Search TV shows by name, optionally narrowed to the first-air year."""
        data = await self.fetch(
            "/search/tv", {"query": query, "first_air_date_year": year}
        )
        return [self._parse_tv_hit(hit) for hit in _dicts(data.get("results"))]

    async def find_by_external_id(
        self, external_id: str, source: str = "imdb_id"
    ) -> FindResults:
        """Look up TMDB entries by a foreign id (IMDB "tt..." by default)."""
        data = await self.fetch(f"/find/{external_id}", {"external_source": source})
        return FindResults(
            movie_results=[
                self._parse_movie_hit(hit) for hit in _dicts(data.get("movie_results"))
            ],
            tv_results=[
                self._parse_tv_hit(hit) for hit in _dicts(data.get("tv_results"))
            ],
        )

    # -------------------------------------------------------------------------
    # Movies & collections
    # -------------------------------------------------------------------------

    async def get_movie(self, movie_id: str) -> CatalogMovie | None:
        data = await self._fetch_or_none(f"/movie/{movie_id}")
        return self._parse_movie(data) if data is not None else None

    async def get_collection(self, collection_id: str) -> CatalogCollection | None:
        data = await self._fetch_or_none(f"/collection/{collection_id}")
        return self._parse_collection(data) if data is not None else None

    # -------------------------------------------------------------------------
    # TV
    # -------------------------------------------------------------------------

    async def get_tv_show(self, show_id: str) -> CatalogShow | None:
        data = await self._fetch_or_none(f"/tv/{show_id}")
        return self._parse_show(data) if data is not None else None

    async def get_season(self, show_id: str, season_number: int) -> CatalogSeason | None:
        data = await self._fetch_or_none(f"/tv/{show_id}/season/{season_number}")
        return self._parse_season(data, season_number) if data is not None else None

    # Hey future me - this is the big request saver! TMDB lets one /tv/{id} call embed up to
    # 20 seasons via append_to_response=season/1,season/2,... - the embedded payloads come back
    # under keys "season/1", "season/2". A 12-season show costs 1 request instead of 13.
    # More than 20 seasons are chunked. A chunk failure propagates, the series analyzer falls
    # back to per-season calls for that chunk.
    async def get_seasons_batch(
        self, show_id: str, season_numbers: Iterable[int]
    ) -> tuple[CatalogShow | None, dict[int, CatalogSeason]]:
        """Fetch show details plus many seasons with as few calls as possible.

        Returns:
            (show, {season_number: season}); show is None if the show doesn't exist
        """
        numbers = list(dict.fromkeys(season_numbers))
        show: CatalogShow | None = None
        seasons: dict[int, CatalogSeason] = {}

        chunks = [
            numbers[i : i + self.MAX_SEASONS_PER_CALL]
            for i in range(0, len(numbers), self.MAX_SEASONS_PER_CALL)
        ] or [[]]

        for chunk in chunks:
            params = (
                {"append_to_response": ",".join(f"season/{n}" for n in chunk)}
                if chunk
                else None
            )
            data = await self._fetch_or_none(f"/tv/{show_id}", params)
            if data is None:
                return None, {}
            if show is None:
                show = self._parse_show(data)
            for number in chunk:
                season_data = data.get(f"season/{number}")
                if isinstance(season_data, dict):
                    seasons[number] = self._parse_season(season_data, number)

        return show, seasons

    # -------------------------------------------------------------------------
    # Images
    # -------------------------------------------------------------------------

    def build_image_url(self, path: str | None, size: str = "w500") -> str | None:
        """Turn a TMDB image path ("/abc.jpg") into a full URL."""
        if not path:
            return None
        return f"{self._image_base_url.rstrip('/')}/{size}{path}"

    # -------------------------------------------------------------------------
    # Parsing (missing -> empty/None)
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_movie_hit(hit: dict[str, Any]) -> CatalogSearchResult:
        return CatalogSearchResult(
            id=_str_id(hit.get("id")) or "",
            title=hit.get("title") or hit.get("original_title") or "",
            date=hit.get("release_date") or None,
        )

    @staticmethod
    def _parse_tv_hit(hit: dict[str, Any]) -> CatalogSearchResult:
        return CatalogSearchResult(
            id=_str_id(hit.get("id")) or "",
            title=hit.get("name") or hit.get("original_name") or "",
            date=hit.get("first_air_date") or None,
        )

    @staticmethod
    def _parse_movie(data: dict[str, Any]) -> CatalogMovie:
        collection = data.get("belongs_to_collection")
        if not isinstance(collection, dict):
            collection = {}
        return CatalogMovie(
            id=_str_id(data.get("id")) or "",
            title=data.get("title") or "",
            release_date=data.get("release_date") or None,
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            collection_id=_str_id(collection.get("id")),
            collection_name=collection.get("name"),
        )

    def _parse_collection(self, data: dict[str, Any]) -> CatalogCollection:
        return CatalogCollection(
            id=_str_id(data.get("id")) or "",
            name=data.get("name") or "",
            parts=[self._parse_movie(part) for part in _dicts(data.get("parts"))],
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
        )

    @staticmethod
    def _parse_show(data: dict[str, Any]) -> CatalogShow:
        return CatalogShow(
            id=_str_id(data.get("id")) or "",
            name=data.get("name") or "",
            status=data.get("status"),
            first_air_date=data.get("first_air_date") or None,
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            seasons=[
                CatalogSeasonSummary(
                    season_number=_as_int(season.get("season_number")),
                    air_date=season.get("air_date") or None,
                    episode_count=_as_int(season.get("episode_count")),
                )
                for season in _as_list(data.get("seasons"))
                if isinstance(season, dict)
            ],
        )

    @staticmethod
    def _parse_season(data: dict[str, Any], season_number: int) -> CatalogSeason:
        number = _as_int(data.get("season_number"), season_number)
        return CatalogSeason(
            season_number=number,
            poster_path=data.get("poster_path"),
            episodes=[
                CatalogEpisode(
                    season_number=_as_int(ep.get("season_number"), number),
                    episode_number=_as_int(ep.get("episode_number")),
                    name=ep.get("name") or "",
                    air_date=ep.get("air_date") or None,
                    still_path=ep.get("still_path"),
                )
                for ep in _as_list(data.get("episodes"))
                if isinstance(ep, dict)
            ],
        )


__all__ = ["ApiKeyLoader", "FindResults", "TMDBClient"]

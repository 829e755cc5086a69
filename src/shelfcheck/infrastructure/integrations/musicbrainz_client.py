"""MusicBrainz HTTP client with strict rate limiting and retry."""

import logging
from typing import Any

import httpx

from shelfcheck.application.cache import InMemoryCache
from shelfcheck.config.settings import MusicBrainzSettings
from shelfcheck.domain.dtos import (
    CatalogArtist,
    CatalogRelease,
    CatalogReleaseGroup,
    CatalogSearchResult,
    CatalogTrack,
)
from shelfcheck.domain.exceptions import ExternalServiceError
from shelfcheck.infrastructure.integrations.catalog_client import (
    ParamValue,
    RetryingCatalogClient,
)
from shelfcheck.infrastructure.integrations.retry import RetryPolicy
from shelfcheck.infrastructure.rate_limiter import FixedDelayRateLimiter, RateLimiter

logger = logging.getLogger(__name__)


# Hey future me, MusicBrainz search uses Lucene query syntax. The quotes around artist
# and title are IMPORTANT for exact phrase matching. Without quotes, "The Beatles" becomes
# "the OR beatles" and you get garbage results. A title with a double quote inside would
# break the phrase, so those get escaped.
def _lucene_phrase(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _as_list(value: Any) -> list[Any]:
    return value if isinstance(value, list) else []


def _as_int(value: Any, default: int | None = 0) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


class MusicBrainzClient(RetryingCatalogClient):
    """HTTP client for MusicBrainz API operations with rate limiting."""

    SERVICE_NAME = "musicbrainz"
    API_BASE_URL = "https://musicbrainz.org/ws/2"
    COVER_ART_BASE_URL = "https://coverartarchive.org"
    RATE_LIMIT_DELAY = 1.5
    RELEASE_GROUP_PAGE_SIZE = 100
    # Safety net against endless paging on broken count fields (Various Artists has 100k+)
    MAX_RELEASE_GROUP_PAGES = 50

    # Hey future me, MusicBrainz is STRICT about rate limiting - 1 req/sec, NO EXCEPTIONS!
    # The FixedDelayRateLimiter keeps 1.5s between dispatches, even with many concurrent
    # analyzer tasks. If you violate this, they'll IP-ban you for hours.
    #
    # MusicBrainz also REQUIRES a User-Agent with app name, version AND contact info, in the
    # format "AppName/Version ( contact )". Without it requests get rejected with 403.
    def __init__(
        self,
        settings: MusicBrainzSettings,
        *,
        rate_limiter: RateLimiter | None = None,
        cache: InMemoryCache[str, Any] | None = None,
        retry_policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
        cover_art_client: httpx.AsyncClient | None = None,
        **kwargs: Any,
    ) -> None:
        """
        Initialize MusicBrainz client.

        Args:
            settings: MusicBrainz configuration settings
            rate_limiter: Shared limiter (defaults to one request per 1.5s)
            cache: Response cache
            retry_policy: Backoff parameters (defaults from settings)
            http_client: Pre-built httpx client for the MusicBrainz API (tests)
            cover_art_client: Pre-built httpx client for CoverArtArchive (tests)
        """
        super().__init__(
            base_url=settings.base_url or self.API_BASE_URL,
            rate_limiter=rate_limiter
            or FixedDelayRateLimiter.for_musicbrainz(settings.request_delay_seconds),
            cache=cache,
            max_concurrent=settings.max_concurrent,
            timeout=settings.timeout_seconds,
            cache_ttl_seconds=settings.cache_ttl_seconds,
            headers={"User-Agent": settings.user_agent},
            http_client=http_client,
            retry_policy=retry_policy
            or RetryPolicy(
                max_retries=settings.max_retries,
                initial_delay=settings.initial_retry_delay,
                max_delay=settings.max_retry_delay,
                backoff_factor=settings.retry_backoff_factor,
            ),
            **kwargs,
        )
        self.settings = settings
        self._cover_art_base_url = (
            settings.cover_art_base_url or self.COVER_ART_BASE_URL
        ).rstrip("/")
        self._cover_client = cover_art_client
        self._owns_cover_client = cover_art_client is None

    def _default_params(self) -> dict[str, ParamValue]:
        return {"fmt": "json"}

    # Hey, 404 means the MBID doesn't exist or was merged/deleted - that's not an error!
    # The retry layer wraps 404 into NonRetryableCatalogError, which keeps status_code,
    # so one check covers both the plain and the wrapped error.
    async def _fetch_or_none(
        self, endpoint: str, params: dict[str, Any] | None = None
    ) -> dict[str, Any] | None:
        try:
            return await self.fetch(endpoint, params)
        except ExternalServiceError as e:
            if getattr(e, "status_code", None) == 404:
                logger.debug(f"MusicBrainz: {endpoint} not found")
                return None
            raise

    async def close(self) -> None:
        """Close HTTP clients."""
        await super().close()
        if self._cover_client is not None and self._owns_cover_client:
            await self._cover_client.aclose()
            self._cover_client = None

    # -------------------------------------------------------------------------
    # Artists
    # -------------------------------------------------------------------------

    async def search_artist(self, name: str, limit: int = 5) -> list[CatalogSearchResult]:
        """Search artists by name. Results come sorted by MusicBrainz relevance score."""
        data = await self.fetch(
            "/artist", {"query": f"artist:{_lucene_phrase(name)}", "limit": limit}
        )
        return [
            CatalogSearchResult(
                id=artist.get("id") or "",
                title=artist.get("name") or "",
                date=(artist.get("life-span") or {}).get("begin"),
                score=_as_int(artist.get("score")) or 0,
            )
            for artist in _as_list(data.get("artists"))
            if isinstance(artist, dict) and artist.get("id")
        ]

    async def get_artist(self, artist_id: str) -> CatalogArtist | None:
        """Lookup an artist by MBID (without release groups)."""
        data = await self._fetch_or_none(f"/artist/{artist_id}")
        return self._parse_artist(data) if data is not None else None

    # Yo future me, this is a BROWSE (not search): every release group credited to the
    # artist, 100 per page. A prolific artist takes several pages, at 1.5s each. Paging
    # stops when we have release-group-count items or a page comes back empty.
    async def get_release_groups(self, artist_id: str) -> list[CatalogReleaseGroup]:
        """Get all release groups of an artist (paged browse)."""
        groups: list[CatalogReleaseGroup] = []
        offset = 0

        for _ in range(self.MAX_RELEASE_GROUP_PAGES):
            data = await self.fetch(
                "/release-group",
                {
                    "artist": artist_id,
                    "limit": self.RELEASE_GROUP_PAGE_SIZE,
                    "offset": offset,
                },
            )
            page = [
                self._parse_release_group(rg)
                for rg in _as_list(data.get("release-groups"))
                if isinstance(rg, dict) and rg.get("id")
            ]
            groups.extend(page)
            offset += self.RELEASE_GROUP_PAGE_SIZE

            total = _as_int(data.get("release-group-count"), None)
            if not page or total is None or offset >= total:
                break

        return groups

    # -------------------------------------------------------------------------
    # Release groups & releases
    # -------------------------------------------------------------------------

    async def get_release_group_releases(
        self, release_group_id: str, limit: int = 50
    ) -> list[CatalogRelease]:
        """Get the releases of a release group with their medium formats."""
        data = await self.fetch(
            "/release",
            {"release-group": release_group_id, "inc": "media", "limit": limit},
        )
        return [
            self._parse_release(release)
            for release in _as_list(data.get("releases"))
            if isinstance(release, dict)
        ]

    async def search_release_group(
        self, artist: str | None, title: str, limit: int = 5
    ) -> list[CatalogSearchResult]:
        """Search release groups (albums) by title, optionally narrowed to an artist."""
        query_parts = [f"releasegroup:{_lucene_phrase(title)}"]
        if artist:
            query_parts.append(f"artist:{_lucene_phrase(artist)}")

        data = await self.fetch(
            "/release-group", {"query": " AND ".join(query_parts), "limit": limit}
        )
        return [
            CatalogSearchResult(
                id=rg.get("id") or "",
                title=rg.get("title") or "",
                date=rg.get("first-release-date") or None,
                score=_as_int(rg.get("score")) or 0,
            )
            for rg in _as_list(data.get("release-groups"))
            if isinstance(rg, dict) and rg.get("id")
        ]

    # Listen up, "release" means a specific pressing of an album; the track listing of the
    # same album differs between pressings (bonus tracks, Japanese editions...). We prefer
    # OFFICIAL releases and take the first one that actually has media. If a group has no
    # official release at all (bootleg-only), any release will do.
    async def get_release_tracks(self, release_group_id: str) -> CatalogRelease | None:
        """Get the canonical release (with tracks) of a release group."""
        params: dict[str, Any] = {
            "release-group": release_group_id,
            "inc": "media+recordings",
            "limit": 5,
        }
        data = await self.fetch("/release", {**params, "status": "official"})
        releases = _as_list(data.get("releases"))
        if not releases:
            data = await self.fetch("/release", params)
            releases = _as_list(data.get("releases"))

        for raw in releases:
            if not isinstance(raw, dict):
                continue
            release = self._parse_release(raw)
            if release.has_media:
                return release
        return None

    # -------------------------------------------------------------------------
    # Cover art (CoverArtArchive)
    # -------------------------------------------------------------------------

    def build_cover_art_url(self, release_group_id: str, size: int | None = None) -> str:
        """CoverArtArchive front cover URL; size 250/500/1200 picks a thumbnail."""
        suffix = f"-{size}" if size in (250, 500, 1200) else ""
        return f"{self._cover_art_base_url}/release-group/{release_group_id}/front{suffix}"

    async def _get_cover_client(self) -> httpx.AsyncClient:
        if self._cover_client is None:
            self._cover_client = httpx.AsyncClient(
                headers={"User-Agent": self.settings.user_agent},
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._cover_client

    # GOTCHA: Not all release groups have artwork! Many older/indie releases have no CAA
    # coverage. A HEAD request tells us without downloading the image. Any failure just
    # means "no cover", artwork is never worth failing an analysis for.
    async def get_cover_art_url(
        self, release_group_id: str, size: int | None = 500
    ) -> str | None:
        """Return the cover URL if CoverArtArchive has a front image, else None."""
        url = self.build_cover_art_url(release_group_id, size)
        try:
            client = await self._get_cover_client()
            response = await client.head(url)
        except httpx.HTTPError as e:
            logger.debug(f"CoverArtArchive check failed for {release_group_id}: {e}")
            return None
        return url if response.status_code < 400 else None

    # -------------------------------------------------------------------------
    # Parsing (missing -> empty/None)
    # -------------------------------------------------------------------------

    @staticmethod
    def _parse_release_group(data: dict[str, Any]) -> CatalogReleaseGroup:
        return CatalogReleaseGroup(
            id=data.get("id") or "",
            title=data.get("title") or "",
            first_release_date=data.get("first-release-date") or None,
            primary_type=data.get("primary-type"),
            secondary_types=[
                str(t) for t in _as_list(data.get("secondary-types")) if t
            ],
        )

    def _parse_artist(self, data: dict[str, Any]) -> CatalogArtist:
        life_span = data.get("life-span") or {}
        return CatalogArtist(
            id=data.get("id") or "",
            name=data.get("name") or "",
            sort_name=data.get("sort-name"),
            country=data.get("country"),
            type=data.get("type"),
            begin=life_span.get("begin"),
            end=life_span.get("end"),
            release_groups=[
                self._parse_release_group(rg)
                for rg in _as_list(data.get("release-groups"))
                if isinstance(rg, dict)
            ],
        )

    @staticmethod
    def _parse_release(data: dict[str, Any]) -> CatalogRelease:
        formats: list[str] = []
        tracks: list[CatalogTrack] = []

        for medium in _as_list(data.get("media")):
            if not isinstance(medium, dict):
                continue
            formats.append(medium.get("format") or "")
            disc = _as_int(medium.get("position"), 1) or 1
            for track in _as_list(medium.get("tracks")):
                if not isinstance(track, dict):
                    continue
                recording = track.get("recording") or {}
                tracks.append(
                    CatalogTrack(
                        id=recording.get("id") or track.get("id") or "",
                        title=track.get("title") or recording.get("title") or "",
                        position=_as_int(track.get("position")) or 0,
                        disc_number=disc,
                        duration_ms=_as_int(
                            track.get("length") or recording.get("length"), None
                        ),
                    )
                )

        return CatalogRelease(
            id=data.get("id") or "",
            title=data.get("title") or "",
            status=data.get("status"),
            formats=formats,
            tracks=tracks,
        )


__all__ = ["MusicBrainzClient"]

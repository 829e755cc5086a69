"""External ID Resolver - maps owned titles to catalog ids.

Hey future me - every analyzer needs a catalog id before it can fetch anything, and most
library providers don't hand us one. This service does the lookup, in a fixed order of
trust:

    movies:  xref id (IMDB tt...) via /find  ->  title + year search
    series:  series-level id (if a provider stored one)  ->  xref via /find  ->  title search
    artists: name search, exact (case-insensitive) name match, else the top hit

Results are memoized per process (including misses!), so the deduplicator and the
analyzers can ask for the same title many times for free. The catalog clients also cache
for 24h, but the memo saves even the cache-key building and the rate limiter is never
touched for repeats.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shelfcheck.domain.exceptions import ExternalServiceError

if TYPE_CHECKING:
    from shelfcheck.domain.dtos import CatalogSearchResult
    from shelfcheck.infrastructure.integrations import (
        FindResults,
        MusicBrainzClient,
        TMDBClient,
    )

logger = logging.getLogger(__name__)

IMDB_ID_PREFIX = "tt"


def pick_by_year(
    results: list[CatalogSearchResult], year: int | None
) -> CatalogSearchResult | None:
    """First result with the exact year, else the top result (None if empty)."""
    if not results:
        return None
    if year is not None:
        for result in results:
            if result.year == year:
                return result
    return results[0]


def pick_by_name(
    results: list[CatalogSearchResult], name: str
) -> CatalogSearchResult | None:
    """First result whose title equals ``name`` ignoring case, else the top result."""
    if not results:
        return None
    wanted = name.strip().casefold()
    for result in results:
        if result.title.strip().casefold() == wanted:
            return result
    return results[0]


class ExternalIdResolver:
    """Resolve catalog ids for movies, series and artists, memoized per process."""

    def __init__(
        self,
        tmdb: TMDBClient | None = None,
        musicbrainz: MusicBrainzClient | None = None,
    ) -> None:
        self._tmdb = tmdb
        self._musicbrainz = musicbrainz
        self._memo: dict[tuple[str, ...], str | None] = {}

    def clear(self) -> None:
        """Forget memoized resolutions (after fix_match, tests)."""
        self._memo.clear()

    def forget(self, *key: str) -> None:
        self._memo.pop(key, None)

    # -------------------------------------------------------------------------
    # Movies
    # -------------------------------------------------------------------------

    async def resolve_movie(
        self, title: str, year: int | None = None, xref_id: str | None = None
    ) -> str | None:
        """Resolve a movie's TMDB id."""
        key = ("movie", title.casefold(), str(year or ""), xref_id or "")
        if key in self._memo:
            return self._memo[key]

        tmdb = self._require_tmdb()
        resolved: str | None = None

        found = await self._find_by_xref(tmdb, xref_id)
        if found is not None and found.movie_results:
            resolved = found.movie_results[0].id

        if resolved is None and title:
            best = pick_by_year(await tmdb.search_movie(title, year), year)
            resolved = best.id if best and best.id else None

        if resolved is None:
            logger.debug(f"Resolver: no TMDB match for movie '{title}' ({year})")
        self._memo[key] = resolved
        return resolved

    # -------------------------------------------------------------------------
    # Series
    # -------------------------------------------------------------------------

    async def resolve_series(
        self,
        title: str,
        year: int | None = None,
        series_external_id: str | None = None,
        xref_id: str | None = None,
    ) -> str | None:
        """Resolve a TV series' TMDB id."""
        if series_external_id:
            return series_external_id

        key = ("series", title.casefold(), str(year or ""), xref_id or "")
        if key in self._memo:
            return self._memo[key]

        tmdb = self._require_tmdb()
        resolved: str | None = None

        found = await self._find_by_xref(tmdb, xref_id)
        if found is not None and found.tv_results:
            resolved = found.tv_results[0].id

        if resolved is None and title:
            best = pick_by_year(await tmdb.search_tv_show(title, year), year)
            resolved = best.id if best and best.id else None

        if resolved is None:
            logger.debug(f"Resolver: no TMDB match for series '{title}'")
        self._memo[key] = resolved
        return resolved

    # -------------------------------------------------------------------------
    # Artists
    # -------------------------------------------------------------------------

    async def resolve_artist(self, name: str) -> str | None:
        """Resolve an artist's MusicBrainz id by name."""
        key = ("artist", name.strip().casefold())
        if key in self._memo:
            return self._memo[key]

        if self._musicbrainz is None:
            raise ExternalServiceError("MusicBrainz client not configured", "musicbrainz")

        best = pick_by_name(await self._musicbrainz.search_artist(name), name)
        resolved = best.id if best and best.id else None
        if resolved is None:
            logger.debug(f"Resolver: no MusicBrainz match for artist '{name}'")
        self._memo[key] = resolved
        return resolved

    # Hey future me - /find only knows IMDB ids (tt...). A failing /find is NOT a failed
    # resolution: the title search after it still gets its chance.
    async def _find_by_xref(
        self, tmdb: TMDBClient, xref_id: str | None
    ) -> FindResults | None:
        if not xref_id or not xref_id.startswith(IMDB_ID_PREFIX):
            return None
        try:
            return await tmdb.find_by_external_id(xref_id)
        except ExternalServiceError as e:
            logger.warning(
                f"Resolver: /find failed for {xref_id}, falling back to title search: {e}"
            )
            return None

    def _require_tmdb(self) -> TMDBClient:
        if self._tmdb is None:
            raise ExternalServiceError("TMDB client not configured", "tmdb")
        return self._tmdb


__all__ = ["IMDB_ID_PREFIX", "ExternalIdResolver", "pick_by_name", "pick_by_year"]

"""Entity Deduplicator Service.

Hey future me - THIS IS THE MULTI-PROVIDER MERGE!

Problem: the same movie lives in Plex AND Jellyfin AND a local folder, with different
         titles ("Alien" vs "Alien (1979)"), different item ids and maybe no catalog id.
         Counting all three would make a collection look 300% owned.

Solution: group items by their catalog id and keep ONE per id:
          1. Cached external id on the item (cheapest, most reliable)
          2. Cross-reference id (IMDB tt...) via the catalog's /find endpoint
          3. Title (+ year) search - first exact-year hit, else the top hit
          Items that stay unresolved are kept as they are (never dropped!).

Tie-break: the higher quality proxy (bitrate) wins, equal quality keeps the item seen first.

Series work one level up: episodes are grouped by series title first, each title is
resolved to a series id, and titles sharing an id are merged ("The Office (US)" from Plex
+ "The Office" from Kodi -> one series, first title seen wins). Inside a merged series
episodes are deduplicated by (season, episode) with the same tie-break.

IMPORTANT: This does NOT touch the store! It returns new lists; items that got an id
resolved are copies with external_id filled in.

Usage:
    dedup = EntityDeduplicator(resolver)

    movies = await dedup.deduplicate_movies(all_movies)
    series_units = await dedup.deduplicate_series(all_episodes)
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Hashable
from dataclasses import replace
from typing import TYPE_CHECKING

from shelfcheck.domain.entities import OwnedItem, SeriesUnit
from shelfcheck.domain.exceptions import ExternalServiceError

if TYPE_CHECKING:
    from shelfcheck.application.services.external_id_resolver import ExternalIdResolver

logger = logging.getLogger(__name__)


def keep_best(
    items: list[OwnedItem], key_of: Callable[[OwnedItem], Hashable | None]
) -> list[OwnedItem]:
    """Collapse items sharing a key to the best one, in first-seen order.

    Items whose key is None are kept untouched.
    """
    kept: list[OwnedItem] = []
    slot_of: dict[Hashable, int] = {}

    for item in items:
        key = key_of(item)
        if key is None:
            kept.append(item)
            continue
        slot = slot_of.get(key)
        if slot is None:
            slot_of[key] = len(kept)
            kept.append(item)
        elif item.is_better_than(kept[slot]):
            kept[slot] = item

    return kept


class EntityDeduplicator:
    """Merge owned items contributed by different providers."""

    def __init__(self, resolver: ExternalIdResolver) -> None:
        self._resolver = resolver

    # =========================================================================
    # MOVIES
    # =========================================================================

    async def resolve_movie_id(self, movie: OwnedItem) -> str | None:
        """Cached id, else xref/search resolution. Catalog failures count as unresolved."""
        if movie.external_id:
            return movie.external_id
        try:
            return await self._resolver.resolve_movie(
                movie.title, movie.year, movie.xref_id
            )
        except ExternalServiceError as e:
            logger.warning(f"Dedup: could not resolve movie '{movie.title}': {e}")
            return None

    async def deduplicate_movies(self, movies: list[OwnedItem]) -> list[OwnedItem]:
        """One movie per catalog id (highest quality), unresolved movies kept as-is."""
        resolved: list[OwnedItem] = []
        for movie in movies:
            external_id = await self.resolve_movie_id(movie)
            if external_id and external_id != movie.external_id:
                movie = replace(movie, external_id=external_id)
            resolved.append(movie)

        result = keep_best(resolved, lambda m: m.external_id)
        if len(result) != len(movies):
            logger.info(f"Dedup: {len(movies)} movies -> {len(result)} unique")
        return result

    # =========================================================================
    # SERIES
    # =========================================================================

    @staticmethod
    def group_series(episodes: list[OwnedItem]) -> list[SeriesUnit]:
        """Group episodes by series title without any catalog lookups."""
        groups: dict[str, list[OwnedItem]] = {}
        for episode in episodes:
            groups.setdefault(episode.series_title or episode.title, []).append(episode)

        return [
            SeriesUnit(
                key=title,
                title=title,
                items=items,
                external_id=next(
                    (ep.series_external_id for ep in items if ep.series_external_id),
                    None,
                ),
                xref_id=next((ep.xref_id for ep in items if ep.xref_id), None),
            )
            for title, items in groups.items()
        ]

    async def resolve_series_id(self, unit: SeriesUnit) -> str | None:
        try:
            return await self._resolver.resolve_series(
                unit.title, unit.year, unit.external_id, unit.xref_id
            )
        except ExternalServiceError as e:
            logger.warning(f"Dedup: could not resolve series '{unit.title}': {e}")
            return None

    # Hey future me - for episodes, xref_id is the SHOW's cross-reference id (providers store
    # the series IMDB id on every episode), not an episode-level id. group_series() lifts the
    # first one it sees to the unit.
    async def deduplicate_series(self, episodes: list[OwnedItem]) -> list[SeriesUnit]:
        """Merge series sharing a catalog id, then dedupe episodes by (season, episode)."""
        merged: dict[str, SeriesUnit] = {}
        units: list[SeriesUnit] = []

        for unit in self.group_series(episodes):
            external_id = await self.resolve_series_id(unit)
            if external_id is None:
                units.append(unit)
                continue

            existing = merged.get(external_id)
            if existing is None:
                unit.external_id = external_id
                merged[external_id] = unit
                units.append(unit)
            else:
                logger.debug(
                    f"Dedup: merging series '{unit.title}' into '{existing.title}'"
                )
                existing.items.extend(unit.items)
                existing.xref_id = existing.xref_id or unit.xref_id

        for unit in units:
            unit.items = keep_best(unit.items, lambda ep: ep.episode_key)

        return units


__all__ = ["EntityDeduplicator", "keep_best"]

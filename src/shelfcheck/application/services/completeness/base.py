"""Shared completeness algorithm for series, collections, discographies and albums.

Hey future me - every analyzer is the SAME recipe with different ingredients:

    1. external id: use the cached one, else resolve it (title search etc.)
    2. no id?      -> persist an "unmatched" record (0%, owned count only) and stop
    3. fetch the catalog structure (show + seasons, collection, release groups, release)
    4. inclusion rules (no future items, no specials, no live albums...)
    5. diff owned keys against catalog keys -> missing list
    6. percentage = round(owned / total * 100), clamped to [0, 100]
    7. local sources only: push catalog artwork back into the store (best effort)

Subclasses implement enumerate_units / resolve_external_id / fetch_catalog / build_record.
analyze_unit() glues them together and is what the batch runner calls. Analyzers hold NO
per-run state - everything run-specific travels in the ScanContext, so one analyzer instance
can serve analyze_all and analyze_one without interference.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, ClassVar, Generic, TypeVar

from shelfcheck.domain.entities import (
    AnalysisUnit,
    ArtworkUpdate,
    CompletenessRecord,
    OwnedItem,
    OwnedItemFilter,
)
from shelfcheck.domain.ports import ILocalStore
from shelfcheck.domain.value_objects import (
    AnalysisOptions,
    AnalysisPhase,
    AnalysisProgress,
    AnalysisScope,
    CancellationToken,
    CompletenessKind,
    ProviderType,
    was_recently_analyzed,
)

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[AnalysisProgress], Awaitable[None] | None]

# Status of records the catalog could not be matched to (flagged for fix_match)
UNMATCHED_STATUS = "unmatched"

# Store setting prefix for ids pinned by fix_match: "<prefix>:<kind>:<unit_key>"
MANUAL_MATCH_PREFIX = "completeness_manual_match"


@dataclass
class ScanContext:
    """Run-scoped inputs shared by enumeration and analysis.

    Attributes:
        scope: Provider/library filter of the run
        options: Run options
        today: Reference date for "released" checks
        token: Cancellation token of the run (long enumerations check it too)
        on_progress: Progress callback (enumeration reports SCANNING through it)
        source_types: Memo of source_id -> provider type lookups
    """

    scope: AnalysisScope = field(default_factory=AnalysisScope)
    options: AnalysisOptions = field(default_factory=AnalysisOptions)
    today: date = field(default_factory=lambda: datetime.now(UTC).date())
    token: CancellationToken = field(default_factory=CancellationToken)
    on_progress: ProgressCallback | None = None
    source_types: dict[str, ProviderType | None] = field(default_factory=dict)

    async def report(self, progress: AnalysisProgress) -> None:
        """Invoke the progress callback (sync or async). Callback errors are logged only."""
        if self.on_progress is None:
            return
        try:
            result = self.on_progress(progress)
            if result is not None:
                await result
        except Exception as e:
            logger.warning(f"Progress callback failed: {e}")

    async def report_scanning(self, current: int, total: int, item: str) -> None:
        await self.report(
            AnalysisProgress(
                current=current,
                total=total,
                current_item=item,
                phase=AnalysisPhase.SCANNING,
            )
        )


U = TypeVar("U", bound=AnalysisUnit)


class CompletenessAnalyzer(ABC, Generic[U]):
    """Template for one kind of completeness analysis."""

    kind: ClassVar[CompletenessKind]

    def __init__(self, store: ILocalStore) -> None:
        self._store = store

    @property
    def store(self) -> ILocalStore:
        return self._store

    # -------------------------------------------------------------------------
    # Hooks
    # -------------------------------------------------------------------------

    async def ensure_ready(self) -> None:
        """Raise ConfigurationError when the analyzer can't work (missing credentials)."""
        return None

    async def prepare(self, context: ScanContext) -> ScanContext:
        """Fill in run-wide defaults (e.g. settings-backed options) before enumeration."""
        return context

    @abstractmethod
    async def enumerate_units(self, context: ScanContext) -> list[U]:
        """Build the units of the run from the store's owned items."""

    async def find_unit(self, unit_key: str, context: ScanContext) -> U | None:
        """Find one unit by key. Default: enumerate and filter."""
        for unit in await self.enumerate_units(context):
            if unit.key == unit_key:
                return unit
        return None

    @abstractmethod
    async def resolve_external_id(self, unit: U, context: ScanContext) -> str | None:
        """Catalog id of the unit (cached or looked up), None if unresolvable."""

    @abstractmethod
    async def fetch_catalog(
        self, external_id: str, unit: U, context: ScanContext
    ) -> Any | None:
        """Fetch the catalog structure, None when the catalog doesn't know the id."""

    @abstractmethod
    def build_record(
        self, unit: U, external_id: str, catalog: Any, context: ScanContext
    ) -> CompletenessRecord | None:
        """Apply inclusion rules and diff. None means "not tracked at all"."""

    @abstractmethod
    def build_unmatched_record(self, unit: U, scope: AnalysisScope) -> CompletenessRecord:
        """Record for a unit the catalog could not be matched to."""

    def artwork_for(self, record: CompletenessRecord, unit: U) -> ArtworkUpdate:
        return ArtworkUpdate(poster_url=record.poster_url, backdrop_url=record.backdrop_url)

    def artwork_targets(self, unit: U) -> list[OwnedItem]:
        """Owned items that receive pushed artwork."""
        return unit.items

    # -------------------------------------------------------------------------
    # Shared helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def owned_filter(scope: AnalysisScope, **kwargs: Any) -> OwnedItemFilter:
        return OwnedItemFilter(
            source_id=scope.source_id, library_id=scope.library_id, **kwargs
        )

    async def should_skip(self, unit: U, context: ScanContext) -> bool:
        """Fresh record + unchanged owned count -> nothing relevant changed (heuristic)."""
        options = context.options
        if not options.skip_recently_analyzed:
            return False
        existing = await self._store.get_completeness_record(
            self.kind, unit.key, context.scope
        )
        if existing is None:
            return False
        return (
            was_recently_analyzed(existing.updated_at, options.reanalyze_after_days)
            and existing.owned_item_count == unit.owned_count
        )

    async def _source_type(
        self, source_id: str, context: ScanContext
    ) -> ProviderType | None:
        if source_id not in context.source_types:
            context.source_types[source_id] = await self._store.get_source_type(source_id)
        return context.source_types[source_id]

    # Yo, artwork push is a side quest: only "local" style sources (plain folders, Kodi's local
    # db) get it, only items WITHOUT artwork are touched, and any failure is logged and
    # swallowed. A broken poster URL must never fail a completeness analysis.
    async def push_artwork(
        self, record: CompletenessRecord, unit: U, context: ScanContext
    ) -> int:
        """Write catalog artwork to the unit's local items. Returns items updated."""
        if not record.is_matched:
            return 0
        artwork = self.artwork_for(record, unit)
        if artwork.is_empty():
            return 0

        updated = 0
        for item in self.artwork_targets(unit):
            if item.has_artwork:
                continue
            try:
                provider = item.source_type
                if provider is ProviderType.OTHER:
                    provider = await self._source_type(item.source_id, context) or provider
                if not provider.needs_artwork_push:
                    continue
                await self._store.update_item_artwork(item.id, artwork)
                updated += 1
            except Exception as e:
                logger.warning(
                    f"Artwork push failed for {self.kind} '{unit.title}' item {item.id}: {e}"
                )
        if updated:
            logger.debug(f"Pushed artwork to {updated} items of '{unit.title}'")
        return updated

    async def write_back_external_id(self, item_id: str, external_id: str) -> None:
        """Cache a resolved id on an owned item. Best effort."""
        try:
            await self._store.update_item_external_id(item_id, external_id)
        except Exception as e:
            logger.warning(f"Could not store external id for item {item_id}: {e}")

    # -------------------------------------------------------------------------
    # Manual matches
    # -------------------------------------------------------------------------

    def manual_match_key(self, unit_key: str) -> str:
        return f"{MANUAL_MATCH_PREFIX}:{self.kind.value}:{unit_key}"

    # Hey future me - a manual match beats EVERYTHING (cached ids, lookups). It lives in the
    # settings table; series have no owned item that could carry a show id. Subclasses
    # that do have such an item (albums) also write it there.
    async def apply_manual_match(self, unit: U, external_id: str) -> None:
        """Pin the catalog id of a unit (used by fix_match)."""
        await self._store.set_setting(self.manual_match_key(unit.key), external_id)
        unit.external_id = external_id

    async def matched_external_id(self, unit: U, context: ScanContext) -> str | None:
        """Manually pinned id if there is one, else resolve_external_id()."""
        manual = await self._store.get_setting(self.manual_match_key(unit.key))
        if manual:
            return manual
        return await self.resolve_external_id(unit, context)

    # -------------------------------------------------------------------------
    # Template
    # -------------------------------------------------------------------------

    async def analyze_unit(
        self, unit: U, context: ScanContext
    ) -> CompletenessRecord | None:
        """Run the full recipe for one unit and persist the result.

        Returns:
            The stored record, or None when the unit is not tracked (e.g. a one-movie
            "collection")

        Raises:
            ExternalServiceError: catalog failures (the runner counts them as failed)
        """
        external_id = await self.matched_external_id(unit, context)
        if not external_id:
            logger.info(f"{self.kind} '{unit.title}': no catalog match, marking unmatched")
            record = self.build_unmatched_record(unit, context.scope)
            await self._store.upsert_completeness_record(record)
            return record

        catalog = await self.fetch_catalog(external_id, unit, context)
        if catalog is None:
            logger.info(
                f"{self.kind} '{unit.title}': catalog has no entry {external_id}, "
                "marking unmatched"
            )
            record = self.build_unmatched_record(unit, context.scope)
            await self._store.upsert_completeness_record(record)
            return record

        record = self.build_record(unit, external_id, catalog, context)
        if record is None:
            logger.debug(f"{self.kind} '{unit.title}': not tracked")
            return None

        await self._store.upsert_completeness_record(record)
        await self.push_artwork(record, unit, context)
        logger.debug(
            f"{self.kind} '{unit.title}': {record.owned_count}/{record.total_count} "
            f"({record.completeness_percentage}%)"
        )
        return record


__all__ = [
    "MANUAL_MATCH_PREFIX",
    "UNMATCHED_STATUS",
    "CompletenessAnalyzer",
    "ProgressCallback",
    "ScanContext",
]

"""Completeness service - one facade per domain (series, collections, discography, albums).

Hey future me - this is what the rest of the app talks to. It doesn't analyze anything itself:
analyze_all() hands off to the domain's batch runner, analyze_one()/fix_match() drive the
domain's analyzer for a single unit, and the getters read stored records through the store
port. No network for getters, ever - they only show what the last run persisted.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from shelfcheck.application.services.completeness.base import (
    CompletenessAnalyzer,
    ProgressCallback,
    ScanContext,
)
from shelfcheck.domain.entities import CompletenessRecord, CompletenessStats
from shelfcheck.domain.exceptions import EntityNotFoundException, ValidationError
from shelfcheck.domain.value_objects import (
    AnalysisOptions,
    AnalysisResult,
    AnalysisScope,
    CompletenessKind,
    JobState,
)

if TYPE_CHECKING:
    from shelfcheck.application.services.external_id_resolver import ExternalIdResolver
    from shelfcheck.application.workers.completeness_job_runner import (
        CompletenessJobRunner,
    )

logger = logging.getLogger(__name__)


class CompletenessService:
    """Facade for one completeness domain."""

    def __init__(
        self,
        name: str,
        analyzer: CompletenessAnalyzer[Any],
        runner: CompletenessJobRunner,
        *,
        resolver: ExternalIdResolver | None = None,
    ) -> None:
        """Initialize service.

        Args:
            name: Domain name ("series", "collections", "discography", "albums")
            analyzer: Analyzer whose records this service exposes
            runner: Batch runner used by analyze_all()
            resolver: Id resolver whose memo is cleared on fix_match()
        """
        self.name = name
        self._analyzer = analyzer
        self._runner = runner
        self._resolver = resolver
        self._store = analyzer.store

    @property
    def kind(self) -> CompletenessKind:
        return self._analyzer.kind

    @property
    def runner(self) -> CompletenessJobRunner:
        return self._runner

    @property
    def status(self) -> JobState:
        return self._runner.state

    def get_status(self) -> dict[str, Any]:
        return {"service": self.name, "kind": self.kind.value, **self._runner.get_status()}

    # =========================================================================
    # ANALYSIS
    # =========================================================================

    async def analyze_all(
        self,
        on_progress: ProgressCallback | None = None,
        scope: AnalysisScope | None = None,
        options: AnalysisOptions | None = None,
    ) -> AnalysisResult:
        """Analyze every unit in scope as one batch job.

        Raises:
            ConfigurationError: catalog credentials are missing (nothing started)
            JobAlreadyRunningError: this domain is already running
        """
        return await self._runner.run(scope=scope, options=options, on_progress=on_progress)

    def cancel(self) -> bool:
        """Cancel the running batch job. Returns False if nothing was running."""
        return self._runner.cancel()

    async def analyze_one(
        self,
        unit_key: str,
        scope: AnalysisScope | None = None,
        options: AnalysisOptions | None = None,
    ) -> CompletenessRecord | None:
        """Analyze a single unit right now (no skip check, no write batch).

        Returns:
            The stored record, or None when the unit doesn't exist or isn't tracked

        Raises:
            ConfigurationError: catalog credentials are missing
            ExternalServiceError: catalog failures
        """
        await self._analyzer.ensure_ready()
        context = await self._single_unit_context(scope, options)

        unit = await self._analyzer.find_unit(unit_key, context)
        if unit is None:
            logger.info(f"{self.name}: no owned unit '{unit_key}' in {context.scope.key}")
            return None
        return await self._analyzer.analyze_unit(unit, context)

    # Listen up, fix_match is the escape hatch for wrong or missing catalog matches. The id is
    # pinned through the analyzer (survives future runs) and the unit is re-analyzed right away,
    # so the caller gets the corrected record back.
    async def fix_match(
        self,
        unit_key: str,
        external_id: str,
        scope: AnalysisScope | None = None,
    ) -> CompletenessRecord | None:
        """Pin a manually chosen catalog id for a unit and re-analyze it.

        Raises:
            ValidationError: empty external id
            EntityNotFoundException: no owned unit with that key
        """
        external_id = external_id.strip()
        if not external_id:
            raise ValidationError("Manual match needs a catalog id")

        await self._analyzer.ensure_ready()
        context = await self._single_unit_context(scope, None)

        unit = await self._analyzer.find_unit(unit_key, context)
        if unit is None:
            raise EntityNotFoundException(f"{self.kind} unit", unit_key)

        await self._analyzer.apply_manual_match(unit, external_id)
        if self._resolver is not None:
            self._resolver.clear()
        logger.info(f"{self.name}: '{unit.title}' manually matched to {external_id}")

        return await self._analyzer.analyze_unit(unit, context)

    async def _single_unit_context(
        self, scope: AnalysisScope | None, options: AnalysisOptions | None
    ) -> ScanContext:
        context = ScanContext(
            scope=scope or AnalysisScope(),
            options=options or AnalysisOptions(skip_recently_analyzed=False),
        )
        return await self._analyzer.prepare(context)

    # =========================================================================
    # RECORDS
    # =========================================================================

    async def get_records(
        self, scope: AnalysisScope | None = None
    ) -> list[CompletenessRecord]:
        """All stored records of this domain (all scopes when scope is None)."""
        return await self._store.list_completeness_records(self.kind, scope)

    async def get_record(
        self, unit_key: str, scope: AnalysisScope | None = None
    ) -> CompletenessRecord | None:
        return await self._store.get_completeness_record(
            self.kind, unit_key, scope or AnalysisScope()
        )

    async def get_incomplete(
        self, scope: AnalysisScope | None = None
    ) -> list[CompletenessRecord]:
        """Matched records below 100%, least complete first."""
        records = [
            record
            for record in await self.get_records(scope)
            if record.is_matched and record.completeness_percentage < 100
        ]
        records.sort(key=lambda r: (r.completeness_percentage, r.title.casefold()))
        return records

    async def get_stats(self, scope: AnalysisScope | None = None) -> CompletenessStats:
        return CompletenessStats.from_records(await self.get_records(scope))

    async def delete_record(
        self, unit_key: str, scope: AnalysisScope | None = None
    ) -> bool:
        deleted = await self._store.delete_completeness_record(
            self.kind, unit_key, scope or AnalysisScope()
        )
        if deleted:
            logger.debug(f"{self.name}: deleted record '{unit_key}'")
        return deleted


__all__ = ["CompletenessService"]

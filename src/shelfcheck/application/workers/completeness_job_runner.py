# Hey future me - this is the BATCH RUNNER behind every "Analyze all" button!
#
# One runner per domain (series, collections, discography). A run looks like this:
#
#   idle -> running
#     enumerate units of every stage (series / collections / artists + albums)
#     begin_write_batch()
#     for each stage, for each batch of N units:
#         cancelled?          -> break (NOT return - the finally below must flush!)
#         progress callback   (current, total, first unit of the batch, phase, skipped)
#         gather(analyze...)  -> each unit: skipped | analyzed | failed (never raises)
#         every 25 processed  -> force_checkpoint() (a failure here is FATAL, propagates)
#     end_write_batch()       (in finally)
#   -> completed | cancelled
#
# On cancel, records written since the last checkpoint are still in the open write batch.
# end_write_batch() in the finally flushes them, so a cancelled run keeps what it analyzed.
#
# A second run() while running raises JobAlreadyRunningError (write batches don't nest).
"""Batch job runner for completeness analysis."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any
from uuid import uuid4

from shelfcheck.application.services.completeness.base import (
    CompletenessAnalyzer,
    ProgressCallback,
    ScanContext,
)
from shelfcheck.domain.entities import AnalysisUnit
from shelfcheck.domain.exceptions import JobAlreadyRunningError
from shelfcheck.domain.ports import ILocalStore
from shelfcheck.domain.value_objects import (
    AnalysisOptions,
    AnalysisPhase,
    AnalysisProgress,
    AnalysisResult,
    AnalysisScope,
    CancellationToken,
    JobState,
)
from shelfcheck.infrastructure.observability.logging import (
    reset_job_id,
    set_job_id,
)

logger = logging.getLogger(__name__)

DEFAULT_CHECKPOINT_INTERVAL = 25

_SKIPPED = "skipped"
_ANALYZED = "analyzed"


@dataclass
class AnalysisStage:
    """One phase of a run: which analyzer, reported under which phase name, in what batches."""

    phase: AnalysisPhase
    analyzer: CompletenessAnalyzer[Any]
    batch_size: int = 5


@dataclass
class _StageUnits:
    stage: AnalysisStage
    units: list[AnalysisUnit] = field(default_factory=list)


class CompletenessJobRunner:
    """Runs stages of completeness analysis as one cancellable, checkpointed job."""

    def __init__(
        self,
        name: str,
        store: ILocalStore,
        stages: list[AnalysisStage],
        *,
        checkpoint_interval: int = DEFAULT_CHECKPOINT_INTERVAL,
        default_options: AnalysisOptions | None = None,
    ) -> None:
        """Initialize runner.

        Args:
            name: Job name for logs and status ("series", "collections", ...)
            store: Local store (write batching + checkpoints)
            stages: Stages executed in order
            checkpoint_interval: Force a checkpoint every N processed units
            default_options: Options used when run() gets none
        """
        if not stages:
            raise ValueError("A job runner needs at least one stage")
        self.name = name
        self._store = store
        self._stages = stages
        self._checkpoint_interval = max(1, checkpoint_interval)
        self._default_options = default_options or AnalysisOptions()

        self._state = JobState.IDLE
        self._token = CancellationToken()
        self._job_id: str | None = None
        self._progress: AnalysisProgress | None = None
        self._last_result: AnalysisResult | None = None
        self._started_at: datetime | None = None
        self._finished_at: datetime | None = None

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    @property
    def state(self) -> JobState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is JobState.RUNNING

    @property
    def stages(self) -> list[AnalysisStage]:
        return list(self._stages)

    def cancel(self, reason: str | None = None) -> bool:
        """Request cancellation of the running job.

        Cooperative: in-flight requests of the current batch still finish, the loop stops
        at the next batch boundary.

        Returns:
            True if a running job was asked to stop
        """
        if not self.is_running:
            return False
        logger.info(f"Job '{self.name}' cancellation requested")
        self._token.cancel(reason or "cancelled by user")
        return True

    def get_status(self) -> dict[str, Any]:
        """Get runner status for monitoring/UI."""
        return {
            "name": self.name,
            "state": self._state.value,
            "job_id": self._job_id,
            "progress": self._progress.to_dict() if self._progress else None,
            "last_result": self._last_result.to_dict() if self._last_result else None,
            "started_at": self._started_at.isoformat() if self._started_at else None,
            "finished_at": self._finished_at.isoformat() if self._finished_at else None,
        }

    # -------------------------------------------------------------------------
    # Run
    # -------------------------------------------------------------------------

    async def run(
        self,
        scope: AnalysisScope | None = None,
        options: AnalysisOptions | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> AnalysisResult:
        """Run all stages once.

        Raises:
            JobAlreadyRunningError: a run is already in progress on this runner
            ConfigurationError: an analyzer is not configured (nothing was started)
            Exception: store checkpoint failures (fatal)
        """
        if self.is_running:
            raise JobAlreadyRunningError(self.name)
        # Claimed before the first await so a concurrent run() sees it
        self._state = JobState.RUNNING

        # A misconfigured job never starts
        try:
            for stage in self._stages:
                await stage.analyzer.ensure_ready()
        except Exception:
            self._state = JobState.IDLE
            raise

        self._token = CancellationToken()
        self._job_id = uuid4().hex[:12]
        self._progress = None
        self._started_at = datetime.now(UTC)
        self._finished_at = None
        job_token = set_job_id(self._job_id)

        context = ScanContext(
            scope=scope or AnalysisScope(),
            options=options or replace(self._default_options),
            token=self._token,
            on_progress=on_progress,
        )
        final_state = JobState.IDLE

        try:
            logger.info(f"Job '{self.name}' started (scope={context.scope.key})")
            result = await self._run(context)
            final_state = JobState.COMPLETED if result.completed else JobState.CANCELLED
            self._last_result = result
            logger.info(
                f"Job '{self.name}' {final_state.value}: analyzed={result.analyzed} "
                f"skipped={result.skipped} failed={result.failed}"
            )
            return result
        except Exception:
            logger.exception(f"Job '{self.name}' aborted")
            raise
        finally:
            self._state = final_state
            self._finished_at = datetime.now(UTC)
            reset_job_id(job_token)

    async def _run(self, context: ScanContext) -> AnalysisResult:
        for stage in self._stages:
            context = await stage.analyzer.prepare(context)

        planned: list[_StageUnits] = []
        for stage in self._stages:
            if context.token.is_cancelled:
                break
            units = await stage.analyzer.enumerate_units(context)
            planned.append(_StageUnits(stage=stage, units=units))

        total = sum(len(p.units) for p in planned)
        current = analyzed = skipped = failed = 0
        last_checkpoint = 0
        last_phase = self._stages[0].phase

        await self._store.begin_write_batch()
        try:
            for plan in planned:
                stage = plan.stage
                last_phase = stage.phase
                for start in range(0, len(plan.units), stage.batch_size):
                    if context.token.is_cancelled:
                        break

                    batch = plan.units[start : start + stage.batch_size]
                    await self._emit(
                        context,
                        AnalysisProgress(
                            current=current,
                            total=total,
                            current_item=batch[0].title,
                            phase=stage.phase,
                            skipped=skipped,
                        ),
                    )

                    outcomes = await asyncio.gather(
                        *(self._process_unit(stage, unit, context) for unit in batch),
                        return_exceptions=True,
                    )
                    for unit, outcome in zip(batch, outcomes, strict=True):
                        if outcome == _SKIPPED:
                            skipped += 1
                        elif outcome == _ANALYZED:
                            analyzed += 1
                        else:
                            failed += 1
                            logger.error(
                                f"Job '{self.name}': {stage.analyzer.kind} "
                                f"'{unit.title}' failed: {outcome}",
                                exc_info=outcome
                                if isinstance(outcome, BaseException)
                                else None,
                            )
                    current += len(batch)

                    if current - last_checkpoint >= self._checkpoint_interval:
                        await self._store.force_checkpoint()
                        last_checkpoint = current
                        logger.debug(f"Job '{self.name}': checkpoint at {current}/{total}")

                if context.token.is_cancelled:
                    break
        except BaseException:
            # Keep the original error; a second failure while closing is only logged
            try:
                await self._store.end_write_batch()
            except Exception as e:
                logger.error(f"Job '{self.name}': closing the write batch failed too: {e}")
            raise
        await self._store.end_write_batch()

        completed = not context.token.is_cancelled
        if completed:
            await self._emit(
                context,
                AnalysisProgress(
                    current=total,
                    total=total,
                    current_item="",
                    phase=AnalysisPhase.COMPLETE,
                    skipped=skipped,
                ),
            )
        else:
            logger.info(
                f"Job '{self.name}' cancelled at {current}/{total} "
                f"({context.token.reason})"
            )
            self._progress = AnalysisProgress(
                current=current,
                total=total,
                current_item="",
                phase=last_phase,
                skipped=skipped,
            )

        return AnalysisResult(
            completed=completed, analyzed=analyzed, skipped=skipped, failed=failed
        )

    async def _process_unit(
        self, stage: AnalysisStage, unit: AnalysisUnit, context: ScanContext
    ) -> str:
        if await stage.analyzer.should_skip(unit, context):
            return _SKIPPED
        await stage.analyzer.analyze_unit(unit, context)
        return _ANALYZED

    async def _emit(self, context: ScanContext, progress: AnalysisProgress) -> None:
        self._progress = progress
        await context.report(progress)


__all__ = ["AnalysisStage", "CompletenessJobRunner", "DEFAULT_CHECKPOINT_INTERVAL"]

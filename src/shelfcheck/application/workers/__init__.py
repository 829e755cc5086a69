"""Background jobs."""

from shelfcheck.application.workers.completeness_job_runner import (
    DEFAULT_CHECKPOINT_INTERVAL,
    AnalysisStage,
    CompletenessJobRunner,
)

__all__ = ["DEFAULT_CHECKPOINT_INTERVAL", "AnalysisStage", "CompletenessJobRunner"]

"""Observability infrastructure for structured logging."""

from shelfcheck.infrastructure.observability.logging import (
    configure_logging,
    get_job_id,
    reset_job_id,
    set_job_id,
)

__all__ = [
    "configure_logging",
    "get_job_id",
    "reset_job_id",
    "set_job_id",
]

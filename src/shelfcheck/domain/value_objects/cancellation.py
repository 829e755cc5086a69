"""Cooperative cancellation token for batch analysis runs."""

from dataclasses import dataclass, field


# Hey future me - this is a VALUE handed into each run, not a flag on a base class!
# The runner creates a fresh token per run (that's the "reset"), analyzers only READ it.
# Cancellation is cooperative: nobody interrupts an in-flight HTTP call, the loops just
# check is_cancelled at batch boundaries and break out.
@dataclass
class CancellationToken:
    """Flag checked between batches to stop a long-running analysis."""

    _cancelled: bool = field(default=False, init=False)
    _reason: str | None = field(default=None, init=False)

    def cancel(self, reason: str | None = None) -> None:
        """Request cancellation. Idempotent - the first reason wins."""
        if not self._cancelled:
            self._cancelled = True
            self._reason = reason

    @property
    def is_cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason


__all__ = ["CancellationToken"]

"""Value objects describing analysis scope, options, progress and results.

Hey future me - everything the outside world passes INTO an analysis run (scope, options)
and everything it gets BACK (progress snapshots, the final result) lives here. They are
plain dataclasses on purpose: the runner and the analyzers can be unit-tested without a
store or a catalog in sight.
"""

import math
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from enum import Enum
from typing import Any


class CompletenessKind(str, Enum):
    """Logical unit a CompletenessRecord describes."""

    SERIES = "series"
    COLLECTION = "collection"
    ARTIST = "artist"
    ALBUM = "album"

    def __str__(self) -> str:
        return self.value


class ProviderType(str, Enum):
    """Library provider that contributed an owned item."""

    PLEX = "plex"
    JELLYFIN = "jellyfin"
    EMBY = "emby"
    KODI = "kodi"
    KODI_LOCAL = "kodi-local"
    LOCAL = "local"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: str | None) -> "ProviderType":
        """Parse string to enum, defaulting to OTHER if unknown."""
        if not value:
            return cls.OTHER
        try:
            return cls(value.lower().strip())
        except ValueError:
            return cls.OTHER

    # Hey future me - "local" sources are plain folders scanned from disk. They have no
    # server that hands us posters, so after matching we push catalog artwork back into the
    # store for them. Plex & co already have artwork - never overwrite theirs!
    @property
    def needs_artwork_push(self) -> bool:
        return self in (ProviderType.LOCAL, ProviderType.KODI_LOCAL)

    def __str__(self) -> str:
        return self.value


class AnalysisPhase(str, Enum):
    """Domain stage names reported through progress callbacks.

    series:      scanning -> analyzing -> complete
    collections: scanning -> fetching  -> complete
    discography: artists  -> albums    -> complete
    """

    SCANNING = "scanning"
    ANALYZING = "analyzing"
    FETCHING = "fetching"
    ARTISTS = "artists"
    ALBUMS = "albums"
    COMPLETE = "complete"

    def __str__(self) -> str:
        return self.value


class JobState(str, Enum):
    """Batch job state machine: idle -> running -> {cancelled, completed}."""

    IDLE = "idle"
    RUNNING = "running"
    CANCELLED = "cancelled"
    COMPLETED = "completed"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class AnalysisScope:
    """Provider/library filter. Both None means "everything, deduplicated"."""

    source_id: str | None = None
    library_id: str | None = None

    @property
    def key(self) -> str:
        """Stable string used as part of a record's identity."""
        return f"{self.source_id or '*'}:{self.library_id or '*'}"

    @property
    def is_single_provider(self) -> bool:
        return self.source_id is not None

    @classmethod
    def from_key(cls, key: str) -> "AnalysisScope":
        source_id, _, library_id = key.partition(":")
        return cls(
            source_id=None if source_id in ("", "*") else source_id,
            library_id=None if library_id in ("", "*") else library_id,
        )


@dataclass
class AnalysisOptions:
    """Per-run tuning knobs.

    Attributes:
        skip_recently_analyzed: Skip units whose record is fresh and whose owned count
            did not change.
        reanalyze_after_days: Freshness window in days.
        deduplicate_by_external_id: Merge ownership across providers. None means
            "True unless the scope names a single provider".
        filter_vinyl_only: Exclude vinyl-only release groups (expensive). None means
            "use the configured default".
        include_eps: Count EPs in discography completeness.
        include_singles: Count singles in discography completeness.
    """

    skip_recently_analyzed: bool = True
    reanalyze_after_days: int = 7
    deduplicate_by_external_id: bool | None = None
    filter_vinyl_only: bool | None = None
    include_eps: bool = True
    include_singles: bool = True

    def should_deduplicate(self, scope: AnalysisScope) -> bool:
        if self.deduplicate_by_external_id is None:
            return not scope.is_single_provider
        return self.deduplicate_by_external_id


@dataclass(frozen=True)
class AnalysisProgress:
    """Snapshot handed to progress callbacks before each batch."""

    current: int
    total: int
    current_item: str
    phase: AnalysisPhase
    skipped: int = 0

    @property
    def percentage(self) -> int:
        if self.total <= 0:
            return 100 if self.phase is AnalysisPhase.COMPLETE else 0
        return min(100, round(self.current * 100 / self.total))

    def to_dict(self) -> dict[str, Any]:
        return {
            "current": self.current,
            "total": self.total,
            "current_item": self.current_item,
            "phase": self.phase.value,
            "skipped": self.skipped,
            "percentage": self.percentage,
        }


@dataclass(frozen=True)
class AnalysisResult:
    """Outcome of a batch run. completed=False means it was cancelled."""

    completed: bool
    analyzed: int
    skipped: int
    failed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "completed": self.completed,
            "analyzed": self.analyzed,
            "skipped": self.skipped,
            "failed": self.failed,
        }


# =============================================================================
# HELPERS
# =============================================================================


def calculate_completeness(owned: int, total: int, *, empty: int = 100) -> int:
    """Return round(owned / total * 100) clamped to [0, 100].

    Rounds half up (63.5 -> 64) rather than Python's banker's rounding. An empty
    universe returns ``empty``.
    """
    if total <= 0:
        return empty
    percentage = math.floor(owned * 100 / total + 0.5)
    return max(0, min(100, percentage))


def was_recently_analyzed(
    updated_at: datetime | None, reanalyze_after_days: int, now: datetime | None = None
) -> bool:
    """Check whether a record was updated inside the freshness window."""
    if updated_at is None:
        return False
    if updated_at.tzinfo is None:
        updated_at = updated_at.replace(tzinfo=UTC)
    now = now or datetime.now(UTC)
    return now - updated_at < timedelta(days=reanalyze_after_days)


def parse_catalog_date(value: str | None) -> date | None:
    """Parse catalog dates ("2021-03-04", "2021-03", "2021"). Garbage yields None."""
    if not value:
        return None
    parts = value.strip().split("-")
    try:
        year = int(parts[0])
        month = int(parts[1]) if len(parts) > 1 and parts[1] else 1
        day = int(parts[2][:2]) if len(parts) > 2 and parts[2] else 1
        return date(year, month, day)
    except (ValueError, IndexError):
        return None


def parse_year(value: str | None) -> int | None:
    parsed = parse_catalog_date(value)
    return parsed.year if parsed else None


def is_released(value: str | None, today: date, *, include_undated: bool = False) -> bool:
    """Check whether a catalog date is on or before today.

    Undated items are excluded unless ``include_undated`` is set (MusicBrainz leaves
    first-release-date empty for many legit release groups).
    """
    parsed = parse_catalog_date(value)
    if parsed is None:
        return include_undated
    return parsed <= today


__all__ = [
    "AnalysisOptions",
    "AnalysisPhase",
    "AnalysisProgress",
    "AnalysisResult",
    "AnalysisScope",
    "CompletenessKind",
    "JobState",
    "ProviderType",
    "calculate_completeness",
    "is_released",
    "parse_catalog_date",
    "parse_year",
    "was_recently_analyzed",
]

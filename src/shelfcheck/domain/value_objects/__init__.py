"""Domain value objects."""

from shelfcheck.domain.value_objects.album_types import (
    CATEGORY_WEIGHTS,
    PrimaryAlbumType,
    ReleaseCategory,
    SecondaryAlbumType,
    classify_release_group,
    is_digital_format,
)
from shelfcheck.domain.value_objects.analysis import (
    AnalysisOptions,
    AnalysisPhase,
    AnalysisProgress,
    AnalysisResult,
    AnalysisScope,
    CompletenessKind,
    JobState,
    ProviderType,
    calculate_completeness,
    is_released,
    parse_catalog_date,
    parse_year,
    was_recently_analyzed,
)
from shelfcheck.domain.value_objects.cancellation import CancellationToken
from shelfcheck.domain.value_objects.title_normalization import (
    clean_title_for_search,
    normalize_release_title,
    normalize_track_title,
)

__all__ = [
    "CATEGORY_WEIGHTS",
    "AnalysisOptions",
    "AnalysisPhase",
    "AnalysisProgress",
    "AnalysisResult",
    "AnalysisScope",
    "CancellationToken",
    "CompletenessKind",
    "JobState",
    "PrimaryAlbumType",
    "ProviderType",
    "ReleaseCategory",
    "SecondaryAlbumType",
    "calculate_completeness",
    "classify_release_group",
    "clean_title_for_search",
    "is_digital_format",
    "is_released",
    "normalize_release_title",
    "normalize_track_title",
    "parse_catalog_date",
    "parse_year",
    "was_recently_analyzed",
]

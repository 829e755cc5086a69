"""Completeness analyzers - one per kind of logical unit."""

from shelfcheck.application.services.completeness.album_track_analyzer import (
    AlbumTrackAnalyzer,
)
from shelfcheck.application.services.completeness.base import (
    MANUAL_MATCH_PREFIX,
    UNMATCHED_STATUS,
    CompletenessAnalyzer,
    ProgressCallback,
    ScanContext,
)
from shelfcheck.application.services.completeness.collection_analyzer import (
    CollectionAnalyzer,
)
from shelfcheck.application.services.completeness.discography_analyzer import (
    VINYL_FILTER_SETTING,
    DiscographyAnalyzer,
)
from shelfcheck.application.services.completeness.series_analyzer import (
    SeriesAnalyzer,
)

__all__ = [
    "MANUAL_MATCH_PREFIX",
    "UNMATCHED_STATUS",
    "VINYL_FILTER_SETTING",
    "AlbumTrackAnalyzer",
    "CollectionAnalyzer",
    "CompletenessAnalyzer",
    "DiscographyAnalyzer",
    "ProgressCallback",
    "ScanContext",
    "SeriesAnalyzer",
]

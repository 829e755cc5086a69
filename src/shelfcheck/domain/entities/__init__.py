"""Domain entities."""

from shelfcheck.domain.entities.analysis_units import (
    AlbumUnit,
    AnalysisUnit,
    ArtistUnit,
    CollectionUnit,
    SeriesUnit,
)
from shelfcheck.domain.entities.completeness import (
    RECORD_TYPES,
    AlbumCompleteness,
    ArtistCompleteness,
    CollectionCompleteness,
    CompletenessRecord,
    CompletenessStats,
    MissingEpisode,
    MissingItem,
    MissingMovie,
    MissingRelease,
    MissingTrack,
    SeriesCompleteness,
)
from shelfcheck.domain.entities.owned_item import (
    ArtworkUpdate,
    MediaKind,
    OwnedItem,
    OwnedItemFilter,
)

__all__ = [
    "RECORD_TYPES",
    "AlbumCompleteness",
    "AlbumUnit",
    "AnalysisUnit",
    "ArtistCompleteness",
    "ArtistUnit",
    "ArtworkUpdate",
    "CollectionCompleteness",
    "CollectionUnit",
    "CompletenessRecord",
    "CompletenessStats",
    "MediaKind",
    "MissingEpisode",
    "MissingItem",
    "MissingMovie",
    "MissingRelease",
    "MissingTrack",
    "OwnedItem",
    "OwnedItemFilter",
    "SeriesCompleteness",
    "SeriesUnit",
]

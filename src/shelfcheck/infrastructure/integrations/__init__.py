"""External catalog client implementations."""

from shelfcheck.infrastructure.integrations.catalog_client import (
    CatalogClient,
    RetryingCatalogClient,
    build_cache_key,
)
from shelfcheck.infrastructure.integrations.musicbrainz_client import MusicBrainzClient
from shelfcheck.infrastructure.integrations.retry import (
    RetryPolicy,
    parse_retry_after,
    retry_with_backoff,
)
from shelfcheck.infrastructure.integrations.tmdb_client import FindResults, TMDBClient

__all__ = [
    "CatalogClient",
    "FindResults",
    "MusicBrainzClient",
    "RetryPolicy",
    "RetryingCatalogClient",
    "TMDBClient",
    "build_cache_key",
    "parse_retry_after",
    "retry_with_backoff",
]

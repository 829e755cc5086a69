"""Application services."""

from shelfcheck.application.services.completeness_service import CompletenessService
from shelfcheck.application.services.entity_deduplicator import (
    EntityDeduplicator,
    keep_best,
)
from shelfcheck.application.services.external_id_resolver import ExternalIdResolver

__all__ = [
    "CompletenessService",
    "EntityDeduplicator",
    "ExternalIdResolver",
    "keep_best",
]

"""Domain ports (interfaces) for dependency inversion."""

from abc import ABC, abstractmethod

from shelfcheck.domain.entities import (
    ArtworkUpdate,
    CompletenessRecord,
    OwnedItem,
    OwnedItemFilter,
)
from shelfcheck.domain.value_objects import (
    AnalysisScope,
    CompletenessKind,
    ProviderType,
)


# Hey future me - this is the ONLY door between the completeness engine and the local library
# database. The engine never sees tables or SQL. The SQLAlchemy adapter lives in
# infrastructure/persistence, tests use an in-memory fake. Keep this interface SMALL - every
# method added here has to be implemented twice.
#
# Write batching contract: begin_write_batch() opens ONE batch (nested opens raise
# InvalidStateException), writes inside it are coalesced, force_checkpoint() flushes them to
# durable storage, end_write_batch() flushes and closes. Only the batch job runner opens batches.
class ILocalStore(ABC):
    """Read/write access to owned items, completeness records and settings."""

    # -------------------------------------------------------------------------
    # Owned items (read-only except for enrichment write-backs)
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_owned_items(self, item_filter: OwnedItemFilter) -> list[OwnedItem]:
        """Get owned items matching the filter, in stable (insertion) order."""
        pass

    @abstractmethod
    async def get_source_type(self, source_id: str) -> ProviderType | None:
        """Get the provider type of a media source, or None if unknown."""
        pass

    @abstractmethod
    async def update_item_artwork(self, item_id: str, artwork: ArtworkUpdate) -> None:
        """Store catalog artwork URLs on an owned item."""
        pass

    @abstractmethod
    async def update_item_external_id(self, item_id: str, external_id: str) -> None:
        """Cache a resolved catalog id on an owned item."""
        pass

    # -------------------------------------------------------------------------
    # Completeness records
    # -------------------------------------------------------------------------

    @abstractmethod
    async def upsert_completeness_record(self, record: CompletenessRecord) -> None:
        """Insert or overwrite the record for (kind, unit_key, scope)."""
        pass

    @abstractmethod
    async def get_completeness_record(
        self, kind: CompletenessKind, unit_key: str, scope: AnalysisScope
    ) -> CompletenessRecord | None:
        """Get one record or None."""
        pass

    @abstractmethod
    async def list_completeness_records(
        self, kind: CompletenessKind, scope: AnalysisScope | None = None
    ) -> list[CompletenessRecord]:
        """List records of a kind, optionally restricted to one scope."""
        pass

    @abstractmethod
    async def delete_completeness_record(
        self, kind: CompletenessKind, unit_key: str, scope: AnalysisScope
    ) -> bool:
        """Delete one record. Returns False if it didn't exist."""
        pass

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    @abstractmethod
    async def get_setting(self, key: str) -> str | None:
        """Get a setting value or None."""
        pass

    @abstractmethod
    async def set_setting(self, key: str, value: str) -> None:
        """Set a setting value."""
        pass

    # -------------------------------------------------------------------------
    # Write batching
    # -------------------------------------------------------------------------

    @abstractmethod
    async def begin_write_batch(self) -> None:
        """Start coalescing writes until end_write_batch()."""
        pass

    @abstractmethod
    async def end_write_batch(self) -> None:
        """Flush pending writes and leave batch mode."""
        pass

    @abstractmethod
    async def force_checkpoint(self) -> None:
        """Flush pending writes to durable storage without leaving batch mode."""
        pass


__all__ = ["ILocalStore"]

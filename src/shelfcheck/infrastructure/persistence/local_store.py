"""SQLAlchemy implementation of the ILocalStore port."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator, Iterable
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import Select, delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from shelfcheck.domain.entities import (
    RECORD_TYPES,
    ArtworkUpdate,
    CompletenessRecord,
    MediaKind,
    OwnedItem,
    OwnedItemFilter,
)
from shelfcheck.domain.exceptions import EntityNotFoundException, InvalidStateException
from shelfcheck.domain.ports import ILocalStore
from shelfcheck.domain.value_objects import (
    AnalysisScope,
    CompletenessKind,
    ProviderType,
)
from shelfcheck.infrastructure.persistence.database import Database
from shelfcheck.infrastructure.persistence.models import (
    AppSettingModel,
    CompletenessRecordModel,
    MediaSourceModel,
    OwnedItemModel,
    ensure_utc_aware,
    utc_now,
)

logger = logging.getLogger(__name__)


# =============================================================================
# MAPPERS
# =============================================================================


def _owned_item_from_model(model: OwnedItemModel) -> OwnedItem:
    return OwnedItem(
        id=model.id,
        kind=MediaKind(model.kind),
        title=model.title,
        source_id=model.source_id,
        source_type=ProviderType.from_string(model.source_type),
        library_id=model.library_id,
        provider_item_id=model.provider_item_id,
        year=model.year,
        external_id=model.external_id,
        xref_id=model.xref_id,
        quality_proxy=model.quality_proxy,
        series_title=model.series_title,
        series_external_id=model.series_external_id,
        season_number=model.season_number,
        episode_number=model.episode_number,
        artist_name=model.artist_name,
        artist_external_id=model.artist_external_id,
        album_title=model.album_title,
        parent_id=model.parent_id,
        track_number=model.track_number,
        disc_number=model.disc_number,
        has_artwork=model.has_artwork,
        updated_at=ensure_utc_aware(model.updated_at) if model.updated_at else None,
    )


_OWNED_ITEM_COLUMNS = (
    "kind",
    "title",
    "source_id",
    "library_id",
    "provider_item_id",
    "year",
    "external_id",
    "xref_id",
    "quality_proxy",
    "series_title",
    "series_external_id",
    "season_number",
    "episode_number",
    "artist_name",
    "artist_external_id",
    "album_title",
    "parent_id",
    "track_number",
    "disc_number",
    "has_artwork",
)


def _owned_item_values(item: OwnedItem) -> dict[str, Any]:
    values: dict[str, Any] = {name: getattr(item, name) for name in _OWNED_ITEM_COLUMNS}
    values["kind"] = item.kind.value
    values["source_type"] = item.source_type.value
    return values


# Hey future me - this is the ONLY place completeness records touch JSON. missing_items goes
# through each MissingItem's to_dict/from_dict, the kind-specific extras through
# details_to_dict/details_from_dict. RECORD_TYPES picks the record class from the kind column.
def _record_to_values(record: CompletenessRecord) -> dict[str, Any]:
    return {
        "kind": record.kind.value,
        "unit_key": record.unit_key,
        "scope_key": record.scope.key,
        "title": record.title,
        "external_id": record.external_id,
        "total_count": record.total_count,
        "owned_count": record.owned_count,
        "owned_item_count": record.owned_item_count,
        "completeness_percentage": record.completeness_percentage,
        "missing_items": [item.to_dict() for item in record.missing_items],
        "details": record.details_to_dict(),
        "poster_url": record.poster_url,
        "backdrop_url": record.backdrop_url,
        "status": record.status,
        "is_matched": record.is_matched,
    }


def _record_from_model(model: CompletenessRecordModel) -> CompletenessRecord:
    record_type = RECORD_TYPES[CompletenessKind(model.kind)]
    missing = [
        record_type.missing_item_type.from_dict(data) for data in model.missing_items or []
    ]
    return record_type(
        unit_key=model.unit_key,
        title=model.title,
        scope=AnalysisScope.from_key(model.scope_key),
        external_id=model.external_id,
        total_count=model.total_count,
        owned_count=model.owned_count,
        owned_item_count=model.owned_item_count,
        completeness_percentage=model.completeness_percentage,
        missing_items=missing,
        poster_url=model.poster_url,
        backdrop_url=model.backdrop_url,
        status=model.status,
        created_at=ensure_utc_aware(model.created_at) if model.created_at else None,
        updated_at=ensure_utc_aware(model.updated_at) if model.updated_at else None,
        **record_type.details_from_dict(model.details or {}),
    )


# =============================================================================
# STORE
# =============================================================================


# Listen up, the write batch is ONE long-lived AsyncSession. Outside a batch every call gets
# its own session and commits right away. Inside a batch everything (reads too, so the skip
# check sees records written earlier in the run) goes through the batch session, and only
# force_checkpoint()/end_write_batch() commit. The runner gathers several units at once, but an
# AsyncSession can't run two statements concurrently - hence the lock around every operation.
class SqlAlchemyLocalStore(ILocalStore):
    """Local store backed by SQLAlchemy (SQLite via aiosqlite by default)."""

    def __init__(self, database: Database) -> None:
        self._db = database
        self._lock = asyncio.Lock()
        self._batch_session: AsyncSession | None = None

    @property
    def in_write_batch(self) -> bool:
        return self._batch_session is not None

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession, None]:
        async with self._lock:
            if self._batch_session is not None:
                yield self._batch_session
                return
            async with self._db.session_scope() as session:
                yield session

    # -------------------------------------------------------------------------
    # Owned items
    # -------------------------------------------------------------------------

    @staticmethod
    def _owned_items_query(item_filter: OwnedItemFilter) -> Select[tuple[OwnedItemModel]]:
        stmt = select(OwnedItemModel)
        if item_filter.kind is not None:
            stmt = stmt.where(OwnedItemModel.kind == item_filter.kind.value)
        if item_filter.source_id is not None:
            stmt = stmt.where(OwnedItemModel.source_id == item_filter.source_id)
        if item_filter.library_id is not None:
            stmt = stmt.where(OwnedItemModel.library_id == item_filter.library_id)
        if item_filter.series_title is not None:
            stmt = stmt.where(OwnedItemModel.series_title == item_filter.series_title)
        if item_filter.artist_name is not None:
            stmt = stmt.where(
                func.lower(OwnedItemModel.artist_name) == item_filter.artist_name.lower()
            )
        if item_filter.parent_id is not None:
            stmt = stmt.where(OwnedItemModel.parent_id == item_filter.parent_id)
        if item_filter.ids is not None:
            stmt = stmt.where(OwnedItemModel.id.in_(item_filter.ids))
        return stmt.order_by(OwnedItemModel.created_at, OwnedItemModel.id)

    async def get_owned_items(self, item_filter: OwnedItemFilter) -> list[OwnedItem]:
        async with self._session() as session:
            result = await session.execute(self._owned_items_query(item_filter))
            return [_owned_item_from_model(model) for model in result.scalars()]

    async def save_owned_items(self, items: Iterable[OwnedItem]) -> int:
        """Insert or update owned items (used by library scanning and tests)."""
        count = 0
        async with self._session() as session:
            for item in items:
                model = await session.get(OwnedItemModel, item.id)
                values = _owned_item_values(item)
                if model is None:
                    session.add(OwnedItemModel(id=item.id, **values))
                else:
                    for name, value in values.items():
                        setattr(model, name, value)
                count += 1
            await session.flush()
        return count

    async def save_media_source(
        self, source_id: str, name: str, provider_type: ProviderType
    ) -> None:
        async with self._session() as session:
            model = await session.get(MediaSourceModel, source_id)
            if model is None:
                session.add(
                    MediaSourceModel(
                        id=source_id, name=name, provider_type=provider_type.value
                    )
                )
            else:
                model.name = name
                model.provider_type = provider_type.value

    async def get_source_type(self, source_id: str) -> ProviderType | None:
        async with self._session() as session:
            model = await session.get(MediaSourceModel, source_id)
            if model is None:
                return None
            return ProviderType.from_string(model.provider_type)

    async def update_item_artwork(self, item_id: str, artwork: ArtworkUpdate) -> None:
        async with self._session() as session:
            model = await session.get(OwnedItemModel, item_id)
            if model is None:
                raise EntityNotFoundException("Owned item", item_id)
            if artwork.poster_url:
                model.poster_url = artwork.poster_url
            if artwork.backdrop_url:
                model.backdrop_url = artwork.backdrop_url
            if artwork.thumb_url:
                model.thumb_url = artwork.thumb_url
            if artwork.season_poster_url:
                model.season_poster_url = artwork.season_poster_url
            if artwork.extra:
                model.extra_artwork = {**(model.extra_artwork or {}), **artwork.extra}
            if not artwork.is_empty():
                model.has_artwork = True

    async def update_item_external_id(self, item_id: str, external_id: str) -> None:
        async with self._session() as session:
            model = await session.get(OwnedItemModel, item_id)
            if model is None:
                raise EntityNotFoundException("Owned item", item_id)
            model.external_id = external_id

    # -------------------------------------------------------------------------
    # Completeness records
    # -------------------------------------------------------------------------

    @staticmethod
    def _record_query(
        kind: CompletenessKind, unit_key: str, scope: AnalysisScope
    ) -> Select[tuple[CompletenessRecordModel]]:
        return select(CompletenessRecordModel).where(
            CompletenessRecordModel.kind == kind.value,
            CompletenessRecordModel.unit_key == unit_key,
            CompletenessRecordModel.scope_key == scope.key,
        )

    async def upsert_completeness_record(self, record: CompletenessRecord) -> None:
        values = _record_to_values(record)
        now = utc_now()
        async with self._session() as session:
            model = (
                await session.execute(
                    self._record_query(record.kind, record.unit_key, record.scope)
                )
            ).scalar_one_or_none()
            if model is None:
                model = CompletenessRecordModel(**values, created_at=now, updated_at=now)
                session.add(model)
            else:
                for name, value in values.items():
                    setattr(model, name, value)
                model.updated_at = now
            await session.flush()
            record.created_at = ensure_utc_aware(model.created_at)
            record.updated_at = now

    async def get_completeness_record(
        self, kind: CompletenessKind, unit_key: str, scope: AnalysisScope
    ) -> CompletenessRecord | None:
        async with self._session() as session:
            model = (
                await session.execute(self._record_query(kind, unit_key, scope))
            ).scalar_one_or_none()
            return _record_from_model(model) if model is not None else None

    async def list_completeness_records(
        self, kind: CompletenessKind, scope: AnalysisScope | None = None
    ) -> list[CompletenessRecord]:
        stmt = select(CompletenessRecordModel).where(
            CompletenessRecordModel.kind == kind.value
        )
        if scope is not None:
            stmt = stmt.where(CompletenessRecordModel.scope_key == scope.key)
        stmt = stmt.order_by(CompletenessRecordModel.title, CompletenessRecordModel.id)
        async with self._session() as session:
            result = await session.execute(stmt)
            return [_record_from_model(model) for model in result.scalars()]

    async def delete_completeness_record(
        self, kind: CompletenessKind, unit_key: str, scope: AnalysisScope
    ) -> bool:
        stmt = delete(CompletenessRecordModel).where(
            CompletenessRecordModel.kind == kind.value,
            CompletenessRecordModel.unit_key == unit_key,
            CompletenessRecordModel.scope_key == scope.key,
        )
        async with self._session() as session:
            result = await session.execute(stmt)
            return bool(result.rowcount)

    # -------------------------------------------------------------------------
    # Settings
    # -------------------------------------------------------------------------

    async def get_setting(self, key: str) -> str | None:
        async with self._session() as session:
            model = await session.get(AppSettingModel, key)
            return model.value if model is not None else None

    async def set_setting(self, key: str, value: str) -> None:
        async with self._session() as session:
            model = await session.get(AppSettingModel, key)
            if model is None:
                session.add(AppSettingModel(key=key, value=value))
            else:
                model.value = value

    # -------------------------------------------------------------------------
    # Write batching
    # -------------------------------------------------------------------------

    async def begin_write_batch(self) -> None:
        async with self._lock:
            if self._batch_session is not None:
                raise InvalidStateException("A write batch is already open")
            self._batch_session = self._db.new_session()
        logger.debug("Write batch opened")

    async def force_checkpoint(self) -> None:
        async with self._lock:
            if self._batch_session is None:
                return
            await self._batch_session.commit()
        logger.debug("Write batch checkpoint committed")

    async def end_write_batch(self) -> None:
        async with self._lock:
            session = self._batch_session
            if session is None:
                return
            self._batch_session = None
            try:
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()
        logger.debug("Write batch closed")


__all__ = ["SqlAlchemyLocalStore"]

"""SQLAlchemy ORM models for the ShelfCheck local store."""

from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from sqlalchemy import (
    JSON,
    Boolean,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def utc_now() -> datetime:
    """Get current UTC time."""
    return datetime.now(UTC)


# Hey future me - SQLite doesn't preserve timezone info! UTC datetimes come back "naive".
# Attach UTC before comparing with datetime.now(UTC), or you get "can't compare offset-naive
# and offset-aware datetimes" in the skip-if-fresh check.
def ensure_utc_aware(dt: datetime) -> datetime:
    """Ensure datetime is UTC-aware, assuming naive datetimes are UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# =============================================================================
# MEDIA SOURCES
# =============================================================================
# One row per connected library provider (a Plex server, a Jellyfin instance, a local folder).
# The completeness engine only reads provider_type from here (artwork push decision).
# =============================================================================


class MediaSourceModel(Base):
    """Connected library provider."""

    __tablename__ = "media_sources"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # 'plex', 'jellyfin', 'emby', 'kodi', 'kodi-local', 'local', 'other'
    provider_type: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default="other", default="other"
    )
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )


# =============================================================================
# OWNED ITEMS
# =============================================================================
# Listen up, ONE flat table for movies, episodes, albums and tracks (column "kind"). Library
# scanning fills it; the completeness engine reads it and only ever writes external_id and the
# artwork columns back. Tracks point at their album through parent_id.
# =============================================================================


class OwnedItemModel(Base):
    """Locally owned movie, episode, album or track."""

    __tablename__ = "owned_items"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    source_id: Mapped[str] = mapped_column(String(64), nullable=False)
    source_type: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default="other", default="other"
    )
    library_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    provider_item_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)

    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    xref_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    quality_proxy: Mapped[float | None] = mapped_column(Float, nullable=True)

    series_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    series_external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    season_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    episode_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    artist_name: Mapped[str | None] = mapped_column(String(500), nullable=True)
    artist_external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    album_title: Mapped[str | None] = mapped_column(String(500), nullable=True)
    parent_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    track_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    disc_number: Mapped[int | None] = mapped_column(Integer, nullable=True)

    poster_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    backdrop_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    thumb_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    season_poster_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    extra_artwork: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    has_artwork: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        Index("ix_owned_items_kind_source", "kind", "source_id", "library_id"),
        Index("ix_owned_items_series_title", "series_title"),
        Index("ix_owned_items_parent_id", "parent_id"),
    )


# =============================================================================
# COMPLETENESS RECORDS
# =============================================================================
# Hey future me - ONE table for all four record kinds. The common columns are real columns
# (so stats/sorting can run in SQL later), the per-kind extras live in the "details" JSON
# column and missing items in "missing_items" JSON. unit_key + kind + scope_key is the
# identity: re-analysis overwrites, never duplicates.
# =============================================================================


class CompletenessRecordModel(Base):
    """Persisted completeness result."""

    __tablename__ = "completeness_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    unit_key: Mapped[str] = mapped_column(String(500), nullable=False)
    # "<source_id|*>:<library_id|*>"
    scope_key: Mapped[str] = mapped_column(String(200), nullable=False)

    title: Mapped[str] = mapped_column(String(500), nullable=False)
    external_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    total_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    owned_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    owned_item_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completeness_percentage: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )
    missing_items: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    details: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    poster_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    backdrop_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str | None] = mapped_column(String(50), nullable=True)
    is_matched: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "kind", "unit_key", "scope_key", name="uq_completeness_kind_unit_scope"
        ),
        Index("ix_completeness_kind_scope", "kind", "scope_key"),
    )


# =============================================================================
# SETTINGS
# =============================================================================


class AppSettingModel(Base):
    """Runtime key-value settings (API keys entered in the UI, feature toggles, manual matches)."""

    __tablename__ = "app_settings"

    key: Mapped[str] = mapped_column(String(255), primary_key=True)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


__all__ = [
    "AppSettingModel",
    "Base",
    "CompletenessRecordModel",
    "MediaSourceModel",
    "OwnedItemModel",
    "ensure_utc_aware",
    "utc_now",
]

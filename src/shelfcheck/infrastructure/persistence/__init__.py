"""Persistence layer (SQLAlchemy local store)."""

from shelfcheck.infrastructure.persistence.database import Database
from shelfcheck.infrastructure.persistence.local_store import SqlAlchemyLocalStore

__all__ = ["Database", "SqlAlchemyLocalStore"]

"""
Shared column set for owner-scoped, soft-deletable records.

Every patient-facing record carries the same identity, ownership and
tombstone columns. Relations between records are plain indexed id
columns without foreign keys, so dependents can outlive or be purged
independently of their owner row.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Column, String
from sqlalchemy.orm import declared_attr

from ..core.database import UTCDateTime, utc_now


def new_id() -> str:
    return str(uuid.uuid4())


class OwnedRecordMixin:
    """
    Columns common to every owner-scoped record.

    Attributes:
        id: UUID string primary key
        owner_id: User that owns the record
        created_at: Creation timestamp (UTC)
        updated_at: Last mutation timestamp (UTC)
        deleted_at: Tombstone timestamp, None while live
        deleted_by: User that soft-deleted the record
    """

    id = Column(String(36), primary_key=True, default=new_id)

    @declared_attr
    def owner_id(cls):
        return Column(String(128), nullable=False, index=True)

    created_at = Column(UTCDateTime, nullable=False, default=utc_now, index=True)
    updated_at = Column(UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now)

    @declared_attr
    def deleted_at(cls):
        return Column(UTCDateTime, nullable=True, index=True)

    deleted_by = Column(String(128), nullable=True)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def mark_deleted(self, actor_id: Optional[str], now: datetime) -> None:
        self.deleted_at = now
        self.deleted_by = actor_id
        self.updated_at = now

    def mark_restored(self, now: datetime) -> None:
        self.deleted_at = None
        self.deleted_by = None
        self.updated_at = now

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id}, owner_id={self.owner_id})>"

"""
Generic repository for owner-scoped, soft-deletable records.

Repositories translate between ORM rows and the database: typed reads,
writes and queries, no business rules. They flush but never commit;
the calling service owns the unit of work.
"""

from datetime import datetime
from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from ..core.database import utc_now
from .pagination import CursorPage, ListOptions, paginate_by_owner


ModelT = TypeVar("ModelT")

# Columns callers may never set through create/update payloads
PROTECTED_FIELDS = frozenset({"id", "owner_id", "created_at", "deleted_at", "deleted_by"})


class OwnedRecordRepository(Generic[ModelT]):
    """
    CRUD, soft delete and cursor listing for one model.

    Example usage:
        repo = ActionRepository(db)
        page = repo.list_by_owner(user_id, ListOptions(limit=20))
    """

    model: Type[ModelT]

    def __init__(self, db: Session):
        self.db = db

    @property
    def collection(self) -> str:
        return self.model.__tablename__

    # =========================================================================
    # Reads
    # =========================================================================

    def get_by_id(self, record_id: str) -> Optional[ModelT]:
        return self.db.get(self.model, record_id)

    def list_by_owner(
        self,
        owner_id: str,
        options: Optional[ListOptions] = None,
    ) -> CursorPage:
        return paginate_by_owner(self.db, self.model, owner_id, options)

    def list_all_by_owner(
        self,
        owner_id: str,
        include_deleted: bool = False,
        sort_direction: str = "desc",
    ) -> List[ModelT]:
        """Every row of the owner, ordered like the paged listing."""
        stmt = select(self.model).where(self.model.owner_id == owner_id)
        if not include_deleted:
            stmt = stmt.where(self.model.deleted_at.is_(None))
        if sort_direction == "asc":
            stmt = stmt.order_by(self.model.created_at.asc(), self.model.id.asc())
        else:
            stmt = stmt.order_by(self.model.created_at.desc(), self.model.id.desc())
        return list(self.db.execute(stmt).scalars().all())

    def list_deleted_before(self, cutoff: datetime, limit: int) -> List[ModelT]:
        """Tombstones older than ``cutoff``, oldest first."""
        stmt = (
            select(self.model)
            .where(self.model.deleted_at.is_not(None), self.model.deleted_at <= cutoff)
            .order_by(self.model.deleted_at.asc(), self.model.id.asc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    # =========================================================================
    # Writes
    # =========================================================================

    def create(
        self,
        owner_id: str,
        data: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> ModelT:
        """Insert a row and return it as persisted (defaults applied)."""
        now = now or utc_now()
        values = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        record = self.model(owner_id=owner_id, created_at=data.get("created_at") or now,
                            updated_at=now, **values)
        if data.get("id"):
            record.id = data["id"]
        self.db.add(record)
        self.db.flush()
        self.db.refresh(record)
        return record

    def update_by_id(
        self,
        record_id: str,
        updates: Dict[str, Any],
        now: Optional[datetime] = None,
    ) -> Optional[ModelT]:
        """
        Apply ``updates`` to an existing row.

        Returns:
            The re-read row, or None if no row has that id
        """
        record = self.get_by_id(record_id)
        if record is None:
            return None
        for key, value in updates.items():
            if key in PROTECTED_FIELDS:
                continue
            setattr(record, key, value)
        record.updated_at = now or utc_now()
        self.db.flush()
        self.db.refresh(record)
        return record

    def soft_delete_by_id(
        self,
        record_id: str,
        actor_id: Optional[str],
        now: Optional[datetime] = None,
    ) -> Optional[ModelT]:
        record = self.get_by_id(record_id)
        if record is None:
            return None
        record.mark_deleted(actor_id, now or utc_now())
        self.db.flush()
        return record

    def restore_by_id(
        self,
        record_id: str,
        now: Optional[datetime] = None,
    ) -> Optional[ModelT]:
        record = self.get_by_id(record_id)
        if record is None:
            return None
        record.mark_restored(now or utc_now())
        self.db.flush()
        return record

    def hard_delete_ids(self, record_ids: Sequence[str]) -> int:
        """Permanently remove rows by id; returns the number removed."""
        if not record_ids:
            return 0
        result = self.db.execute(
            delete(self.model)
            .where(self.model.id.in_(list(record_ids)))
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount or 0

"""
Cursor pagination over owner-scoped, soft-deletable tables.

Pages are ordered by ``(created_at, id)`` and resumed from the row the
previous page ended on (keyset paging). The cursor handed to clients is
that row's id; on resume the anchor is re-read and must still be visible
to the caller, otherwise the cursor is rejected.

Inserts and soft deletes that happen between page reads never shift the
window: rows already returned are never repeated and a live row that
existed before the first read is never skipped.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Generic, List, Optional, TypeVar

from sqlalchemy import and_, or_, select
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import InvalidCursorError


logger = logging.getLogger(__name__)

T = TypeVar("T")

SORT_DESC = "desc"
SORT_ASC = "asc"


# =============================================================================
# Options & Result Types
# =============================================================================

@dataclass
class ListOptions:
    """
    Listing options for one page.

    Attributes:
        limit: Page size; missing or non-positive means the default size
        cursor: Id of the last row of the previous page
        sort_direction: "desc" (newest first, default) or "asc"
        include_deleted: Include soft-deleted rows
    """

    limit: Optional[int] = None
    cursor: Optional[str] = None
    sort_direction: str = SORT_DESC
    include_deleted: bool = False


@dataclass
class CursorPage(Generic[T]):
    items: List[T] = field(default_factory=list)
    has_more: bool = False
    next_cursor: Optional[str] = None


def normalize_limit(limit: Optional[int]) -> int:
    """Clamp a requested page size to ``1..max_page_size``."""
    if limit is None or limit <= 0:
        return settings.default_page_size
    return min(limit, settings.max_page_size)


def normalize_direction(direction: Optional[str]) -> str:
    if direction and direction.lower() == SORT_ASC:
        return SORT_ASC
    return SORT_DESC


# =============================================================================
# Pagination
# =============================================================================

def paginate_by_owner(
    db: Session,
    model: Any,
    owner_id: str,
    options: Optional[ListOptions] = None,
) -> CursorPage:
    """
    Read one page of ``model`` rows belonging to ``owner_id``.

    Args:
        db: Database session
        model: ORM class using OwnedRecordMixin
        owner_id: Owner whose rows are listed
        options: Page size, cursor, direction and tombstone visibility

    Returns:
        CursorPage with at most ``limit`` items

    Raises:
        InvalidCursorError: Cursor row is missing, owned by someone else,
            or hidden by the visibility filter
    """
    options = options or ListOptions()
    limit = normalize_limit(options.limit)
    direction = normalize_direction(options.sort_direction)

    criteria = [model.owner_id == owner_id]
    if not options.include_deleted:
        criteria.append(model.deleted_at.is_(None))

    if options.cursor:
        anchor = db.get(model, options.cursor)
        if (
            anchor is None
            or anchor.owner_id != owner_id
            or (anchor.deleted_at is not None and not options.include_deleted)
        ):
            logger.info(f"Rejected cursor for {model.__tablename__} (owner {owner_id})")
            raise InvalidCursorError(options.cursor)

        if direction == SORT_DESC:
            criteria.append(or_(
                model.created_at < anchor.created_at,
                and_(model.created_at == anchor.created_at, model.id < anchor.id),
            ))
        else:
            criteria.append(or_(
                model.created_at > anchor.created_at,
                and_(model.created_at == anchor.created_at, model.id > anchor.id),
            ))

    if direction == SORT_DESC:
        ordering = (model.created_at.desc(), model.id.desc())
    else:
        ordering = (model.created_at.asc(), model.id.asc())

    stmt = select(model).where(*criteria).order_by(*ordering).limit(limit + 1)
    rows = list(db.execute(stmt).scalars().all())

    has_more = len(rows) > limit
    items = rows[:limit]
    next_cursor = items[-1].id if has_more and items else None

    return CursorPage(items=items, has_more=has_more, next_cursor=next_cursor)

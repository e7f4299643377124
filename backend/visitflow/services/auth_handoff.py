"""
Single-use auth handoff codes.

A code is issued to a signed-in user and can be exchanged exactly once
before it expires. Concurrent exchanges of the same code race on a
conditional update; the first committer wins and every other caller
sees the code as used.
"""

import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.database import to_millis, utc_now
from ..core.security import generate_handoff_code
from ..core.transactions import retry_on_conflict, transaction
from ..models.auth_handoff import AuthHandoff


logger = logging.getLogger(__name__)


class HandoffStatus(str, enum.Enum):
    OK = "ok"
    INVALID = "invalid"
    USED = "used"
    EXPIRED = "expired"


HANDOFF_ERROR_MESSAGES = {
    HandoffStatus.INVALID: "Invalid or expired code",
    HandoffStatus.USED: "Code has already been used",
    HandoffStatus.EXPIRED: "Code has expired",
}


@dataclass
class HandoffExchangeResult:
    status: HandoffStatus
    user_id: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status == HandoffStatus.OK


class AuthHandoffService:
    """
    Issue and exchange handoff codes.

    Example usage:
        handoffs = AuthHandoffService(db)
        record = handoffs.issue(user_id)
        result = handoffs.exchange(record.code, utc_now(), now_ms)
    """

    def __init__(self, db: Session, ttl_seconds: Optional[int] = None):
        self.db = db
        self.ttl = timedelta(seconds=ttl_seconds or settings.handoff_ttl_seconds)

    def create(
        self,
        code: str,
        user_id: str,
        created_at: datetime,
        expires_at: datetime,
    ) -> AuthHandoff:
        """Store an unused handoff record under ``code``."""
        handoff = AuthHandoff(
            code=code,
            user_id=user_id,
            created_at=created_at,
            expires_at=expires_at,
            used=False,
        )
        with transaction(self.db):
            self.db.add(handoff)
        return handoff

    def issue(self, user_id: str, now: Optional[datetime] = None) -> AuthHandoff:
        """Mint a fresh random code for ``user_id`` valid for the configured TTL."""
        now = now or utc_now()
        handoff = self.create(generate_handoff_code(), user_id, now, now + self.ttl)
        logger.info(f"Issued auth handoff for user {user_id}")
        return handoff

    @retry_on_conflict
    def exchange(self, code: str, used_at: datetime, now_ms: int) -> HandoffExchangeResult:
        """
        Consume a handoff code.

        Args:
            code: Code presented by the receiving client
            used_at: Timestamp recorded on the consumed record
            now_ms: Current time in epoch milliseconds, for the expiry check

        Returns:
            HandoffExchangeResult; ``user_id`` is set only when status is ok
        """
        with transaction(self.db):
            handoff = self.db.get(AuthHandoff, code, populate_existing=True)
            if handoff is None:
                return HandoffExchangeResult(HandoffStatus.INVALID)

            if handoff.used:
                return HandoffExchangeResult(HandoffStatus.USED)

            if now_ms > to_millis(handoff.expires_at):
                self.db.execute(
                    delete(AuthHandoff)
                    .where(AuthHandoff.code == code)
                    .execution_options(synchronize_session="fetch")
                )
                logger.info(f"Expired auth handoff removed for user {handoff.user_id}")
                return HandoffExchangeResult(HandoffStatus.EXPIRED)

            result = self.db.execute(
                update(AuthHandoff)
                .where(AuthHandoff.code == code, AuthHandoff.used.is_(False))
                .values(used=True, used_at=used_at)
                .execution_options(synchronize_session=False)
            )
            if (result.rowcount or 0) != 1:
                logger.info(f"Auth handoff for user {handoff.user_id} lost exchange race")
                return HandoffExchangeResult(HandoffStatus.USED)

            return HandoffExchangeResult(HandoffStatus.OK, user_id=handoff.user_id)

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Remove expired or consumed codes whose expiry has passed."""
        now = now or utc_now()
        with transaction(self.db):
            result = self.db.execute(
                delete(AuthHandoff)
                .where(AuthHandoff.expires_at < now)
                .execution_options(synchronize_session=False)
            )
        purged = result.rowcount or 0
        if purged:
            logger.info(f"Purged {purged} expired auth handoffs")
        return purged

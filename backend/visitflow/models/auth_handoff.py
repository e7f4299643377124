"""
Single-use authentication handoff codes.

A handoff lets a signed-in client pass its session to another surface
(mobile app to web portal) through a short-lived code that can be
exchanged exactly once.
"""

from datetime import datetime

from sqlalchemy import Boolean, Column, String

from ..core.database import Base, UTCDateTime, utc_now


class AuthHandoff(Base):
    """
    Handoff record keyed by its code.

    Attributes:
        code: Random code presented by the receiving client
        user_id: User whose session is handed off
        created_at: Issue time
        expires_at: Instant after which the code is rejected
        used: Set exactly once, by the winning exchange
        used_at: When the code was exchanged
    """

    __tablename__ = "auth_handoffs"

    code = Column(String(128), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    created_at = Column(UTCDateTime, nullable=False, default=utc_now)
    expires_at = Column(UTCDateTime, nullable=False, index=True)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(UTCDateTime, nullable=True)

    def is_expired(self, now: datetime) -> bool:
        return now > self.expires_at

    def __repr__(self) -> str:
        return f"<AuthHandoff(user_id={self.user_id}, used={self.used})>"

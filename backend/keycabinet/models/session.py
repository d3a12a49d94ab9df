"""Session model for user login sessions."""

import uuid
from datetime import datetime, timedelta

from sqlalchemy import Column, DateTime, ForeignKey, String
from sqlalchemy.orm import relationship

from keycabinet.database import Base
from keycabinet.config import settings


class Session(Base):
    """
    A login session issued by the authentication service.

    The session id is the opaque token the client sends in the session cookie
    or as a bearer token.

    Attributes:
        id: Session token
        user_id: Foreign key to users table
        created_at: Session creation time
        expires_at: Session expiration time
        last_seen_at: Last activity timestamp
        revoked_at: If set, session was explicitly revoked
    """
    __tablename__ = "sessions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    expires_at = Column(DateTime, nullable=False)
    last_seen_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    revoked_at = Column(DateTime, nullable=True)

    # Relationships
    user = relationship("User", back_populates="sessions")

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.expires_at:
            self.expires_at = datetime.utcnow() + timedelta(hours=settings.session_max_age_hours)

    def is_valid(self) -> bool:
        """Check if session is still valid (not expired, not revoked)."""
        now = datetime.utcnow()
        if self.revoked_at:
            return False
        if self.expires_at and now > self.expires_at:
            return False
        return True

    def __repr__(self):
        return f"<Session {self.id[:8]}... user={self.user_id[:8]}...>"

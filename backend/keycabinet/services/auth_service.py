"""
Session validation.

Sessions are created by the external authentication service; this module
only resolves a presented token to a user.
"""

import logging
from datetime import datetime
from typing import Optional, Tuple

from sqlalchemy.orm import Session as DbSession

from keycabinet.models.session import Session
from keycabinet.models.user import User

logger = logging.getLogger(__name__)


def validate_session(db: DbSession, session_id: str) -> Optional[Tuple[User, Session]]:
    """
    Validate a session token and return user + session if valid.

    Args:
        db: Database session
        session_id: Token from cookie or bearer header

    Returns:
        Tuple of (User, Session) if valid, None otherwise
    """
    if not session_id:
        return None

    session = db.query(Session).filter(Session.id == session_id).first()
    if not session or not session.is_valid():
        return None

    user = db.query(User).filter(User.id == session.user_id).first()
    if not user:
        return None

    # Update last_seen_at for activity tracking
    session.last_seen_at = datetime.utcnow()
    db.commit()

    return (user, session)


def revoke_session(db: DbSession, session_id: str) -> bool:
    """Revoke a specific session."""
    session = db.query(Session).filter(Session.id == session_id).first()
    if session:
        session.revoked_at = datetime.utcnow()
        db.commit()
        logger.info(f"Session revoked: {session_id[:8]}...")
        return True
    return False

import uuid
from datetime import datetime

from sqlalchemy import Column, DateTime, JSON, String, Text

from keycabinet.database import Base


class SystemAuditLog(Base):
    """Audit log for administrative operations"""
    __tablename__ = "system_audit_logs"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    # Entity tracking
    entity_type = Column(String(50), nullable=False, index=True)  # "key", "loan", "user"
    entity_id = Column(String(36), nullable=False, index=True)

    # Action details
    action = Column(String(50), nullable=False)                   # "created", "force_returned", ...
    description = Column(Text, nullable=True)

    # User tracking
    user_id = Column(String(36), nullable=True)                   # Who performed the action
    user_role = Column(String(20), nullable=True)

    # State changes
    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)

    # Context and metadata
    audit_metadata = Column(JSON, nullable=True, name="metadata")

    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)

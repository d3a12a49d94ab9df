import uuid
from datetime import datetime
import enum

from sqlalchemy import Column, DateTime, String, Text

from keycabinet.database import Base


class KeyStatus(str, enum.Enum):
    AVAILABLE = "available"
    BORROWED = "borrowed"


class Key(Base):
    """
    A physical key kept in the cabinet.

    ``status`` and ``holder_id`` are only ever changed by CheckoutService
    through conditional UPDATE statements; ``status == borrowed`` holds
    exactly when ``holder_id`` is set.
    """
    __tablename__ = "keys"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=KeyStatus.AVAILABLE.value, index=True)
    holder_id = Column(String(36), nullable=True, index=True)
    created_by = Column(String(36), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f"<Key {self.name} ({self.status})>"

    def snapshot(self) -> dict:
        """Plain dict of the mutable fields, used for audit entries."""
        return {
            "name": self.name,
            "description": self.description,
            "status": self.status,
            "holder_id": self.holder_id,
        }

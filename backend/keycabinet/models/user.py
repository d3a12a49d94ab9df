"""User accounts for the key cabinet."""

import uuid
from datetime import datetime
import enum

from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.orm import relationship

from keycabinet.database import Base


class UserRole(str, enum.Enum):
    USER = "user"
    ADMIN = "admin"

    @property
    def display_name(self) -> str:
        return {
            "user": "User",
            "admin": "Administrator",
        }.get(self.value, self.value)


class User(Base):
    """
    A person who can borrow keys.

    Attributes:
        id: Internal UUID primary key
        email: Login email (unique)
        display_name: Full name shown next to loans
        role: "user" or "admin"; only used by the access policy
        is_active: Deactivated users keep read access but cannot change anything
        avatar_url: Profile picture URL in object storage
        bio: Free-form profile text
    """
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email = Column(String(255), unique=True, nullable=False, index=True)
    display_name = Column(String(255), nullable=True)
    role = Column(String(20), nullable=False, default=UserRole.USER.value)
    is_active = Column(Boolean, nullable=False, default=True)
    avatar_url = Column(String(500), nullable=True)
    bio = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    sessions = relationship("Session", back_populates="user", cascade="all, delete-orphan")

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    def __repr__(self):
        return f"<User {self.email}>"

    def snapshot(self) -> dict:
        return {
            "display_name": self.display_name,
            "role": self.role,
            "is_active": self.is_active,
        }

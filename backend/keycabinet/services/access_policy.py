"""
Two-role access policy.

Every mutating service call receives the caller's ``Actor`` explicitly and
checks it here before touching the database.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from keycabinet.models.user import User, UserRole
from keycabinet.utils.exceptions import PermissionDeniedError


@dataclass(frozen=True)
class Actor:
    """Verified identity of the caller for one request."""

    user_id: str
    email: str
    role: str = UserRole.USER.value
    is_active: bool = True
    display_name: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN.value

    @classmethod
    def from_user(cls, user: User) -> "Actor":
        return cls(
            user_id=str(user.id),
            email=user.email,
            role=user.role,
            is_active=bool(user.is_active),
            display_name=user.display_name,
        )


def require_active(actor: Optional[Actor]) -> Actor:
    """Deactivated users may read but never mutate, whatever their role."""
    if actor is None:
        raise PermissionDeniedError("Authentication required", reason="unauthenticated")
    if not actor.is_active:
        raise PermissionDeniedError("Account is deactivated", reason="inactive")
    return actor


def require_admin(actor: Optional[Actor]) -> Actor:
    actor = require_active(actor)
    if not actor.is_admin:
        raise PermissionDeniedError("Administrator access required", reason="not_admin")
    return actor


def can_view_user(actor: Optional[Actor], user_id: str) -> bool:
    if actor is None:
        return False
    return actor.user_id == user_id or actor.is_admin


def require_view_user(actor: Optional[Actor], user_id: str) -> Actor:
    if not can_view_user(actor, user_id):
        raise PermissionDeniedError("Cannot view another user's data", reason="not_self")
    return actor

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from keycabinet.models.key import Key, KeyStatus
from keycabinet.models.user import User, UserRole
from keycabinet.services.access_policy import Actor, require_active, require_admin
from keycabinet.services.audit_service import AuditService
from keycabinet.services.loan_ledger import LoanLedger
from keycabinet.utils.exceptions import FaultError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip() or None


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"{operation} failed: {exc}", exc_info=True)
            raise FaultError(operation, type(exc).__name__) from exc

    def get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if user is None:
            raise NotFoundError("User", user_id)
        return user

    def list_users(self, actor: Actor, active: Optional[bool] = None) -> list[User]:
        require_admin(actor)
        query = self.db.query(User)
        if active is not None:
            query = query.filter(User.is_active.is_(active))
        return query.order_by(User.created_at.desc()).all()

    def update_profile(
        self,
        actor: Actor,
        display_name: Optional[str] = None,
        bio: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> User:
        """Edit the caller's own profile. Role and active flag are not editable here."""
        require_active(actor)
        user = self.get_user(actor.user_id)
        if display_name is not None:
            user.display_name = _clean(display_name)
        if bio is not None:
            user.bio = _clean(bio)
        if avatar_url is not None:
            user.avatar_url = _clean(avatar_url)
        user.updated_at = datetime.utcnow()
        self._commit("update_profile")
        self.db.refresh(user)
        return user

    def admin_update_user(
        self,
        actor: Actor,
        user_id: str,
        display_name: Optional[str] = None,
        role: Optional[str] = None,
        is_active: Optional[bool] = None,
    ) -> User:
        require_admin(actor)
        user = self.get_user(user_id)
        old_value = user.snapshot()

        if role is not None:
            allowed = {r.value for r in UserRole}
            if role not in allowed:
                raise ValidationError(
                    f"Role must be one of: {sorted(allowed)}",
                    field="role",
                    details={"allowed": sorted(allowed), "provided": role},
                )
            if user.id == actor.user_id and role != UserRole.ADMIN.value:
                raise ValidationError("Administrators cannot remove their own admin role", field="role")
            user.role = role

        if is_active is not None:
            if user.id == actor.user_id and not is_active:
                raise ValidationError("Administrators cannot deactivate themselves", field="is_active")
            user.is_active = bool(is_active)

        if display_name is not None:
            user.display_name = _clean(display_name)

        user.updated_at = datetime.utcnow()
        AuditService(self.db).log_user_action(
            user.id, "updated", actor=actor, old_value=old_value, new_value=user.snapshot()
        )
        self._commit("admin_update_user")
        self.db.refresh(user)
        logger.info(f"User {user.id} updated by admin {actor.user_id}: {old_value} -> {user.snapshot()}")
        return user

    def summary(self, actor: Actor) -> dict:
        """Dashboard counts for the admin panel."""
        require_admin(actor)
        key_counts = {status.value: 0 for status in KeyStatus}
        for status, count in self.db.query(Key.status, func.count(Key.id)).group_by(Key.status).all():
            key_counts[status] = int(count)

        loan_counts = LoanLedger(self.db).count_by_status()

        users_total = self.db.query(func.count(User.id)).scalar() or 0
        users_active = self.db.query(func.count(User.id)).filter(User.is_active.is_(True)).scalar() or 0
        admins = self.db.query(func.count(User.id)).filter(User.role == UserRole.ADMIN.value).scalar() or 0

        return {
            "keys_total": sum(key_counts.values()),
            "keys_available": key_counts[KeyStatus.AVAILABLE.value],
            "keys_borrowed": key_counts[KeyStatus.BORROWED.value],
            "loans_active": loan_counts["active"],
            "loans_overdue": loan_counts["overdue"],
            "loans_returned": loan_counts["returned"],
            "users_total": int(users_total),
            "users_active": int(users_active),
            "users_admin": int(admins),
        }

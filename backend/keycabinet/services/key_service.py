from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from keycabinet.models.favorite import Favorite
from keycabinet.models.key import Key, KeyStatus
from keycabinet.services.access_policy import Actor, require_admin
from keycabinet.services.audit_service import AuditService
from keycabinet.services.checkout_service import CheckoutService
from keycabinet.utils.exceptions import ConflictError, FaultError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class KeyService:
    """Key inventory. Status and holder are never written here, see CheckoutService."""

    def __init__(self, db: Session):
        self.db = db

    def _normalize_name(self, name: Optional[str]) -> str:
        name_norm = (name or "").strip()
        if not name_norm:
            raise ValidationError("Key name is required", field="name")
        if len(name_norm) > 255:
            raise ValidationError("Key name must be at most 255 characters", field="name")
        return name_norm

    def _commit(self, operation: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"{operation} failed: {exc}", exc_info=True)
            raise FaultError(operation, type(exc).__name__) from exc

    def get_key(self, key_id: str) -> Key:
        key = self.db.query(Key).filter(Key.id == key_id).first()
        if key is None:
            raise NotFoundError("Key", key_id)
        return key

    def list_keys(self, status: Optional[str] = None, search: Optional[str] = None) -> list[Key]:
        query = self.db.query(Key)
        if status:
            allowed = {s.value for s in KeyStatus}
            if status not in allowed:
                raise ValidationError(
                    f"Status must be one of: {sorted(allowed)}",
                    field="status",
                    details={"allowed": sorted(allowed), "provided": status},
                )
            query = query.filter(Key.status == status)
        search_norm = (search or "").strip()
        if search_norm:
            pattern = f"%{search_norm}%"
            query = query.filter(or_(Key.name.ilike(pattern), Key.description.ilike(pattern)))
        return query.order_by(Key.created_at.desc(), Key.name.asc()).all()

    def create_key(self, actor: Actor, name: str, description: Optional[str] = None) -> Key:
        require_admin(actor)
        key = Key(
            name=self._normalize_name(name),
            description=(description.strip() if description else None) or None,
            status=KeyStatus.AVAILABLE.value,
            holder_id=None,
            created_by=actor.user_id,
        )
        self.db.add(key)
        self.db.flush()
        AuditService(self.db).log_key_action(key.id, "created", actor=actor, new_value=key.snapshot())
        self._commit("create_key")
        self.db.refresh(key)
        logger.info(f"Key {key.id} ({key.name}) created by {actor.user_id}")
        return key

    def update_key(
        self,
        actor: Actor,
        key_id: str,
        name: Optional[str] = None,
        description: Optional[str] = None,
    ) -> Key:
        """Edit name/description only."""
        require_admin(actor)
        key = self.get_key(key_id)
        old_value = key.snapshot()

        if name is not None:
            key.name = self._normalize_name(name)
        if description is not None:
            key.description = description.strip() or None
        key.updated_at = datetime.utcnow()

        AuditService(self.db).log_key_action(
            key.id, "updated", actor=actor, old_value=old_value, new_value=key.snapshot()
        )
        self._commit("update_key")
        self.db.refresh(key)
        return key

    def delete_key(self, actor: Actor, key_id: str, force: bool = False) -> None:
        """Delete a key.

        A borrowed key is refused unless ``force`` is set, in which case its
        open loan is force-returned in the same transaction. Loans are kept;
        they carry the key name.
        """
        require_admin(actor)
        key = self.get_key(key_id)
        old_value = key.snapshot()

        try:
            if force:
                try:
                    CheckoutService(self.db)._force_return_in_transaction(actor, key_id, datetime.utcnow())
                except ConflictError as exc:
                    # Already available; the conditional delete below decides.
                    if exc.code != "KEY_NOT_BORROWED":
                        raise

            self.db.query(Favorite).filter(Favorite.key_id == key_id).delete(synchronize_session=False)

            # Conditional, so a borrow that lands after the read above still wins.
            result = self.db.execute(
                delete(Key)
                .where(Key.id == key_id, Key.status == KeyStatus.AVAILABLE.value)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                key = self.db.query(Key).populate_existing().filter(Key.id == key_id).first()
                if key is None:
                    raise NotFoundError("Key", key_id)
                raise ConflictError(
                    "Key is currently borrowed; return it first or delete with force",
                    code="KEY_IN_USE",
                    details={"key_id": key_id, "holder_id": key.holder_id},
                )

            AuditService(self.db).log_key_action(
                key_id, "deleted", actor=actor, old_value=old_value, audit_metadata={"forced": bool(force)}
            )
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"delete_key failed: {exc}", exc_info=True)
            raise FaultError("delete_key", type(exc).__name__) from exc

        if key in self.db:
            self.db.expunge(key)
        logger.info(f"Key {key_id} deleted by {actor.user_id} (force={bool(force)})")

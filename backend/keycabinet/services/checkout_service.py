from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from keycabinet.config import settings
from keycabinet.models.key import Key, KeyStatus
from keycabinet.models.loan import Loan
from keycabinet.services.access_policy import Actor, require_active, require_admin
from keycabinet.services.audit_service import AuditService
from keycabinet.services.loan_ledger import LoanLedger
from keycabinet.utils.exceptions import (
    ConflictError,
    FaultError,
    KeyUnavailableError,
    NotFoundError,
    NotHolderError,
    ValidationError,
)

logger = logging.getLogger(__name__)


class CheckoutService:
    """The only code path that changes a key's status or holder.

    Each operation is one transaction built around a conditional UPDATE of the
    key row (``... WHERE status = <expected>``). The database serializes
    competing writers on that row, so for any key exactly one borrower sees
    its update match; everyone else sees zero rows and gets a conflict.
    Storage failures roll back and surface as FaultError; nothing here retries.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LoanLedger(db)

    def _validate_duration(self, duration_hours: Optional[int]) -> int:
        if duration_hours is None:
            return settings.loan_default_hours
        minimum, maximum = settings.loan_min_hours, settings.loan_max_hours
        if isinstance(duration_hours, bool) or not isinstance(duration_hours, int):
            raise ValidationError("duration_hours must be a whole number of hours", field="duration_hours")
        if duration_hours < minimum or duration_hours > maximum:
            raise ValidationError(
                f"duration_hours must be between {minimum} and {maximum}",
                field="duration_hours",
                details={"min": minimum, "max": maximum, "provided": duration_hours},
            )
        return duration_hours

    def _get_key(self, key_id: str) -> Key:
        key = self.db.query(Key).populate_existing().filter(Key.id == key_id).first()
        if key is None:
            raise NotFoundError("Key", key_id)
        return key

    def _release_key(self, key_id: str, now: datetime, holder_id: Optional[str] = None) -> bool:
        """Conditionally flip a borrowed key back to available.

        With ``holder_id`` the update only matches while that user is the holder.
        """
        conditions = [Key.id == key_id, Key.status == KeyStatus.BORROWED.value]
        if holder_id is not None:
            conditions.append(Key.holder_id == holder_id)
        result = self.db.execute(
            update(Key)
            .where(*conditions)
            .values(status=KeyStatus.AVAILABLE.value, holder_id=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def borrow(self, actor: Actor, key_id: str, duration_hours: Optional[int] = None) -> Loan:
        require_active(actor)
        hours = self._validate_duration(duration_hours)
        now = datetime.utcnow()

        try:
            result = self.db.execute(
                update(Key)
                .where(Key.id == key_id, Key.status == KeyStatus.AVAILABLE.value)
                .values(status=KeyStatus.BORROWED.value, holder_id=actor.user_id, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                self.db.rollback()
                key = self._get_key(key_id)
                if key.holder_id == actor.user_id:
                    raise KeyUnavailableError(key_id, message="You already hold this key")
                raise KeyUnavailableError(key_id)

            key = self._get_key(key_id)
            loan = self.ledger.append(
                Loan(
                    key_id=key_id,
                    key_name=key.name,
                    user_id=actor.user_id,
                    borrowed_at=now,
                    expected_return_at=now + timedelta(hours=hours),
                )
            )
            self.db.commit()
        except IntegrityError as exc:
            # Unique open_key_id: another open loan already exists for this key.
            self.db.rollback()
            logger.warning(f"Open-loan constraint rejected borrow of key {key_id}: {exc.orig}")
            raise KeyUnavailableError(key_id) from exc
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Borrow of key {key_id} failed: {exc}", exc_info=True)
            raise FaultError("borrow", type(exc).__name__) from exc

        self.db.refresh(loan)
        logger.info(f"Key {key_id} borrowed by {actor.user_id} until {loan.expected_return_at.isoformat()}")
        return loan

    def return_key(self, actor: Actor, key_id: str) -> Loan:
        require_active(actor)
        now = datetime.utcnow()

        try:
            if not self._release_key(key_id, now, holder_id=actor.user_id):
                self.db.rollback()
                self._get_key(key_id)
                raise NotHolderError(key_id, actor.user_id)

            loan = self.ledger.close_active(key_id, returned_at=now, returned_by=actor.user_id)
            if loan is None:
                self.db.rollback()
                logger.error(f"Key {key_id} was borrowed but has no open loan")
                raise FaultError("return", "no open loan for borrowed key")
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Return of key {key_id} failed: {exc}", exc_info=True)
            raise FaultError("return", type(exc).__name__) from exc

        logger.info(f"Key {key_id} returned by {actor.user_id}")
        return loan

    def force_return(self, actor: Actor, key_id: str) -> Loan:
        require_admin(actor)

        try:
            loan = self._force_return_in_transaction(actor, key_id, datetime.utcnow())
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Force return of key {key_id} failed: {exc}", exc_info=True)
            raise FaultError("force_return", type(exc).__name__) from exc

        logger.info(f"Key {key_id} force-returned by admin {actor.user_id} (loan {loan.id})")
        return loan

    def _force_return_in_transaction(self, actor: Actor, key_id: str, now: datetime) -> Loan:
        """Release the key and close its loan without committing.

        Rolls back and raises when the key is missing or not borrowed.
        """
        if not self._release_key(key_id, now):
            self.db.rollback()
            self._get_key(key_id)
            raise ConflictError(
                "Key is not currently borrowed",
                code="KEY_NOT_BORROWED",
                details={"key_id": key_id},
            )

        loan = self.ledger.close_active(key_id, returned_at=now, returned_by=actor.user_id, forced=True)
        if loan is None:
            self.db.rollback()
            logger.error(f"Key {key_id} was borrowed but has no open loan")
            raise FaultError("force_return", "no open loan for borrowed key")

        AuditService(self.db).log_loan_action(
            loan.id,
            "force_returned",
            actor=actor,
            old_value={"status": "open", "holder_id": loan.user_id},
            new_value={"status": loan.status, "returned_at": now.isoformat()},
            description=f"Administrator force-returned key {loan.key_name or key_id}",
            audit_metadata={"key_id": key_id},
        )
        return loan

    def key_status(self, key_id: str) -> tuple[Key, Optional[Loan]]:
        """Key together with its open loan, if any."""
        key = self._get_key(key_id)
        return key, self.ledger.get_open_for_key(key_id)

import uuid
from datetime import datetime
import enum

from sqlalchemy import Boolean, Column, DateTime, String, UniqueConstraint, event, inspect

from keycabinet.database import Base
from keycabinet.utils.exceptions import LedgerImmutableError


class LoanStatus(str, enum.Enum):
    ACTIVE = "active"
    OVERDUE = "overdue"
    RETURNED = "returned"


OPEN_LOAN_STATUSES = (LoanStatus.ACTIVE.value, LoanStatus.OVERDUE.value)


class Loan(Base):
    """
    One borrow-to-return episode of a key.

    Attributes:
        key_id: Key that was borrowed (kept after the key is deleted)
        key_name: Key name at borrow time
        user_id: Borrower
        status: active, overdue or returned
        expected_return_at: Deadline used by the overdue monitor
        returned_by: Holder or administrator who closed the loan
        force_returned: True when an administrator closed the loan
        open_key_id: Equals key_id while the loan is open, NULL once returned.
            Unique, so a key can never have two open loans.
    """
    __tablename__ = "loans"
    __table_args__ = (UniqueConstraint("open_key_id", name="uq_loans_open_key_id"),)

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    key_id = Column(String(36), nullable=False, index=True)
    key_name = Column(String(255), nullable=True)
    user_id = Column(String(36), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=LoanStatus.ACTIVE.value, index=True)

    borrowed_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    expected_return_at = Column(DateTime, nullable=True, index=True)
    overdue_at = Column(DateTime, nullable=True)
    returned_at = Column(DateTime, nullable=True)
    returned_by = Column(String(36), nullable=True)
    force_returned = Column(Boolean, nullable=False, default=False)

    open_key_id = Column(String(36), nullable=True)

    def __repr__(self):
        return f"<Loan {self.id[:8]}... key={self.key_id[:8]}... {self.status}>"


@event.listens_for(Loan, "before_update")
def _refuse_returned_loan_changes(mapper, connection, target):
    status_history = inspect(target).attrs.status.history
    previous = status_history.deleted[0] if status_history.deleted else target.status
    if previous == LoanStatus.RETURNED.value:
        raise LedgerImmutableError(target.id)

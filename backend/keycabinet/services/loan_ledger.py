from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from keycabinet.models.loan import Loan, LoanStatus, OPEN_LOAN_STATUSES


MAX_PAGE_SIZE = 100


class LoanLedger:
    """Append/close-only history of loans.

    Closing a loan and flagging it overdue are conditional updates on the open
    row. Nothing here ever rewrites a returned loan, and nothing commits: the
    caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    def append(self, loan: Loan) -> Loan:
        loan.status = LoanStatus.ACTIVE.value
        loan.open_key_id = loan.key_id
        self.db.add(loan)
        self.db.flush()
        return loan

    def get(self, loan_id: str) -> Optional[Loan]:
        return self.db.query(Loan).filter(Loan.id == loan_id).first()

    def get_open_for_key(self, key_id: str) -> Optional[Loan]:
        return self.db.query(Loan).filter(Loan.open_key_id == key_id).first()

    def close_active(
        self,
        key_id: str,
        returned_at: datetime,
        returned_by: Optional[str] = None,
        forced: bool = False,
    ) -> Optional[Loan]:
        """Close the open loan of ``key_id``, whether active or overdue.

        Returns the closed loan, or None when the key has no open loan.
        """
        loan = self.get_open_for_key(key_id)
        if loan is None:
            return None

        result = self.db.execute(
            update(Loan)
            .where(Loan.id == loan.id, Loan.status.in_(OPEN_LOAN_STATUSES))
            .values(
                status=LoanStatus.RETURNED.value,
                returned_at=returned_at,
                returned_by=returned_by,
                force_returned=forced,
                open_key_id=None,
            )
            .execution_options(synchronize_session="fetch")
        )
        if result.rowcount != 1:
            return None

        self.db.refresh(loan)
        return loan

    def mark_overdue(self, loan_id: str, now: datetime) -> bool:
        """Flag an active loan overdue. True only if this call made the transition."""
        result = self.db.execute(
            update(Loan)
            .where(Loan.id == loan_id, Loan.status == LoanStatus.ACTIVE.value)
            .values(status=LoanStatus.OVERDUE.value, overdue_at=now)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    def find_due_for_overdue(self, now: datetime) -> list[Loan]:
        return (
            self.db.query(Loan)
            .filter(
                Loan.status == LoanStatus.ACTIVE.value,
                Loan.expected_return_at.isnot(None),
                Loan.expected_return_at < now,
            )
            .order_by(Loan.expected_return_at.asc())
            .all()
        )

    def list_by_key(self, key_id: str, page: int = 1, page_size: int = 25) -> dict:
        query = self.db.query(Loan).filter(Loan.key_id == key_id)
        return self._paginate(query, page, page_size)

    def list_by_user(self, user_id: str, page: int = 1, page_size: int = 25) -> dict:
        query = self.db.query(Loan).filter(Loan.user_id == user_id)
        return self._paginate(query, page, page_size)

    def list_active(self) -> list[Loan]:
        """Who holds what: every loan that is active or overdue."""
        return (
            self.db.query(Loan)
            .filter(Loan.status.in_(OPEN_LOAN_STATUSES))
            .order_by(Loan.borrowed_at.desc())
            .all()
        )

    def list_overdue(self) -> list[Loan]:
        return (
            self.db.query(Loan)
            .filter(Loan.status == LoanStatus.OVERDUE.value)
            .order_by(Loan.expected_return_at.asc())
            .all()
        )

    def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in LoanStatus}
        rows = self.db.query(Loan.status, func.count(Loan.id)).group_by(Loan.status).all()
        for status, count in rows:
            counts[status] = int(count)
        return counts

    def _paginate(self, query, page: int, page_size: int) -> dict:
        page = max(1, int(page or 1))
        page_size = max(1, min(int(page_size or 25), MAX_PAGE_SIZE))
        total = query.count()
        items = (
            query.order_by(Loan.borrowed_at.desc(), Loan.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
            .all()
        )
        return {"items": items, "total": total, "page": page, "page_size": page_size}

"""
Overdue monitor.

Periodically flags active loans whose expected return time has passed.
Only the loan changes; the key stays borrowed because it is still out.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from keycabinet.services.loan_ledger import LoanLedger
from keycabinet.services.notification_service import OverdueNotifier
from keycabinet.utils.exceptions import FaultError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    scanned: int
    transitioned: int
    loan_ids: list[str] = field(default_factory=list)
    notified: int = 0


class OverdueMonitor:
    def __init__(self, db: Session, notifier: Optional[OverdueNotifier] = None):
        self.db = db
        self.ledger = LoanLedger(db)
        self.notifier = notifier or OverdueNotifier()

    def sweep(self, now: Optional[datetime] = None) -> SweepResult:
        """Move every active loan past its deadline to overdue.

        Each transition is a conditional update on ``status = active``, so a
        loan that was returned (or flagged) in the meantime is skipped, and a
        second sweep finds nothing to do. Notifications go out after commit.
        """
        sweep_now = now or datetime.utcnow()

        try:
            candidates = self.ledger.find_due_for_overdue(sweep_now)
            transitioned_ids = [
                loan.id for loan in candidates if self.ledger.mark_overdue(loan.id, sweep_now)
            ]
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.error(f"Overdue sweep failed: {exc}", exc_info=True)
            raise FaultError("overdue_sweep", type(exc).__name__) from exc

        notified = 0
        for loan_id in transitioned_ids:
            loan = self.ledger.get(loan_id)
            if loan is None:
                continue
            if self.notifier.notify_overdue(loan):
                notified += 1

        if transitioned_ids:
            logger.info(
                f"Overdue sweep: {len(candidates)} due, {len(transitioned_ids)} flagged overdue, "
                f"{notified} notifications delivered"
            )
        return SweepResult(
            scanned=len(candidates),
            transitioned=len(transitioned_ids),
            loan_ids=transitioned_ids,
            notified=notified,
        )

from keycabinet.models.user import User, UserRole
from keycabinet.models.session import Session
from keycabinet.models.key import Key, KeyStatus
from keycabinet.models.loan import Loan, LoanStatus, OPEN_LOAN_STATUSES
from keycabinet.models.favorite import Favorite
from keycabinet.models.audit_log import SystemAuditLog

__all__ = [
    "User",
    "UserRole",
    "Session",
    "Key",
    "KeyStatus",
    "Loan",
    "LoanStatus",
    "OPEN_LOAN_STATUSES",
    "Favorite",
    "SystemAuditLog",
]

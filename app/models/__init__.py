from app.models.user import User
from app.models.credit_ledger import CreditLedgerEntry
from app.models.counter import Counter
from app.models.audit_log import AuditLog
from app.models.failed_job import FailedJob

__all__ = [
    "User",
    "CreditLedgerEntry",
    "Counter",
    "AuditLog",
    "FailedJob",
]

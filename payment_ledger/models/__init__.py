"""Domain models for the payment ledger."""

from payment_ledger.models.enums import AppendOutcome, EventKind, ValidationStatus
from payment_ledger.models.loan import Loan, ScheduleEntry
from payment_ledger.models.payment import CONTENT_FIELDS, PaymentRecord
from payment_ledger.models.snapshot import LoanSnapshot, MissedInstallment
from payment_ledger.models.upload import UploadLog, ValidationIssue

__all__ = [
    "AppendOutcome",
    "CONTENT_FIELDS",
    "EventKind",
    "Loan",
    "LoanSnapshot",
    "MissedInstallment",
    "PaymentRecord",
    "ScheduleEntry",
    "UploadLog",
    "ValidationIssue",
    "ValidationStatus",
]

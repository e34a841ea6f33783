"""Derived point-in-time loan state."""

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from payment_ledger.models.payment import PaymentRecord


@dataclass(frozen=True)
class MissedInstallment:
    """A schedule entry past due at the snapshot date and not fully paid."""

    due_date: date
    due_amount: Decimal
    outstanding_amount: Decimal


@dataclass(frozen=True)
class LoanSnapshot:
    """Loan state reconstructed from the ledger as of ``as_of_date``."""

    loan_id: str
    as_of_date: date
    outstanding_balance: Decimal
    total_paid: Decimal
    payments_made: int
    principal_amount: Decimal
    recent_payments: tuple[PaymentRecord, ...]
    borrower_id: str
    loan_name: str
    missed_installments: tuple[MissedInstallment, ...] = ()
    unapplied_credit: Decimal = Decimal("0")

    @property
    def overpaid(self) -> bool:
        return self.outstanding_balance < 0

    @property
    def missed_count(self) -> int:
        return len(self.missed_installments)

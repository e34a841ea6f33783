"""Static loan data consumed by the ledger."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal


@dataclass(frozen=True)
class ScheduleEntry:
    """A single installment due on a loan."""

    due_date: date
    due_amount: Decimal


@dataclass(frozen=True)
class Loan:
    """Loan contract as owned by the loan book.

    The installment schedule is stored sorted by due date; callers may
    pass entries in any order.
    """

    loan_id: str
    borrower_id: str
    principal_amount: Decimal
    loan_name: str = ""
    installment_schedule: tuple[ScheduleEntry, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        ordered = tuple(sorted(self.installment_schedule, key=lambda e: e.due_date))
        object.__setattr__(self, "installment_schedule", ordered)
        if not self.loan_name:
            object.__setattr__(self, "loan_name", f"Loan {self.loan_id}")

    @property
    def scheduled_total(self) -> Decimal:
        """Sum of all scheduled installment amounts."""
        return sum((e.due_amount for e in self.installment_schedule), Decimal("0"))

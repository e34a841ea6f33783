"""Sample loans, schedules and payment files."""

from __future__ import annotations

import random
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_DOWN, Decimal
from enum import Enum
from typing import Any

from payment_ledger.generators.base import BaseGenerator
from payment_ledger.models import Loan, ScheduleEntry

CENT = Decimal("0.01")


class PaymentPattern(str, Enum):
    ON_TIME = "ON_TIME"
    SHORT = "SHORT"
    OVER = "OVER"
    MISSED = "MISSED"


@dataclass
class PaymentMix:
    """Probability of each payment pattern per installment."""

    on_time_rate: float = 0.75
    short_rate: float = 0.10
    over_rate: float = 0.05
    missed_rate: float = 0.10

    def weights(self) -> list[float]:
        return [self.on_time_rate, self.short_rate, self.over_rate, self.missed_rate]


class LoanBookGenerator(BaseGenerator):
    """Generate loans with monthly schedules and the payment rows made on them."""

    TERMS = [6, 12, 18, 24, 36]
    PURPOSES = ["Personal", "Vehicle", "Education", "Home Improvement", "Business"]
    CURRENCY = "ZAR"

    def generate_loan(
        self,
        borrower_id: str | None = None,
        start_date: date | None = None,
    ) -> Loan:
        """Generate a loan whose schedule repays the principal in equal parts.

        Parameters
        ----------
        borrower_id : str | None
            Owner of the loan; generated if omitted.
        start_date : date | None
            Disbursement date; installments fall every 30 days after it.

        Returns
        -------
        Loan
            Generated loan.
        """
        term = random.choice(self.TERMS)
        principal = Decimal(random.randint(5, 100) * 1000)
        if start_date is None:
            start_date = date.today() - timedelta(days=random.randint(30, 365))

        return Loan(
            loan_id=self.unique_id("L", 6),
            borrower_id=borrower_id or self.unique_id("B", 6),
            principal_amount=principal,
            loan_name=f"{self.fake.last_name()} {random.choice(self.PURPOSES)} Loan",
            installment_schedule=build_schedule(principal, term, start_date),
        )

    def generate_payments(
        self,
        loan: Loan,
        mix: PaymentMix | None = None,
        as_of: date | None = None,
    ) -> list[dict[str, Any]]:
        """Generate raw payment rows for installments due by ``as_of``.

        Parameters
        ----------
        loan : Loan
            Loan to pay.
        mix : PaymentMix | None
            Pattern probabilities; defaults to ``PaymentMix()``.
        as_of : date | None
            Last date payments may fall on (default today).

        Returns
        -------
        list[dict[str, Any]]
            Rows with string cells, as a CSV reader would produce them.
        """
        mix = mix or PaymentMix()
        as_of = as_of or date.today()
        patterns = list(PaymentPattern)
        rows = []

        for number, entry in enumerate(loan.installment_schedule, start=1):
            if entry.due_date > as_of:
                break

            pattern = random.choices(patterns, weights=mix.weights(), k=1)[0]
            if pattern is PaymentPattern.MISSED:
                continue

            if pattern is PaymentPattern.SHORT:
                amount = _scale(entry.due_amount, random.uniform(0.3, 0.9))
            elif pattern is PaymentPattern.OVER:
                amount = _scale(entry.due_amount, random.uniform(1.1, 1.5))
            else:
                amount = entry.due_amount

            paid_on = min(entry.due_date + timedelta(days=random.randint(0, 3)), as_of)
            rows.append(self._row(loan, paid_on, amount, f"Installment {number}"))

        return rows

    def generate_book(
        self,
        num_loans: int,
        mix: PaymentMix | None = None,
        as_of: date | None = None,
    ) -> tuple[list[Loan], list[dict[str, Any]]]:
        """Generate several loans and all their payment rows, ordered by date."""
        as_of = as_of or date.today()
        loans = [
            self.generate_loan(start_date=as_of - timedelta(days=random.randint(30, 365)))
            for _ in range(num_loans)
        ]
        rows = [row for loan in loans for row in self.generate_payments(loan, mix, as_of)]
        rows.sort(key=lambda r: (r["date"], r["id"]))
        return loans, rows

    def corrupt_rows(self, rows: list[dict[str, Any]], rate: float = 0.05) -> list[dict[str, Any]]:
        """Copy ``rows`` with a share of them broken in ways validation rejects."""
        broken = []
        for row in rows:
            row = dict(row)
            if random.random() < rate:
                defect = random.choice(["missing_id", "bad_date", "zero_amount", "bad_amount"])
                if defect == "missing_id":
                    row["id"] = ""
                elif defect == "bad_date":
                    row["date"] = "31/31/2024"
                elif defect == "zero_amount":
                    row["amount"] = "0.00"
                else:
                    row["amount"] = "N/A"
            broken.append(row)
        return broken

    def _row(self, loan: Loan, paid_on: date, amount: Decimal, description: str) -> dict[str, Any]:
        return {
            "id": self.unique_id("P", 9),
            "borrower_id": loan.borrower_id,
            "loan_id": loan.loan_id,
            "date": paid_on.isoformat(),
            "currency": self.CURRENCY,
            "description": description,
            "amount": str(amount),
        }


def build_schedule(principal: Decimal, term: int, start_date: date) -> tuple[ScheduleEntry, ...]:
    """Split ``principal`` into ``term`` installments every 30 days.

    The last installment absorbs the rounding so the schedule sums to the
    principal exactly.
    """
    if term < 1:
        raise ValueError("term must be at least 1")
    installment = (principal / term).quantize(CENT, rounding=ROUND_DOWN)
    entries = []
    for i in range(1, term + 1):
        amount = installment if i < term else principal - installment * (term - 1)
        entries.append(ScheduleEntry(due_date=start_date + timedelta(days=30 * i), due_amount=amount))
    return tuple(entries)


def _scale(amount: Decimal, factor: float) -> Decimal:
    return (amount * Decimal(str(round(factor, 2)))).quantize(CENT)

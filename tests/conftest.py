"""Pytest configuration and fixtures."""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable

import pytest

from payment_ledger.models import EventKind, Loan, PaymentRecord, ScheduleEntry
from payment_ledger.service import LedgerService
from payment_ledger.store.ledger import LedgerStore
from payment_ledger.store.loans import LoanRegistry

DAY_1 = date(2024, 1, 1)
INGESTED_AT = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def seed() -> int:
    """Fixed seed for reproducible tests."""
    return 42


@pytest.fixture
def schedule() -> tuple[ScheduleEntry, ...]:
    """Twelve monthly installments of 2000 starting on day 1."""
    return tuple(
        ScheduleEntry(due_date=date(2024, month, 1), due_amount=Decimal("2000.00"))
        for month in range(1, 13)
    )


@pytest.fixture
def loan(schedule: tuple[ScheduleEntry, ...]) -> Loan:
    """Loan with principal 24000 repaid in twelve installments."""
    return Loan(
        loan_id="loan-001",
        borrower_id="bor-001",
        principal_amount=Decimal("24000.00"),
        loan_name="Test Loan",
        installment_schedule=schedule,
    )


@pytest.fixture
def single_entry_loan() -> Loan:
    """Loan with principal 24000 and one installment of 2000 on day 1."""
    return Loan(
        loan_id="loan-single",
        borrower_id="bor-001",
        principal_amount=Decimal("24000.00"),
        installment_schedule=(ScheduleEntry(DAY_1, Decimal("2000.00")),),
    )


@pytest.fixture
def registry(loan: Loan, single_entry_loan: Loan) -> LoanRegistry:
    """Registry holding the test loans plus a second borrower's loan."""
    other = Loan(
        loan_id="loan-002",
        borrower_id="bor-002",
        principal_amount=Decimal("6000.00"),
        installment_schedule=(
            ScheduleEntry(date(2024, 1, 15), Decimal("3000.00")),
            ScheduleEntry(date(2024, 2, 15), Decimal("3000.00")),
        ),
    )
    return LoanRegistry.from_loans([loan, single_entry_loan, other])


@pytest.fixture
def store() -> LedgerStore:
    """Create a fresh in-memory ledger for each test."""
    return LedgerStore()


@pytest.fixture
def service(registry: LoanRegistry) -> LedgerService:
    """In-memory ledger service over the test registry."""
    return LedgerService(registry)


@pytest.fixture
def make_row() -> Callable[..., dict[str, Any]]:
    """Factory for raw upload rows with sensible defaults."""

    def _make_row(**overrides: Any) -> dict[str, Any]:
        row = {
            "id": "pay-001",
            "borrower_id": "bor-001",
            "loan_id": "loan-001",
            "date": "2024-01-01",
            "currency": "ZAR",
            "description": "Installment",
            "amount": "2000.00",
        }
        row.update(overrides)
        return row

    return _make_row


@pytest.fixture
def make_record() -> Callable[..., PaymentRecord]:
    """Factory for stored payment records."""

    def _make_record(
        record_id: str = "pay-001",
        amount: str = "2000.00",
        on: date = DAY_1,
        loan_id: str = "loan-001",
        kind: EventKind = EventKind.PAYMENT_RECEIVED,
        **overrides: Any,
    ) -> PaymentRecord:
        fields: dict[str, Any] = {
            "id": record_id,
            "borrower_id": "bor-001",
            "loan_id": loan_id,
            "date": on,
            "currency": "ZAR",
            "description": "Installment",
            "amount": Decimal(amount),
            "event_kind": kind,
            "ingested_at": INGESTED_AT,
        }
        fields.update(overrides)
        return PaymentRecord(**fields)

    return _make_record

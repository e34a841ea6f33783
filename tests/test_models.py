"""Tests for ledger domain models."""

from dataclasses import FrozenInstanceError
from datetime import date
from decimal import Decimal

import pytest

from payment_ledger.models import (
    EventKind,
    Loan,
    LoanSnapshot,
    MissedInstallment,
    ScheduleEntry,
    ValidationStatus,
)


class TestEventKind:
    """Tests for the EventKind enum."""

    def test_values_are_event_names(self) -> None:
        """Test enum values match the published event names."""
        assert EventKind.PAYMENT_RECEIVED.value == "PaymentReceivedEvent"
        assert EventKind.SHORT_PAYMENT.value == "ShortPaymentEvent"
        assert EventKind.OVER_PAYMENT.value == "OverPaymentEvent"
        assert EventKind.MISSED_PAYMENT.value == "MissedPaymentEvent"

    def test_lookup_by_value(self) -> None:
        """Test string values round-trip through the enum."""
        assert EventKind("ShortPaymentEvent") is EventKind.SHORT_PAYMENT

    @pytest.mark.parametrize(
        "kind,counts",
        [
            (EventKind.PAYMENT_RECEIVED, True),
            (EventKind.SHORT_PAYMENT, True),
            (EventKind.OVER_PAYMENT, True),
            (EventKind.MISSED_PAYMENT, False),
        ],
    )
    def test_counts_towards_paid(self, kind: EventKind, counts: bool) -> None:
        """Test only payment-driven kinds contribute to totals."""
        assert kind.counts_towards_paid is counts

    def test_every_kind_has_label(self) -> None:
        """Test each member is handled by the label mapping."""
        labels = {kind.label for kind in EventKind}
        assert len(labels) == len(EventKind)

    def test_validation_status_values(self) -> None:
        """Test upload status values."""
        assert ValidationStatus.SUCCESS.value == "success"
        assert ValidationStatus.FAILED.value == "failed"


class TestLoan:
    """Tests for Loan and ScheduleEntry."""

    def test_schedule_sorted_by_due_date(self) -> None:
        """Test schedule entries are stored in due-date order."""
        loan = Loan(
            loan_id="loan-x",
            borrower_id="bor-x",
            principal_amount=Decimal("3000"),
            installment_schedule=(
                ScheduleEntry(date(2024, 3, 1), Decimal("1000")),
                ScheduleEntry(date(2024, 1, 1), Decimal("1000")),
                ScheduleEntry(date(2024, 2, 1), Decimal("1000")),
            ),
        )

        assert [e.due_date.month for e in loan.installment_schedule] == [1, 2, 3]

    def test_default_loan_name(self) -> None:
        """Test a missing loan name falls back to the id."""
        loan = Loan(loan_id="loan-x", borrower_id="bor-x", principal_amount=Decimal("1"))
        assert loan.loan_name == "Loan loan-x"

    def test_scheduled_total(self, loan: Loan) -> None:
        """Test schedule total sums all installments."""
        assert loan.scheduled_total == Decimal("24000.00")

    def test_loan_is_frozen(self, loan: Loan) -> None:
        """Test loans cannot be mutated."""
        with pytest.raises(FrozenInstanceError):
            loan.principal_amount = Decimal("1")  # type: ignore[misc]


class TestPaymentRecord:
    """Tests for PaymentRecord."""

    def test_sort_key(self, make_record) -> None:
        """Test replay order key is (date, id)."""
        record = make_record("pay-009", on=date(2024, 2, 1))
        assert record.sort_key == (date(2024, 2, 1), "pay-009")

    def test_is_reversal(self, make_record) -> None:
        """Test negative amounts are reversals."""
        assert make_record(amount="-50.00").is_reversal
        assert not make_record(amount="50.00").is_reversal

    def test_same_content_ignores_kind_and_ingestion(self, make_record) -> None:
        """Test content comparison only looks at uploader fields."""
        first = make_record()
        second = make_record(kind=EventKind.OVER_PAYMENT, flags=("unknown_loan",))

        assert first.same_content(second)
        assert first.diff(second) == []

    def test_diff_lists_changed_fields(self, make_record) -> None:
        """Test diff names every changed content field."""
        first = make_record()
        second = make_record(amount="1999.00", description="Other")

        assert not first.same_content(second)
        assert first.diff(second) == ["description", "amount"]

    def test_with_kind(self, make_record) -> None:
        """Test reclassification returns a copy."""
        record = make_record()

        assert record.with_kind(EventKind.PAYMENT_RECEIVED) is record
        changed = record.with_kind(EventKind.SHORT_PAYMENT)
        assert changed.event_kind is EventKind.SHORT_PAYMENT
        assert record.event_kind is EventKind.PAYMENT_RECEIVED
        assert changed.same_content(record)


class TestLoanSnapshot:
    """Tests for LoanSnapshot derived properties."""

    def _snapshot(self, outstanding: str, missed: tuple = ()) -> LoanSnapshot:
        return LoanSnapshot(
            loan_id="loan-001",
            as_of_date=date(2024, 1, 1),
            outstanding_balance=Decimal(outstanding),
            total_paid=Decimal("0"),
            payments_made=0,
            principal_amount=Decimal("24000"),
            recent_payments=(),
            borrower_id="bor-001",
            loan_name="Test",
            missed_installments=missed,
        )

    def test_overpaid(self) -> None:
        """Test negative outstanding balance marks the loan overpaid."""
        assert self._snapshot("-1.00").overpaid
        assert not self._snapshot("0").overpaid

    def test_missed_count(self) -> None:
        """Test missed installment count."""
        missed = (MissedInstallment(date(2024, 1, 1), Decimal("2000"), Decimal("2000")),)
        assert self._snapshot("24000", missed).missed_count == 1

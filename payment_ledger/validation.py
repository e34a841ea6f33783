"""Row-level validation of uploaded payment rows."""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Mapping

from payment_ledger.config import EngineConfig
from payment_ledger.exceptions import (
    MissingFieldError,
    UnknownReferenceError,
    ValidationError,
)
from payment_ledger.models import EventKind, PaymentRecord, ValidationIssue
from payment_ledger.parsing import parse_amount, parse_date
from payment_ledger.store.loans import LoanRegistry

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = ("id", "borrower_id", "loan_id", "date", "currency", "description", "amount")

FLAG_UNKNOWN_LOAN = "unknown_loan"
FLAG_UNKNOWN_BORROWER = "unknown_borrower"
FLAG_BORROWER_MISMATCH = "borrower_mismatch"


@dataclass(frozen=True)
class ValidPayment:
    """A payment row that passed validation but is not classified yet."""

    id: str
    borrower_id: str
    loan_id: str
    date: date
    currency: str
    description: str
    amount: Decimal
    flags: tuple[str, ...] = ()

    @property
    def sort_key(self) -> tuple[date, str]:
        return (self.date, self.id)

    def to_record(self, event_kind: EventKind, ingested_at: datetime) -> PaymentRecord:
        return PaymentRecord(
            id=self.id,
            borrower_id=self.borrower_id,
            loan_id=self.loan_id,
            date=self.date,
            currency=self.currency,
            description=self.description,
            amount=self.amount,
            event_kind=event_kind,
            ingested_at=ingested_at,
            flags=self.flags,
        )


@dataclass(frozen=True)
class RowValidation:
    """Validation outcome for one source row."""

    row_number: int
    payment: ValidPayment | None
    errors: tuple[ValidationIssue, ...] = field(default_factory=tuple)
    warnings: tuple[ValidationIssue, ...] = field(default_factory=tuple)

    @property
    def is_valid(self) -> bool:
        return self.payment is not None


def issue_from_error(row_number: int, error: ValidationError) -> ValidationIssue:
    """Turn a raised validation error into a row-scoped issue."""
    return ValidationIssue(
        row=row_number,
        field=error.field or "row",
        message=str(error),
        error_type=type(error).__name__,
    )


class RowValidator:
    """Check parsed payment rows against schema and business rules.

    Parameters
    ----------
    loans : LoanRegistry
        Known loans and borrowers. Unresolvable references produce
        warnings, not errors.
    config : EngineConfig | None
        Supplies the number of decimal places allowed in amounts.
    """

    def __init__(self, loans: LoanRegistry, config: EngineConfig | None = None) -> None:
        self.loans = loans
        self.config = config or EngineConfig()

    def validate(self, raw_row: Mapping[str, Any], row_number: int) -> RowValidation:
        """Validate one row.

        Parameters
        ----------
        raw_row : Mapping[str, Any]
            Cell values keyed by column name. Keys are matched
            case-insensitively and ignoring surrounding whitespace.
        row_number : int
            1-based position of the row in the source file.

        Returns
        -------
        RowValidation
            The validated payment, or the errors that excluded it.
        """
        if not isinstance(raw_row, Mapping):
            error = ValidationError(f"Row is not a record: {type(raw_row).__name__}")
            return RowValidation(row_number, None, errors=(issue_from_error(row_number, error),))

        row = {str(k).strip().lower(): v for k, v in raw_row.items() if k is not None}
        errors: list[ValidationIssue] = []
        values: dict[str, Any] = {}

        for name in REQUIRED_FIELDS:
            value = row.get(name)
            if value is None or (isinstance(value, str) and not value.strip()):
                errors.append(
                    issue_from_error(
                        row_number, MissingFieldError(f"Missing required field: {name}", field=name)
                    )
                )
            else:
                values[name] = value

        if "date" in values:
            try:
                values["date"] = parse_date(values["date"])
            except ValidationError as exc:
                errors.append(issue_from_error(row_number, exc))

        if "amount" in values:
            try:
                values["amount"] = parse_amount(values["amount"], places=self.config.amount_places)
            except ValidationError as exc:
                errors.append(issue_from_error(row_number, exc))

        if errors:
            logger.debug("Row %d rejected with %d errors", row_number, len(errors))
            return RowValidation(row_number, None, errors=tuple(errors))

        payment = ValidPayment(
            id=str(values["id"]).strip(),
            borrower_id=str(values["borrower_id"]).strip(),
            loan_id=str(values["loan_id"]).strip(),
            date=values["date"],
            currency=str(values["currency"]).strip().upper(),
            description=str(values["description"]).strip(),
            amount=values["amount"],
        )

        warnings, flags = self._check_references(payment, row_number)
        if flags:
            payment = replace(payment, flags=tuple(flags))

        return RowValidation(row_number, payment, warnings=tuple(warnings))

    def _check_references(
        self, payment: ValidPayment, row_number: int
    ) -> tuple[list[ValidationIssue], list[str]]:
        warnings: list[ValidationIssue] = []
        flags: list[str] = []

        loan = self.loans.find_loan(payment.loan_id)
        if loan is None:
            flags.append(FLAG_UNKNOWN_LOAN)
            warnings.append(
                issue_from_error(
                    row_number,
                    UnknownReferenceError(f"Unknown loan: {payment.loan_id}", field="loan_id"),
                )
            )

        if not self.loans.has_borrower(payment.borrower_id):
            flags.append(FLAG_UNKNOWN_BORROWER)
            warnings.append(
                issue_from_error(
                    row_number,
                    UnknownReferenceError(
                        f"Unknown borrower: {payment.borrower_id}", field="borrower_id"
                    ),
                )
            )
        elif loan is not None and loan.borrower_id != payment.borrower_id:
            flags.append(FLAG_BORROWER_MISMATCH)
            warnings.append(
                issue_from_error(
                    row_number,
                    UnknownReferenceError(
                        f"Loan {payment.loan_id} does not belong to borrower {payment.borrower_id}",
                        field="borrower_id",
                    ),
                )
            )

        return warnings, flags

"""Registry of static loan data owned by the loan book."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from payment_ledger.exceptions import ConfigurationError, LoanNotFoundError
from payment_ledger.models import Loan
from payment_ledger.sinks.serialization import loan_from_dict

logger = logging.getLogger(__name__)


@dataclass
class LoanRegistry:
    """Read-only lookup of loans and borrowers.

    The ledger never writes loan data; the registry is filled once at
    start-up from the loan book.
    """

    loans: dict[str, Loan] = field(default_factory=dict)

    # Relationship indexes
    _borrower_loans: dict[str, list[str]] = field(default_factory=dict)

    def add_loan(self, loan: Loan) -> None:
        """Register a loan."""
        if loan.loan_id in self.loans:
            raise ConfigurationError(f"Loan {loan.loan_id} registered twice")
        self.loans[loan.loan_id] = loan
        self._borrower_loans.setdefault(loan.borrower_id, []).append(loan.loan_id)

    def get_loan(self, loan_id: str) -> Loan:
        """Return the loan or raise ``LoanNotFoundError``."""
        try:
            return self.loans[loan_id]
        except KeyError:
            raise LoanNotFoundError(f"Loan {loan_id} not found") from None

    def find_loan(self, loan_id: str) -> Loan | None:
        return self.loans.get(loan_id)

    def has_loan(self, loan_id: str) -> bool:
        return loan_id in self.loans

    def has_borrower(self, borrower_id: str) -> bool:
        return borrower_id in self._borrower_loans

    def get_borrower_loans(self, borrower_id: str) -> list[Loan]:
        """Get all loans for a borrower."""
        loan_ids = self._borrower_loans.get(borrower_id, [])
        return [self.loans[lid] for lid in loan_ids]

    def __len__(self) -> int:
        return len(self.loans)

    @classmethod
    def from_loans(cls, loans: list[Loan]) -> "LoanRegistry":
        registry = cls()
        for loan in loans:
            registry.add_loan(loan)
        return registry

    @classmethod
    def from_json_file(cls, path: str | Path) -> "LoanRegistry":
        """Load loans from a JSON file holding a list of loan objects.

        Raises
        ------
        ConfigurationError
            If the file is missing or malformed.
        """
        path = Path(path)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError as exc:
            raise ConfigurationError(f"Loan file not found: {path}") from exc
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Loan file {path} is not valid JSON: {exc}") from exc

        if not isinstance(data, list):
            raise ConfigurationError(f"Loan file {path} must contain a JSON list")

        try:
            registry = cls.from_loans([loan_from_dict(item) for item in data])
        except (KeyError, TypeError, ValueError, ArithmeticError) as exc:
            raise ConfigurationError(f"Invalid loan entry in {path}: {exc}") from exc

        logger.info("Loaded %d loans from %s", len(registry), path)
        return registry

"""Payment records held by the ledger."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from decimal import Decimal

from payment_ledger.models.enums import EventKind

# Fields supplied by the uploader; everything else is assigned by the ledger.
CONTENT_FIELDS = ("borrower_id", "loan_id", "date", "currency", "description", "amount")


@dataclass(frozen=True)
class PaymentRecord:
    """A classified, immutable payment on a loan.

    ``ingested_at`` is kept for audit only and never takes part in
    snapshot computations or content comparison.
    """

    id: str
    borrower_id: str
    loan_id: str
    date: date
    currency: str
    description: str
    amount: Decimal  # Signed; negative amounts are reversals
    event_kind: EventKind
    ingested_at: datetime
    flags: tuple[str, ...] = field(default_factory=tuple)

    @property
    def sort_key(self) -> tuple[date, str]:
        """Replay order: payment date, then id."""
        return (self.date, self.id)

    @property
    def is_reversal(self) -> bool:
        return self.amount < 0

    def content(self) -> tuple:
        """Uploader-supplied field values used for idempotency checks."""
        return tuple(getattr(self, name) for name in CONTENT_FIELDS)

    def same_content(self, other: "PaymentRecord") -> bool:
        return self.id == other.id and self.content() == other.content()

    def diff(self, other: "PaymentRecord") -> list[str]:
        """Names of content fields that differ from ``other``."""
        return [
            name for name in CONTENT_FIELDS if getattr(self, name) != getattr(other, name)
        ]

    def with_kind(self, kind: EventKind) -> "PaymentRecord":
        """Copy of this record carrying a different classification."""
        if kind is self.event_kind:
            return self
        return replace(self, event_kind=kind)

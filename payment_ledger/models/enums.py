"""Enumeration types for ledger entities."""

from enum import Enum


class EventKind(str, Enum):
    """Classification outcome of a payment against its loan's schedule.

    ``MISSED_PAYMENT`` is never assigned to an ingested record; it only
    appears as read-time state derived by the snapshot engine.
    """

    PAYMENT_RECEIVED = "PaymentReceivedEvent"
    SHORT_PAYMENT = "ShortPaymentEvent"
    OVER_PAYMENT = "OverPaymentEvent"
    MISSED_PAYMENT = "MissedPaymentEvent"

    @property
    def counts_towards_paid(self) -> bool:
        """Whether records of this kind contribute to ``total_paid``."""
        if self is EventKind.PAYMENT_RECEIVED:
            return True
        if self is EventKind.SHORT_PAYMENT:
            return True
        if self is EventKind.OVER_PAYMENT:
            return True
        if self is EventKind.MISSED_PAYMENT:
            return False
        raise ValueError(f"Unhandled event kind: {self!r}")

    @property
    def label(self) -> str:
        """Short human readable label."""
        if self is EventKind.PAYMENT_RECEIVED:
            return "Payment Received"
        if self is EventKind.SHORT_PAYMENT:
            return "Short Payment"
        if self is EventKind.OVER_PAYMENT:
            return "Over Payment"
        if self is EventKind.MISSED_PAYMENT:
            return "Missed Payment"
        raise ValueError(f"Unhandled event kind: {self!r}")


class ValidationStatus(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


class AppendOutcome(str, Enum):
    CREATED = "CREATED"
    DUPLICATE = "DUPLICATE"

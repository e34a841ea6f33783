"""Classification of payments against a loan's installment schedule.

Schedule entries are consumed in ascending due-date order. A payment is
compared with the remaining amount on the earliest entry that is already
due on the payment date and not yet satisfied:

* equal (within tolerance)  -> PaymentReceivedEvent
* less                      -> ShortPaymentEvent, the shortfall stays on the entry
* more                      -> OverPaymentEvent, the surplus moves to the next entries
* nothing due and unpaid    -> OverPaymentEvent, applied ahead as a pre-payment

Negative amounts are reversals. They are ShortPaymentEvents that first
consume unapplied credit and then reinstate the most recently credited
entries.

The verdict for a payment depends only on the schedule and the loan's
payments that precede it in ``(date, id)`` order, so replaying the same
set of records always yields the same classifications.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Protocol, Sequence

from payment_ledger.models import EventKind, PaymentRecord, ScheduleEntry

logger = logging.getLogger(__name__)

DEFAULT_TOLERANCE = Decimal("0.0001")
ZERO = Decimal("0")


class Payment(Protocol):
    """Anything that can be placed on a schedule."""

    id: str
    date: date
    amount: Decimal

    @property
    def sort_key(self) -> tuple[date, str]: ...


@dataclass
class _EntryState:
    entry: ScheduleEntry
    remaining: Decimal


class ScheduleAllocator:
    """Running allocation of payments onto one loan's schedule.

    Instances are private to a single classification or replay and are
    thrown away afterwards; nothing here is persisted.
    """

    def __init__(
        self,
        schedule: Sequence[ScheduleEntry],
        tolerance: Decimal = DEFAULT_TOLERANCE,
    ) -> None:
        ordered = sorted(schedule, key=lambda e: e.due_date)
        self._entries = [_EntryState(entry=e, remaining=e.due_amount) for e in ordered]
        self._tolerance = tolerance
        self._credits: list[tuple[int, Decimal]] = []
        self.unapplied_credit = ZERO

    def apply(self, payment: Payment) -> EventKind:
        """Allocate ``payment`` and return its event kind."""
        if payment.amount < 0:
            self._reverse(-payment.amount)
            return EventKind.SHORT_PAYMENT

        target = self._target_index(payment.date)
        if target is None:
            self._allocate(payment.amount)
            return EventKind.OVER_PAYMENT

        difference = payment.amount - self._entries[target].remaining
        self._allocate(payment.amount)

        if abs(difference) <= self._tolerance:
            return EventKind.PAYMENT_RECEIVED
        if difference < 0:
            return EventKind.SHORT_PAYMENT
        return EventKind.OVER_PAYMENT

    def outstanding_entries(self, as_of: date) -> list[tuple[ScheduleEntry, Decimal]]:
        """Entries due on or before ``as_of`` that are not fully paid."""
        return [
            (state.entry, state.remaining)
            for state in self._entries
            if state.entry.due_date <= as_of and self._is_open(state)
        ]

    def _is_open(self, state: _EntryState) -> bool:
        return state.remaining > self._tolerance

    def _target_index(self, on: date) -> int | None:
        for index, state in enumerate(self._entries):
            if state.entry.due_date > on:
                return None
            if self._is_open(state):
                return index
        return None

    def _allocate(self, amount: Decimal) -> None:
        left = amount
        for index, state in enumerate(self._entries):
            if left <= 0:
                break
            if not self._is_open(state):
                continue
            applied = min(left, state.remaining)
            state.remaining -= applied
            left -= applied
            self._credits.append((index, applied))
        if left > 0:
            self.unapplied_credit += left

    def _reverse(self, amount: Decimal) -> None:
        left = amount
        taken = min(left, self.unapplied_credit)
        self.unapplied_credit -= taken
        left -= taken

        while left > 0 and self._credits:
            index, applied = self._credits.pop()
            restored = min(left, applied)
            self._entries[index].remaining += restored
            left -= restored
            if restored < applied:
                self._credits.append((index, applied - restored))

        if left > 0:
            # Reversal larger than everything paid so far
            logger.debug("Reversal exceeds allocated payments by %s", left)
            self.unapplied_credit -= left


@dataclass(frozen=True)
class ReplayResult:
    """Outcome of replaying a loan's payments in ``(date, id)`` order."""

    classified: tuple[tuple[PaymentRecord, EventKind], ...]
    allocator: ScheduleAllocator

    @property
    def kinds(self) -> list[EventKind]:
        return [kind for _, kind in self.classified]


def replay(
    records: Iterable[PaymentRecord],
    schedule: Sequence[ScheduleEntry],
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> ReplayResult:
    """Classify ``records`` in replay order against ``schedule``."""
    allocator = ScheduleAllocator(schedule, tolerance)
    ordered = sorted(records, key=lambda r: r.sort_key)
    classified = tuple((record, allocator.apply(record)) for record in ordered)
    return ReplayResult(classified=classified, allocator=allocator)


def classify(
    payment: Payment,
    schedule: Sequence[ScheduleEntry],
    prior_payments: Iterable[PaymentRecord] = (),
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> EventKind:
    """Classify a single payment.

    Parameters
    ----------
    payment : Payment
        Payment to classify. A stored record's ``event_kind`` is ignored.
    schedule : Sequence[ScheduleEntry]
        The loan's installment schedule.
    prior_payments : Iterable[PaymentRecord]
        Other payments on the same loan. Only those ordered before
        ``payment`` by ``(date, id)`` are taken into account.
    tolerance : Decimal
        Largest difference still treated as an exact match.

    Returns
    -------
    EventKind
        One of the payment-driven kinds; never ``MISSED_PAYMENT``.
    """
    key = payment.sort_key
    earlier = [p for p in prior_payments if p.sort_key < key]
    allocator = replay(earlier, schedule, tolerance).allocator
    return allocator.apply(payment)

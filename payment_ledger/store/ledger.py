"""Append-only, idempotent payment ledger."""

import bisect
import heapq
import itertools
import logging
import threading
from datetime import date
from typing import Callable

from payment_ledger.exceptions import ConflictError, SinkError
from payment_ledger.models import AppendOutcome, PaymentRecord
from payment_ledger.sinks.serialization import payment_from_dict, to_dict_fast
from payment_ledger.store.journal import JsonlJournal

logger = logging.getLogger(__name__)

RecordBuilder = Callable[[tuple[PaymentRecord, ...]], PaymentRecord]


class LoanSequencer:
    """Single-writer token for one loan's slice of the ledger.

    ``records`` is an immutable tuple ordered by ``(date, id)``. Writers
    replace it wholesale while holding ``lock``; readers just take the
    current reference and never block.
    """

    __slots__ = ("loan_id", "lock", "records")

    def __init__(self, loan_id: str) -> None:
        self.loan_id = loan_id
        self.lock = threading.Lock()
        self.records: tuple[PaymentRecord, ...] = ()

    def insert(self, record: PaymentRecord) -> None:
        """Insert ``record`` in replay order. Caller must hold ``lock``."""
        current = self.records
        keys = [r.sort_key for r in current]
        index = bisect.bisect_right(keys, record.sort_key)
        self.records = current[:index] + (record,) + current[index:]


class LedgerStore:
    """Payment records indexed by id and by loan.

    Records are never updated or deleted. Appends to different loans run
    in parallel; appends to the same loan are serialised by that loan's
    ``LoanSequencer``.
    """

    def __init__(self, journal: JsonlJournal | None = None) -> None:
        """Create the store, replaying ``journal`` if one is given.

        Parameters
        ----------
        journal : JsonlJournal | None
            Durable log every committed record is written to before it
            becomes visible.
        """
        self._journal = journal
        self._registry_lock = threading.Lock()
        self._sequencers: dict[str, LoanSequencer] = {}
        self._by_id: dict[str, PaymentRecord] = {}

        if journal is not None:
            self._restore(journal)

    def append(self, record: PaymentRecord) -> AppendOutcome:
        """Add a record.

        Returns
        -------
        AppendOutcome
            ``CREATED`` for a new record, ``DUPLICATE`` when an identical
            record is already stored.

        Raises
        ------
        ConflictError
            If the id is already stored with different content. The
            stored record is left untouched.
        """
        sequencer = self._sequencer(record.loan_id)
        with sequencer.lock:
            return self._append_locked(sequencer, record)

    def append_with(
        self, loan_id: str, build: RecordBuilder
    ) -> tuple[PaymentRecord, AppendOutcome]:
        """Build and append a record while holding the loan's sequencer.

        ``build`` receives the loan's current records in replay order, so
        anything it derives from them (such as the event kind) cannot race
        with another append to the same loan.

        Returns
        -------
        tuple[PaymentRecord, AppendOutcome]
            The stored record (the original one for a duplicate) and the
            outcome.
        """
        sequencer = self._sequencer(loan_id)
        with sequencer.lock:
            record = build(sequencer.records)
            if record.loan_id != loan_id:
                raise ValueError(f"Record {record.id} belongs to loan {record.loan_id}, not {loan_id}")
            outcome = self._append_locked(sequencer, record)
            if outcome is AppendOutcome.DUPLICATE:
                record = self._by_id[record.id]
            return record, outcome

    def _append_locked(self, sequencer: LoanSequencer, record: PaymentRecord) -> AppendOutcome:
        with self._registry_lock:
            existing = self._by_id.get(record.id)
            if existing is not None:
                if existing.same_content(record):
                    logger.debug("Duplicate payment %s ignored", record.id, extra={"payment_id": record.id})
                    return AppendOutcome.DUPLICATE
                changed = ", ".join(existing.diff(record))
                raise ConflictError(
                    f"Payment {record.id} already exists with different {changed}",
                    record_id=record.id,
                )
            self._by_id[record.id] = record

        if self._journal is not None:
            try:
                self._journal.append(to_dict_fast(record))
            except SinkError:
                with self._registry_lock:
                    del self._by_id[record.id]
                raise

        sequencer.insert(record)
        return AppendOutcome.CREATED

    # Query methods
    def get(self, record_id: str) -> PaymentRecord | None:
        return self._by_id.get(record_id)

    def query_by_loan(self, loan_id: str, up_to: date | None = None) -> tuple[PaymentRecord, ...]:
        """Get a loan's records dated on or before ``up_to``, in replay order."""
        sequencer = self._sequencers.get(loan_id)
        if sequencer is None:
            return ()
        records = sequencer.records
        if up_to is None:
            return records
        return tuple(itertools.takewhile(lambda r: r.date <= up_to, records))

    def recent(self, limit: int | None = None) -> list[PaymentRecord]:
        """Get records across all loans, most recent first."""
        all_records = itertools.chain.from_iterable(
            s.records for s in list(self._sequencers.values())
        )
        if limit is None:
            return sorted(all_records, key=lambda r: r.sort_key, reverse=True)
        return heapq.nlargest(limit, all_records, key=lambda r: r.sort_key)

    def loan_ids(self) -> list[str]:
        return sorted(self._sequencers)

    def __len__(self) -> int:
        return len(self._by_id)

    def summary(self) -> dict[str, int]:
        """Return summary counts."""
        return {
            "payments": len(self._by_id),
            "loans": len(self._sequencers),
        }

    def _sequencer(self, loan_id: str) -> LoanSequencer:
        sequencer = self._sequencers.get(loan_id)
        if sequencer is not None:
            return sequencer
        with self._registry_lock:
            return self._sequencers.setdefault(loan_id, LoanSequencer(loan_id))

    def _restore(self, journal: JsonlJournal) -> None:
        restored = 0
        for data in journal.load():
            record = payment_from_dict(data)
            if record.id in self._by_id:
                logger.warning("Journal repeats payment %s; keeping the first entry", record.id)
                continue
            self._by_id[record.id] = record
            self._sequencer(record.loan_id).insert(record)
            restored += 1
        logger.info("Restored %d payments from %s", restored, journal.path)

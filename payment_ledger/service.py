"""Transport-neutral facade over the ledger for HTTP handlers and the CLI."""

from __future__ import annotations

import logging
import threading
from datetime import date
from typing import Any, Iterable, Mapping

from payment_ledger.config import LedgerConfig
from payment_ledger.exceptions import InvalidDateError, LoanNotFoundError
from payment_ledger.models import LoanSnapshot, PaymentRecord, UploadLog, ValidationStatus
from payment_ledger.sinks.serialization import serialize_value, to_dict
from payment_ledger.snapshot import SnapshotEngine
from payment_ledger.store.journal import JsonlJournal
from payment_ledger.store.ledger import LedgerStore
from payment_ledger.store.loans import LoanRegistry
from payment_ledger.store.upload_logs import UploadLogStore
from payment_ledger.upload import LedgerSink, UploadCoordinator
from payment_ledger.validation import RowValidator

logger = logging.getLogger(__name__)

DEFAULT_PAYMENTS_LIMIT = 50


def payment_to_dict(record: PaymentRecord) -> dict[str, Any]:
    """Payment in the shape the dashboard lists."""
    data = to_dict(record)
    data["payment_id"] = record.id
    data["payment_date"] = data["date"]
    data["payment_status"] = data["event_kind"]
    return data


def snapshot_to_dict(snapshot: LoanSnapshot) -> dict[str, Any]:
    """Snapshot with payments in dashboard shape and derived flags."""
    return {
        "loan_id": snapshot.loan_id,
        "loan_name": snapshot.loan_name,
        "borrower_id": snapshot.borrower_id,
        "as_of_date": serialize_value(snapshot.as_of_date),
        "snapshot_date": serialize_value(snapshot.as_of_date),
        "principal_amount": serialize_value(snapshot.principal_amount),
        "total_paid": serialize_value(snapshot.total_paid),
        "payments_made": snapshot.payments_made,
        "outstanding_balance": serialize_value(snapshot.outstanding_balance),
        "overpaid": snapshot.overpaid,
        "unapplied_credit": serialize_value(snapshot.unapplied_credit),
        "missed_installments": serialize_value(list(snapshot.missed_installments)),
        "recent_payments": [payment_to_dict(p) for p in snapshot.recent_payments],
    }


def upload_log_to_dict(log: UploadLog) -> dict[str, Any]:
    return to_dict(log)


class LedgerService:
    """Entry points for uploads, payment listing, snapshots and upload logs.

    Query failures come back as ``{"error": ..., "detail": ...}`` instead
    of propagating, so callers can map them straight onto responses.
    """

    def __init__(
        self,
        loans: LoanRegistry,
        store: LedgerStore | None = None,
        log_store: UploadLogStore | None = None,
        sinks: Iterable[LedgerSink] = (),
        config: LedgerConfig | None = None,
    ) -> None:
        self.config = config or LedgerConfig()
        self.loans = loans
        self.store = store if store is not None else LedgerStore()
        self.log_store = log_store if log_store is not None else UploadLogStore()
        self.validator = RowValidator(loans, self.config.engine)
        self.coordinator = UploadCoordinator(
            self.validator,
            self.store,
            self.log_store,
            sinks=sinks,
            config=self.config.engine,
        )
        self.engine = SnapshotEngine(self.store, loans, self.config.engine)

    @classmethod
    def from_config(
        cls, config: LedgerConfig, sinks: Iterable[LedgerSink] = ()
    ) -> "LedgerService":
        """Build a service whose stores live where ``config.storage`` says."""
        storage = config.storage
        loans = (
            LoanRegistry.from_json_file(storage.loans_path)
            if storage.loans_path is not None
            else LoanRegistry()
        )
        store = LedgerStore(JsonlJournal(storage.journal_path) if storage.journal_path else None)
        log_store = UploadLogStore(
            JsonlJournal(storage.upload_log_path) if storage.upload_log_path else None
        )
        return cls(loans, store, log_store, sinks=sinks, config=config)

    def upload(
        self,
        file_name: str,
        rows: Iterable[Mapping[str, Any]],
        cancel_event: threading.Event | None = None,
    ) -> dict[str, Any]:
        """Ingest a file's rows and report the outcome."""
        log = self.coordinator.process_upload(file_name, rows, cancel_event=cancel_event)
        succeeded = log.validation_status is ValidationStatus.SUCCESS

        if succeeded:
            message = (
                f"Processed {log.total_rows} rows: {log.valid_rows} valid, "
                f"{log.error_rows} with errors"
            )
        elif log.total_rows == 0:
            message = "No rows could be read from the file"
        else:
            message = f"All {log.total_rows} rows failed validation"
        if log.cancelled:
            message += " (upload cancelled)"

        return {
            "status": "success" if succeeded else "error",
            "message": message,
            "upload_id": log.upload_id,
            "validation": {
                "processed_rows": log.total_rows,
                "valid_rows": log.valid_rows,
                "error_rows": log.error_rows,
                "errors": serialize_value(list(log.errors)),
                "warnings": serialize_value(list(log.warnings)),
            },
            "payments_processed": log.payments_processed,
        }

    def list_payments(self, limit: int = DEFAULT_PAYMENTS_LIMIT) -> list[dict[str, Any]]:
        """Most recent payments across all loans."""
        if limit < 0:
            raise ValueError("limit must not be negative")
        return [payment_to_dict(record) for record in self.store.recent(limit)]

    def loan_snapshot(self, loan_id: str, as_of_date: date | str) -> dict[str, Any]:
        """Snapshot of a loan, or a structured not-found / invalid-date result."""
        try:
            snapshot = self.engine.snapshot(loan_id, as_of_date)
        except (LoanNotFoundError, InvalidDateError) as exc:
            logger.info("Snapshot of %s at %s failed: %s", loan_id, as_of_date, exc)
            return {"error": type(exc).__name__, "detail": str(exc)}
        return snapshot_to_dict(snapshot)

    def list_validation_logs(self, limit: int | None = None) -> list[dict[str, Any]]:
        """Upload logs, newest first."""
        return [upload_log_to_dict(log) for log in self.log_store.recent(limit)]

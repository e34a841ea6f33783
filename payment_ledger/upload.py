"""Upload coordination: validate, classify and commit one file of payments."""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping, Protocol

from payment_ledger.classifier import classify
from payment_ledger.config import EngineConfig
from payment_ledger.exceptions import ConflictError, SinkError, UploadParseError
from payment_ledger.models import (
    AppendOutcome,
    PaymentRecord,
    UploadLog,
    ValidationIssue,
    ValidationStatus,
)
from payment_ledger.store.ledger import LedgerStore
from payment_ledger.store.upload_logs import UploadLogStore
from payment_ledger.validation import RowValidator, ValidPayment

logger = logging.getLogger(__name__)


class LedgerSink(Protocol):
    """Downstream consumer of committed payments and upload logs."""

    def publish(self, records: list[PaymentRecord]) -> None: ...

    def record_upload(self, log: UploadLog) -> None: ...


@dataclass
class _Tally:
    total_rows: int = 0
    valid_rows: int = 0
    error_rows: int = 0
    duplicate_rows: int = 0
    conflict_rows: int = 0
    errors: list[ValidationIssue] = field(default_factory=list)
    warnings: list[ValidationIssue] = field(default_factory=list)
    committed: list[PaymentRecord] = field(default_factory=list)
    cancelled: bool = False


class UploadCoordinator:
    """Run one upload transaction end to end.

    Rows are validated and committed one at a time in source order, so
    an aborted upload always leaves a committed prefix of the file in the
    ledger. A bad row never aborts the batch.
    """

    def __init__(
        self,
        validator: RowValidator,
        store: LedgerStore,
        log_store: UploadLogStore | None = None,
        sinks: Iterable[LedgerSink] = (),
        config: EngineConfig | None = None,
    ) -> None:
        self.validator = validator
        self.store = store
        self.log_store = log_store if log_store is not None else UploadLogStore()
        self.sinks = list(sinks)
        self.config = config or validator.config

    def process_upload(
        self,
        file_name: str,
        rows: Iterable[Mapping[str, Any]],
        cancel_event: threading.Event | None = None,
    ) -> UploadLog:
        """Validate and ingest every row of an uploaded file.

        Parameters
        ----------
        file_name : str
            Name reported in the upload log.
        rows : Iterable[Mapping[str, Any]]
            Parsed rows. The iterable may raise ``UploadParseError`` if the
            file turns out to be unreadable.
        cancel_event : threading.Event | None
            Checked before each row; once set, no further rows are read.

        Returns
        -------
        UploadLog
            Summary of exactly what was committed.
        """
        upload_id = uuid.uuid4().hex
        upload_timestamp = datetime.now(timezone.utc)
        tally = _Tally()

        context = {"upload_id": upload_id}
        logger.info("Upload %s started: %s", upload_id, file_name, extra=context)

        try:
            iterator = iter(rows)
        except (TypeError, UploadParseError) as exc:
            tally.errors.append(_file_issue(exc))
            iterator = iter(())

        while True:
            if cancel_event is not None and cancel_event.is_set():
                tally.cancelled = True
                logger.warning(
                    "Upload %s cancelled after %d rows", upload_id, tally.total_rows, extra=context
                )
                break

            try:
                raw_row = next(iterator)
            except StopIteration:
                break
            except UploadParseError as exc:
                logger.error(
                    "Upload %s unreadable after %d rows: %s",
                    upload_id,
                    tally.total_rows,
                    exc,
                    extra=context,
                )
                tally.errors.append(_file_issue(exc))
                break

            tally.total_rows += 1
            self._process_row(raw_row, tally.total_rows, tally)

        status = ValidationStatus.SUCCESS if tally.valid_rows > 0 else ValidationStatus.FAILED
        log = UploadLog(
            upload_id=upload_id,
            file_name=file_name,
            upload_timestamp=upload_timestamp,
            validation_status=status,
            total_rows=tally.total_rows,
            valid_rows=tally.valid_rows,
            error_rows=tally.error_rows,
            errors=tuple(tally.errors),
            warnings=tuple(tally.warnings),
            payments_processed=len(tally.committed),
            duplicate_rows=tally.duplicate_rows,
            conflict_rows=tally.conflict_rows,
            cancelled=tally.cancelled,
        )
        try:
            self.log_store.add(log)
        except SinkError as exc:
            logger.error("Upload %s log not persisted: %s", upload_id, exc, extra=context)

        logger.info(
            "Upload %s %s: rows=%d, valid=%d, errors=%d, committed=%d, duplicates=%d",
            upload_id,
            status.value,
            log.total_rows,
            log.valid_rows,
            log.error_rows,
            log.payments_processed,
            log.duplicate_rows,
            extra=context,
        )

        self._forward(tally.committed, log)
        return log

    def _process_row(self, raw_row: Mapping[str, Any], row_number: int, tally: _Tally) -> None:
        result = self.validator.validate(raw_row, row_number)
        if not result.is_valid:
            tally.error_rows += 1
            tally.errors.extend(result.errors)
            return

        try:
            record, outcome = self._commit(result.payment)
        except ConflictError as exc:
            tally.error_rows += 1
            tally.conflict_rows += 1
            tally.errors.append(
                ValidationIssue(row=row_number, field="id", message=str(exc), error_type="ConflictError")
            )
            return
        except SinkError as exc:
            logger.error("Row %d could not be stored: %s", row_number, exc, extra={"row": row_number})
            tally.error_rows += 1
            tally.errors.append(
                ValidationIssue(row=row_number, field="row", message=str(exc), error_type="SinkError")
            )
            return

        tally.valid_rows += 1
        tally.warnings.extend(result.warnings)
        if outcome is AppendOutcome.CREATED:
            tally.committed.append(record)
        else:
            tally.duplicate_rows += 1

    def _commit(self, payment: ValidPayment) -> tuple[PaymentRecord, AppendOutcome]:
        loan = self.validator.loans.find_loan(payment.loan_id)
        schedule = loan.installment_schedule if loan is not None else ()
        tolerance = self.config.match_tolerance

        def build(history: tuple[PaymentRecord, ...]) -> PaymentRecord:
            kind = classify(payment, schedule, history, tolerance)
            return payment.to_record(kind, datetime.now(timezone.utc))

        return self.store.append_with(payment.loan_id, build)

    def _forward(self, committed: list[PaymentRecord], log: UploadLog) -> None:
        for sink in self.sinks:
            try:
                if committed:
                    sink.publish(committed)
                sink.record_upload(log)
            except SinkError as exc:
                logger.error(
                    "Sink %s failed for upload %s: %s",
                    type(sink).__name__,
                    log.upload_id,
                    exc,
                    extra={"upload_id": log.upload_id},
                )


def _file_issue(exc: Exception) -> ValidationIssue:
    return ValidationIssue(row=0, field="file", message=str(exc), error_type=type(exc).__name__)

"""Tests for upload coordination."""

import logging
import threading
from datetime import date
from decimal import Decimal
from typing import Any, Iterator
from unittest.mock import MagicMock

import pytest

from payment_ledger.exceptions import SinkError, UploadParseError
from payment_ledger.models import EventKind, ValidationStatus
from payment_ledger.store.ledger import LedgerStore
from payment_ledger.store.loans import LoanRegistry
from payment_ledger.store.upload_logs import UploadLogStore
from payment_ledger.upload import UploadCoordinator
from payment_ledger.validation import FLAG_UNKNOWN_LOAN, RowValidator


@pytest.fixture
def log_store() -> UploadLogStore:
    return UploadLogStore()


@pytest.fixture
def coordinator(registry: LoanRegistry, store: LedgerStore, log_store: UploadLogStore) -> UploadCoordinator:
    return UploadCoordinator(RowValidator(registry), store, log_store)


def monthly_rows(make_row, count: int) -> list[dict[str, Any]]:
    return [
        make_row(id=f"pay-{i:03d}", date=f"2024-{i:02d}-01", description=f"Installment {i}")
        for i in range(1, count + 1)
    ]


class TestProcessUpload:
    """Tests for UploadCoordinator.process_upload."""

    def test_mixed_file(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test ten rows with three bad ones commit the seven good ones."""
        rows = monthly_rows(make_row, 10)
        rows[2]["amount"] = "abc"
        rows[5]["date"] = "31/31/2024"
        rows[8]["id"] = ""

        log = coordinator.process_upload("payments.csv", rows)

        assert log.validation_status is ValidationStatus.SUCCESS
        assert log.total_rows == 10
        assert log.valid_rows == 7
        assert log.error_rows == 3
        assert log.payments_processed == 7
        assert [e.row for e in log.errors] == [3, 6, 9]
        assert len(store) == 7

    def test_malformed_amounts_are_row_errors(
        self, coordinator: UploadCoordinator, store: LedgerStore, make_row
    ) -> None:
        """Test oversized or garbled amounts reject their row and the rest commit."""
        rows = [
            make_row(id="pay-1", amount="2000"),
            make_row(id="pay-2", amount="9" * 29),
            make_row(id="pay-3", amount="abc123", date="2024-02-01"),
            make_row(id="pay-4", amount="2000", date="2024-03-01"),
        ]

        log = coordinator.process_upload("payments.csv", rows)

        assert log.total_rows == 4
        assert log.error_rows == 2
        assert [(e.row, e.error_type) for e in log.errors] == [
            (2, "InvalidAmountError"),
            (3, "InvalidAmountError"),
        ]
        assert sorted(r.id for r in store.query_by_loan("loan-001")) == ["pay-1", "pay-4"]

    def test_all_rows_invalid(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test a file with no good rows fails without touching the ledger."""
        rows = [make_row(id=f"pay-{i}", amount="0") for i in range(3)]

        log = coordinator.process_upload("bad.csv", rows)

        assert log.validation_status is ValidationStatus.FAILED
        assert log.valid_rows == 0
        assert log.error_rows == 3
        assert len(store) == 0

    def test_empty_file(self, coordinator: UploadCoordinator) -> None:
        """Test an upload with no rows fails."""
        log = coordinator.process_upload("empty.csv", [])

        assert log.validation_status is ValidationStatus.FAILED
        assert log.total_rows == 0

    def test_classification_at_ingest(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test each row is classified against the rows before it."""
        rows = [
            make_row(id="pay-1", amount="1500.00"),
            make_row(id="pay-2", amount="500.00", date="2024-01-10"),
            make_row(id="pay-3", amount="2500.00", date="2024-02-01"),
        ]

        coordinator.process_upload("payments.csv", rows)

        assert [store.get(i).event_kind for i in ["pay-1", "pay-2", "pay-3"]] == [
            EventKind.SHORT_PAYMENT,
            EventKind.PAYMENT_RECEIVED,
            EventKind.OVER_PAYMENT,
        ]

    def test_unknown_loan_committed_with_warning(
        self, coordinator: UploadCoordinator, store: LedgerStore, make_row
    ) -> None:
        """Test reference problems are warnings and the row is kept."""
        log = coordinator.process_upload("payments.csv", [make_row(loan_id="loan-404")])

        assert log.valid_rows == 1
        assert log.error_rows == 0
        assert [w.field for w in log.warnings] == ["loan_id"]
        record = store.get("pay-001")
        assert record.flags == (FLAG_UNKNOWN_LOAN,)
        assert record.event_kind is EventKind.OVER_PAYMENT

    def test_log_stored(self, coordinator: UploadCoordinator, log_store: UploadLogStore, make_row) -> None:
        """Test every upload leaves a log with a unique id."""
        first = coordinator.process_upload("a.csv", [make_row()])
        second = coordinator.process_upload("b.csv", [])

        assert first.upload_id != second.upload_id
        assert [log.file_name for log in log_store.recent()] == ["b.csv", "a.csv"]
        assert first.upload_timestamp.tzinfo is not None


class TestIdempotence:
    """Tests for re-uploads and id reuse."""

    def test_reupload_is_noop(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test uploading the same file twice does not double count."""
        rows = monthly_rows(make_row, 3)
        coordinator.process_upload("payments.csv", rows)

        log = coordinator.process_upload("payments.csv", rows)

        assert log.validation_status is ValidationStatus.SUCCESS
        assert log.valid_rows == 3
        assert log.duplicate_rows == 3
        assert log.payments_processed == 0
        assert len(store) == 3

    def test_duplicate_row_in_same_file(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test a repeated row within one file is stored once."""
        log = coordinator.process_upload("payments.csv", [make_row(), make_row()])

        assert log.valid_rows == 2
        assert log.duplicate_rows == 1
        assert log.payments_processed == 1
        assert len(store) == 1

    def test_conflicting_row(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test a changed row under a known id is an error and the original stays."""
        coordinator.process_upload("first.csv", [make_row()])

        log = coordinator.process_upload("second.csv", [make_row(amount="1999.00"), make_row(id="pay-002")])

        assert log.valid_rows == 1
        assert log.error_rows == 1
        assert log.conflict_rows == 1
        assert log.errors[0].error_type == "ConflictError"
        assert log.errors[0].field == "id"
        assert store.get("pay-001").amount == Decimal("2000.00")


class TestAbort:
    """Tests for cancelled and unreadable uploads."""

    def test_cancel_before_start(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test a cancelled upload reads nothing."""
        cancel = threading.Event()
        cancel.set()

        log = coordinator.process_upload("payments.csv", monthly_rows(make_row, 3), cancel_event=cancel)

        assert log.cancelled
        assert log.total_rows == 0
        assert len(store) == 0

    def test_cancel_mid_file_keeps_prefix(
        self, coordinator: UploadCoordinator, store: LedgerStore, make_row
    ) -> None:
        """Test cancellation leaves exactly the rows read so far."""
        cancel = threading.Event()
        rows = monthly_rows(make_row, 6)

        def source() -> Iterator[dict[str, Any]]:
            for i, row in enumerate(rows):
                if i == 3:
                    cancel.set()
                yield row

        log = coordinator.process_upload("payments.csv", source(), cancel_event=cancel)

        assert log.cancelled
        assert log.total_rows == 4
        assert log.payments_processed == 4
        assert sorted(r.id for r in store.recent()) == ["pay-001", "pay-002", "pay-003", "pay-004"]

    def test_parse_error_mid_file(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test an unreadable file keeps the rows read before the failure."""

        def source() -> Iterator[dict[str, Any]]:
            yield make_row(id="pay-1")
            yield make_row(id="pay-2", date="2024-02-01")
            raise UploadParseError("line 3: unexpected end of data")

        log = coordinator.process_upload("broken.csv", source())

        assert log.total_rows == 2
        assert log.valid_rows == 2
        assert log.errors[-1].row == 0
        assert log.errors[-1].field == "file"
        assert log.errors[-1].error_type == "UploadParseError"
        assert len(store) == 2

    def test_unreadable_file(self, coordinator: UploadCoordinator) -> None:
        """Test a file that fails before any row is a failed upload."""

        def source() -> Iterator[dict[str, Any]]:
            raise UploadParseError("not a CSV file")
            yield {}  # pragma: no cover

        log = coordinator.process_upload("garbage.bin", source())

        assert log.validation_status is ValidationStatus.FAILED
        assert log.total_rows == 0
        assert len(log.errors) == 1


class TestSinks:
    """Tests for forwarding to sinks."""

    def test_sinks_receive_committed_records(
        self, registry: LoanRegistry, store: LedgerStore, make_row
    ) -> None:
        """Test sinks see new records and the upload log."""
        sink = MagicMock()
        coordinator = UploadCoordinator(RowValidator(registry), store, sinks=[sink])

        coordinator.process_upload("payments.csv", [make_row(), make_row(), make_row(id="pay-x", amount="")])

        sink.publish.assert_called_once()
        (records,), _ = sink.publish.call_args
        assert [r.id for r in records] == ["pay-001"]
        sink.record_upload.assert_called_once()

    def test_no_publish_without_new_records(self, registry: LoanRegistry, store: LedgerStore, make_row) -> None:
        """Test only the log is forwarded when nothing was committed."""
        sink = MagicMock()
        coordinator = UploadCoordinator(RowValidator(registry), store, sinks=[sink])

        coordinator.process_upload("bad.csv", [make_row(amount="x")])

        sink.publish.assert_not_called()
        sink.record_upload.assert_called_once()

    def test_sink_failure_does_not_fail_upload(
        self, registry: LoanRegistry, store: LedgerStore, make_row
    ) -> None:
        """Test a failing sink is logged and the next sink still runs."""
        broken = MagicMock()
        broken.publish.side_effect = SinkError("broker down")
        healthy = MagicMock()
        coordinator = UploadCoordinator(RowValidator(registry), store, sinks=[broken, healthy])

        log = coordinator.process_upload("payments.csv", [make_row()])

        assert log.validation_status is ValidationStatus.SUCCESS
        assert len(store) == 1
        healthy.publish.assert_called_once()

    def test_journal_failure_is_row_error(self, registry: LoanRegistry, make_row) -> None:
        """Test a storage failure rejects the row without aborting the file."""
        store = MagicMock(spec=LedgerStore)
        store.append_with.side_effect = SinkError("disk full")
        coordinator = UploadCoordinator(RowValidator(registry), store)

        log = coordinator.process_upload("payments.csv", [make_row(), make_row(id="pay-002")])

        assert log.error_rows == 2
        assert log.valid_rows == 0
        assert {e.error_type for e in log.errors} == {"SinkError"}

    def test_log_journal_failure_still_returns_log(
        self, registry: LoanRegistry, store: LedgerStore, make_row
    ) -> None:
        """Test an unwritable upload log still reports the committed rows to the caller and sinks."""
        log_store = MagicMock(spec=UploadLogStore)
        log_store.add.side_effect = SinkError("disk full")
        sink = MagicMock()
        coordinator = UploadCoordinator(RowValidator(registry), store, log_store, sinks=[sink])

        log = coordinator.process_upload("payments.csv", [make_row()])

        assert log.validation_status is ValidationStatus.SUCCESS
        assert log.payments_processed == 1
        assert store.get("pay-001") is not None
        log_store.add.assert_called_once_with(log)
        sink.publish.assert_called_once()
        sink.record_upload.assert_called_once_with(log)


class TestConcurrentUploads:
    """Tests for uploads running in parallel."""

    def test_parallel_uploads_same_loan(self, coordinator: UploadCoordinator, store: LedgerStore, make_row) -> None:
        """Test concurrent uploads to one loan commit every payment once."""
        files = [
            [make_row(id=f"pay-{f}-{i}", date=f"2024-{i:02d}-{f + 1:02d}") for i in range(1, 13)]
            for f in range(4)
        ]
        logs = []

        def run(rows) -> None:
            logs.append(coordinator.process_upload("payments.csv", rows))

        threads = [threading.Thread(target=run, args=(rows,)) for rows in files]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(log.payments_processed for log in logs) == 48
        records = store.query_by_loan("loan-001")
        assert len(records) == 48
        assert records[0].date == date(2024, 1, 1)


class TestLogContext:
    """Tests for identifiers attached to log records."""

    def test_upload_id_on_records(self, coordinator: UploadCoordinator, make_row, caplog: pytest.LogCaptureFixture) -> None:
        """Test upload log lines carry the upload id."""
        with caplog.at_level(logging.INFO, logger="payment_ledger.upload"):
            log = coordinator.process_upload("payments.csv", [make_row()])

        tagged = [r for r in caplog.records if getattr(r, "upload_id", None) == log.upload_id]
        assert len(tagged) >= 2

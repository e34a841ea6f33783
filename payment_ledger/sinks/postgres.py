"""PostgreSQL sink mirroring the ledger into relational tables."""

import json
import logging

import psycopg

from payment_ledger.config import PostgresConfig
from payment_ledger.exceptions import SinkError
from payment_ledger.models import PaymentRecord, UploadLog
from payment_ledger.sinks.serialization import serialize_value

logger = logging.getLogger(__name__)

CREATE_TABLES = """
CREATE TABLE IF NOT EXISTS payment_records (
    id            TEXT PRIMARY KEY,
    borrower_id   TEXT NOT NULL,
    loan_id       TEXT NOT NULL,
    payment_date  DATE NOT NULL,
    currency      TEXT NOT NULL,
    description   TEXT NOT NULL,
    amount        NUMERIC(19, 4) NOT NULL,
    event_kind    TEXT NOT NULL,
    ingested_at   TIMESTAMPTZ NOT NULL,
    flags         TEXT[] NOT NULL DEFAULT '{}'
);
CREATE INDEX IF NOT EXISTS payment_records_loan_date
    ON payment_records (loan_id, payment_date, id);
CREATE TABLE IF NOT EXISTS upload_logs (
    upload_id          TEXT PRIMARY KEY,
    file_name          TEXT NOT NULL,
    upload_timestamp   TIMESTAMPTZ NOT NULL,
    validation_status  TEXT NOT NULL,
    total_rows         INTEGER NOT NULL,
    valid_rows         INTEGER NOT NULL,
    error_rows         INTEGER NOT NULL,
    payments_processed INTEGER NOT NULL,
    cancelled          BOOLEAN NOT NULL,
    errors             JSONB NOT NULL,
    warnings           JSONB NOT NULL
);
"""

INSERT_PAYMENT = """
INSERT INTO payment_records (
    id, borrower_id, loan_id, payment_date, currency, description,
    amount, event_kind, ingested_at, flags
) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
ON CONFLICT (id) DO NOTHING
"""

INSERT_UPLOAD_LOG = """
INSERT INTO upload_logs (
    upload_id, file_name, upload_timestamp, validation_status, total_rows,
    valid_rows, error_rows, payments_processed, cancelled, errors, warnings
) VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s)
ON CONFLICT (upload_id) DO NOTHING
"""


class PostgresSink:
    """Write committed payments and upload logs to PostgreSQL.

    Rows are insert-only; a payment id already present is left as it is.
    """

    def __init__(self, config: PostgresConfig | str) -> None:
        """Connect and create the tables if needed.

        Parameters
        ----------
        config : PostgresConfig | str
            Connection configuration or a connection string.
        """
        conninfo = config if isinstance(config, str) else config.connection_string
        try:
            self.conn = psycopg.connect(conninfo)
            with self.conn.transaction():
                self.conn.execute(CREATE_TABLES)
        except psycopg.Error as exc:
            raise SinkError(f"Failed to initialise PostgreSQL sink: {exc}") from exc
        self._counts: dict[str, int] = {}

    def publish(self, records: list[PaymentRecord]) -> None:
        """Insert payments in a single transaction."""
        rows = [
            (
                r.id,
                r.borrower_id,
                r.loan_id,
                r.date,
                r.currency,
                r.description,
                r.amount,
                r.event_kind.value,
                r.ingested_at,
                list(r.flags),
            )
            for r in records
        ]
        try:
            with self.conn.transaction():
                with self.conn.cursor() as cur:
                    cur.executemany(INSERT_PAYMENT, rows)
        except psycopg.Error as exc:
            raise SinkError(f"Failed to insert payments: {exc}") from exc

        self._counts["payment_records"] = self._counts.get("payment_records", 0) + len(rows)
        logger.info("Inserted %d payments into PostgreSQL", len(rows))

    def record_upload(self, log: UploadLog) -> None:
        """Insert an upload log."""
        row = (
            log.upload_id,
            log.file_name,
            log.upload_timestamp,
            log.validation_status.value,
            log.total_rows,
            log.valid_rows,
            log.error_rows,
            log.payments_processed,
            log.cancelled,
            json.dumps(serialize_value(list(log.errors))),
            json.dumps(serialize_value(list(log.warnings))),
        )
        try:
            with self.conn.transaction():
                self.conn.execute(INSERT_UPLOAD_LOG, row)
        except psycopg.Error as exc:
            raise SinkError(f"Failed to insert upload log {log.upload_id}: {exc}") from exc

        self._counts["upload_logs"] = self._counts.get("upload_logs", 0) + 1

    def close(self) -> None:
        """Close the connection."""
        self.conn.close()
        for table, count in self._counts.items():
            logger.info("PostgreSQL sink wrote %d rows to %s", count, table)

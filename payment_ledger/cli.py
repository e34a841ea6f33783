"""Command line interface for the payment ledger."""

from __future__ import annotations

import argparse
import csv
import json
import logging
import sys
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import Any, Iterator

from payment_ledger.config import LedgerConfig
from payment_ledger.exceptions import LedgerError, UploadParseError
from payment_ledger.logging import setup_logging
from payment_ledger.service import LedgerService, snapshot_to_dict
from payment_ledger.sinks.serialization import to_dict

logger = logging.getLogger(__name__)

CSV_COLUMNS = ["id", "borrower_id", "loan_id", "date", "currency", "description", "amount"]


def read_csv_rows(path: str | Path) -> Iterator[dict[str, Any]]:
    """Yield the rows of a payment CSV file.

    Raises
    ------
    UploadParseError
        If the file cannot be opened, decoded or parsed as CSV.
    """
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            if reader.fieldnames is None:
                raise UploadParseError(f"{path} is empty")
            yield from reader
    except (OSError, UnicodeDecodeError, csv.Error) as exc:
        raise UploadParseError(f"Cannot read {path}: {exc}") from exc


def build_sinks(config: LedgerConfig) -> list[Any]:
    """Create the sinks enabled in ``config``."""
    sinks: list[Any] = []
    if config.kafka.enabled:
        from payment_ledger.sinks.kafka import KafkaSink

        sinks.append(KafkaSink(config.kafka))
    if config.postgres.enabled:
        from payment_ledger.sinks.postgres import PostgresSink

        sinks.append(PostgresSink(config.postgres))
    return sinks


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="payment-ledger",
        description="Ingest loan payment files and query point-in-time loan snapshots.",
    )
    parser.add_argument("--loans", type=Path, help="JSON file with the loan book")
    parser.add_argument("--journal", type=Path, help="Payment journal (JSON Lines)")
    parser.add_argument("--upload-log", type=Path, help="Upload log journal (JSON Lines)")
    parser.add_argument("--log-level", default=None, help="Log level (default from LOG_LEVEL)")

    sub = parser.add_subparsers(dest="command", required=True)

    upload = sub.add_parser("upload", help="Ingest a payment CSV file")
    upload.add_argument("file", type=Path)

    snapshot = sub.add_parser("snapshot", help="Show a loan as of a date")
    snapshot.add_argument("loan_id")
    snapshot.add_argument("date")

    history = sub.add_parser("history", help="Show a loan's snapshots over a date range")
    history.add_argument("loan_id")
    history.add_argument("start")
    history.add_argument("end")
    history.add_argument("--step", type=int, default=30, help="Days between snapshots")

    payments = sub.add_parser("payments", help="List the most recent payments")
    payments.add_argument("--limit", type=int, default=50)

    logs = sub.add_parser("logs", help="List upload logs")
    logs.add_argument("--limit", type=int, default=None)

    export = sub.add_parser("export", help="Export payments and upload logs as JSON")
    export.add_argument("--output-dir", type=Path, default=None)

    generate = sub.add_parser("generate", help="Write a sample loan book and payment file")
    generate.add_argument("--num-loans", type=int, default=10)
    generate.add_argument("--seed", type=int, default=42)
    generate.add_argument("--error-rate", type=float, default=0.05)
    generate.add_argument("--as-of", default=None, help="Last payment date (YYYY-MM-DD)")
    generate.add_argument("--output-dir", type=Path, default=Path("sample_data"))

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    config = LedgerConfig.from_env()
    config.storage = replace(
        config.storage,
        loans_path=args.loans or config.storage.loans_path,
        journal_path=args.journal or config.storage.journal_path,
        upload_log_path=args.upload_log or config.storage.upload_log_path,
    )
    setup_logging(args.log_level or config.log_level, config.log_format)

    if args.command == "generate":
        return _generate(args)

    try:
        service = LedgerService.from_config(config, sinks=build_sinks(config))
    except LedgerError as exc:
        logger.error("Cannot start ledger: %s", exc)
        return 2

    if args.command == "upload":
        result = service.upload(args.file.name, read_csv_rows(args.file))
        _print(result)
        return 0 if result["status"] == "success" else 1

    if args.command == "snapshot":
        result = service.loan_snapshot(args.loan_id, args.date)
        _print(result)
        return 1 if "error" in result else 0

    if args.command == "history":
        try:
            snapshots = service.engine.history(args.loan_id, args.start, args.end, args.step)
        except LedgerError as exc:
            _print({"error": type(exc).__name__, "detail": str(exc)})
            return 1
        _print([snapshot_to_dict(s) for s in snapshots])
        return 0

    if args.command == "payments":
        _print(service.list_payments(args.limit))
        return 0

    if args.command == "logs":
        _print(service.list_validation_logs(args.limit))
        return 0

    if args.command == "export":
        from payment_ledger.sinks.json_file import JsonFileSink

        sink = JsonFileSink(args.output_dir or config.output.json_output_dir, config.output.pretty_json)
        sink.write_batch("payments", service.store.recent())
        sink.write_batch("upload_logs", service.log_store.recent())
        sink.close()
        return 0

    return 2


def _generate(args: argparse.Namespace) -> int:
    from payment_ledger.generators import LoanBookGenerator

    as_of = date.fromisoformat(args.as_of) if args.as_of else date.today()
    generator = LoanBookGenerator(seed=args.seed)
    loans, rows = generator.generate_book(args.num_loans, as_of=as_of)
    rows = generator.corrupt_rows(rows, rate=args.error_rate)

    args.output_dir.mkdir(parents=True, exist_ok=True)
    loans_path = args.output_dir / "loans.json"
    payments_path = args.output_dir / "payments.csv"

    with open(loans_path, "w", encoding="utf-8") as f:
        json.dump([to_dict(loan) for loan in loans], f, indent=2)

    with open(payments_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=CSV_COLUMNS)
        writer.writeheader()
        writer.writerows(rows)

    logger.info("Wrote %d loans to %s and %d payments to %s", len(loans), loans_path, len(rows), payments_path)
    return 0


def _print(data: Any) -> None:
    json.dump(data, sys.stdout, indent=2, ensure_ascii=False)
    sys.stdout.write("\n")


if __name__ == "__main__":
    sys.exit(main())

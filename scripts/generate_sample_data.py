#!/usr/bin/env python3
"""Generate a sample loan book, ingest it and print a few snapshots.

Writes ``loans.json`` and ``payments.csv`` to the output directory, then
runs the payment file through an in-memory ledger so the upload log and
snapshots can be inspected without any external services.
"""

import argparse
import json
import logging
import sys
from datetime import date
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from payment_ledger.cli import main as cli_main, read_csv_rows
from payment_ledger.logging import setup_logging
from payment_ledger.service import LedgerService
from payment_ledger.store.loans import LoanRegistry

logger = logging.getLogger(__name__)


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--num-loans", type=int, default=5)
    parser.add_argument("--seed", type=int, default=42)
    parser.add_argument("--output-dir", type=Path, default=Path("sample_data"))
    args = parser.parse_args()

    setup_logging("INFO")
    as_of = date.today()

    code = cli_main([
        "generate",
        "--num-loans", str(args.num_loans),
        "--seed", str(args.seed),
        "--as-of", as_of.isoformat(),
        "--output-dir", str(args.output_dir),
    ])
    if code != 0:
        return code

    loans = LoanRegistry.from_json_file(args.output_dir / "loans.json")
    service = LedgerService(loans)
    result = service.upload("payments.csv", read_csv_rows(args.output_dir / "payments.csv"))
    logger.info("Upload: %s", result["message"])

    for loan_id in list(loans.loans)[:3]:
        snapshot = service.loan_snapshot(loan_id, as_of)
        print(json.dumps(snapshot, indent=2))

    return 0


if __name__ == "__main__":
    sys.exit(main())

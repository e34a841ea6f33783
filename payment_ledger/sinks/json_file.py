"""JSON file sink for exporting ledger data to files."""

import json
from pathlib import Path
from typing import Any

from payment_ledger.models import PaymentRecord, UploadLog
from payment_ledger.sinks.serialization import to_dict


class JsonFileSink:
    """Output ledger data to JSON and JSON Lines files."""

    def __init__(self, output_dir: str | Path, pretty: bool = False) -> None:
        """Initialize JSON file sink.

        Parameters
        ----------
        output_dir : str | Path
            Directory to write JSON files.
        pretty : bool
            Pretty-print JSON output.
        """
        self.output_dir = Path(output_dir)
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.pretty = pretty
        self._counts: dict[str, int] = {}

    def write_batch(self, entity_type: str, records: list[Any]) -> Path:
        """Write a batch of records to ``<entity_type>.json``, replacing it."""
        file_path = self.output_dir / f"{entity_type}.json"

        data = [to_dict(record) for record in records]

        with open(file_path, "w", encoding="utf-8") as f:
            if self.pretty:
                json.dump(data, f, indent=2, ensure_ascii=False)
            else:
                json.dump(data, f, ensure_ascii=False)

        self._counts[entity_type] = len(records)
        return file_path

    def publish(self, records: list[PaymentRecord]) -> None:
        """Append committed payments to ``payments.jsonl``."""
        self._append_lines("payments", records)

    def record_upload(self, log: UploadLog) -> None:
        """Append an upload log to ``upload_logs.jsonl``."""
        self._append_lines("upload_logs", [log])

    def _append_lines(self, entity_type: str, records: list[Any]) -> None:
        file_path = self.output_dir / f"{entity_type}.jsonl"
        with open(file_path, "a", encoding="utf-8") as f:
            for record in records:
                f.write(json.dumps(to_dict(record), ensure_ascii=False) + "\n")
        self._counts[entity_type] = self._counts.get(entity_type, 0) + len(records)

    def close(self) -> None:
        """Print summary."""
        print(f"JSON files written to: {self.output_dir}")
        for entity_type, count in self._counts.items():
            print(f"  {entity_type}: {count} records")

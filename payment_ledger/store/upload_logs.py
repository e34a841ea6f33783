"""History of upload logs."""

import logging
import threading

from payment_ledger.models import UploadLog
from payment_ledger.sinks.serialization import to_dict, upload_log_from_dict
from payment_ledger.store.journal import JsonlJournal

logger = logging.getLogger(__name__)


class UploadLogStore:
    """Keeps every ``UploadLog`` for audit and history listing."""

    def __init__(self, journal: JsonlJournal | None = None) -> None:
        self._journal = journal
        self._lock = threading.Lock()
        self._logs: list[UploadLog] = []

        if journal is not None:
            self._logs = [upload_log_from_dict(data) for data in journal.load()]
            logger.info("Restored %d upload logs from %s", len(self._logs), journal.path)

    def add(self, log: UploadLog) -> None:
        with self._lock:
            if self._journal is not None:
                self._journal.append(to_dict(log))
            self._logs.append(log)

    def recent(self, limit: int | None = None) -> list[UploadLog]:
        """Get upload logs, newest first."""
        logs = list(reversed(self._logs))
        return logs if limit is None else logs[:limit]

    def get(self, upload_id: str) -> UploadLog | None:
        for log in self._logs:
            if log.upload_id == upload_id:
                return log
        return None

    def __len__(self) -> int:
        return len(self._logs)

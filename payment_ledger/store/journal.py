"""Append-only JSON Lines journal backing the in-memory stores."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Iterator

from payment_ledger.exceptions import SinkError

logger = logging.getLogger(__name__)


class JsonlJournal:
    """Durable, append-only log of JSON objects, one per line.

    A line only counts once its trailing newline is on disk. A torn final
    line left by a crash is cut off when the journal is opened, so a
    partially written record is never read back.
    """

    def __init__(self, path: str | Path, fsync: bool = False) -> None:
        """Open (and create if needed) the journal.

        Parameters
        ----------
        path : str | Path
            Journal file location.
        fsync : bool
            Call ``os.fsync`` after every append.
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.touch(exist_ok=True)
        self.fsync = fsync
        self._lock = threading.Lock()
        self._repair()

    def append(self, data: dict[str, Any]) -> None:
        """Append one object and flush it to the file."""
        line = json.dumps(data, ensure_ascii=False, sort_keys=True) + "\n"
        with self._lock:
            try:
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line)
                    f.flush()
                    if self.fsync:
                        os.fsync(f.fileno())
            except OSError as exc:
                raise SinkError(f"Failed to append to journal {self.path}: {exc}") from exc

    def load(self) -> Iterator[dict[str, Any]]:
        """Yield every stored object in append order.

        Raises
        ------
        SinkError
            If a complete line in the journal is not valid JSON.
        """
        with open(self.path, encoding="utf-8") as f:
            for line_number, line in enumerate(f, start=1):
                if not line.strip():
                    continue
                try:
                    yield json.loads(line)
                except json.JSONDecodeError as exc:
                    raise SinkError(
                        f"Corrupt journal {self.path} at line {line_number}: {exc}"
                    ) from exc

    def _repair(self) -> None:
        with open(self.path, "rb+") as f:
            content = f.read()
            if not content or content.endswith(b"\n"):
                return
            keep = content.rfind(b"\n") + 1
            logger.warning(
                "Discarding %d bytes of incomplete record at end of %s",
                len(content) - keep,
                self.path,
            )
            f.truncate(keep)

"""
Outcome History Store.

Append-only, bounded log of HistoricalRecords, persisted as one JSON file.

Persistence is best-effort: an unreadable, corrupt or unwritable file is
logged and the store continues in memory-only mode. No storage failure
ever reaches the caller.
"""

import contextlib
import json
import os
import tempfile
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from releasegate.exceptions import ErrorCode, HistoryStoreError
from releasegate.learning.schemas import HistoricalRecord

logger = structlog.get_logger(__name__)

DEFAULT_MAX_RECORDS: int = 1000

_RECORDS_ADAPTER = TypeAdapter(list[HistoricalRecord])


class HistoryStore:
    """Thread-safe bounded record log with optional JSON persistence."""

    def __init__(self, path: Optional[str] = None, max_records: int = DEFAULT_MAX_RECORDS):
        self.path = Path(path) if path else None
        self.max_records = max(1, max_records)
        self._lock = threading.Lock()
        # Held across snapshot-and-write so files land in append order
        self._write_lock = threading.Lock()
        self._records: list[HistoricalRecord] = []
        self._persistent = self.path is not None
        self.last_error: Optional[HistoryStoreError] = None
        if self.path is not None:
            self._load()

    @property
    def persistent(self) -> bool:
        return self._persistent

    def append(self, record: HistoricalRecord) -> None:
        with self._write_lock:
            with self._lock:
                self._records.append(record)
                if len(self._records) > self.max_records:
                    del self._records[: len(self._records) - self.max_records]
                snapshot = list(self._records)
            self._save(snapshot)

    def records(self) -> list[HistoricalRecord]:
        with self._lock:
            return list(self._records)

    def clear(self) -> None:
        with self._write_lock:
            with self._lock:
                self._records.clear()
            self._save([])

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    # ── Persistence ────────────────────────────────────────────────────

    def _load(self) -> None:
        if self.path is None or not self.path.exists():
            return
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
            records = _RECORDS_ADAPTER.validate_python(payload.get("history", []))
        except (OSError, ValueError, AttributeError, ValidationError) as e:
            self._degrade(HistoryStoreError(
                f"could not load history from {self.path}",
                error_code=ErrorCode.HISTORY_READ_FAILED,
                cause=e,
            ))
            return

        with self._lock:
            self._records = records[-self.max_records:]
        logger.info("history_loaded", path=str(self.path), records=len(self._records))

    def _save(self, records: list[HistoricalRecord]) -> None:
        if not self._persistent or self.path is None:
            return
        payload = {
            "history": _RECORDS_ADAPTER.dump_python(records, mode="json"),
            "last_updated": datetime.now(timezone.utc).isoformat(),
        }
        tmp_name: Optional[str] = None
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            # Write-then-rename so a crash never leaves a half-written file
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".history-", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp_name, self.path)
        except OSError as e:
            if tmp_name is not None:
                with contextlib.suppress(OSError):
                    os.unlink(tmp_name)
            self._degrade(HistoryStoreError(
                f"could not write history to {self.path}",
                error_code=ErrorCode.HISTORY_WRITE_FAILED,
                cause=e,
            ))

    def _degrade(self, error: HistoryStoreError) -> None:
        self._persistent = False
        self.last_error = error
        logger.warning("history_store_memory_only", **error.to_dict())

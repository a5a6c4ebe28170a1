"""
BatchResult model holding the counters of one job run.
"""

import threading
from typing import Any

from pydantic import BaseModel, Field, PrivateAttr

from .validation_outcome import ErrorKind


class BatchResult(BaseModel):
    """
    Running totals for a job run.

    Every mutation goes through a method that takes the instance lock, so
    worker threads can report concurrently. Read `snapshot()` for a
    consistent view.

    Attributes:
        total_seen: Lines read from the input file
        succeeded: Records committed to the target table
        skipped: Records skipped for format, validation or reference reasons
        failed_fatal: Records in chunks that failed fatally
        already_loaded: Records in chunks a resumed job had already committed
        skipped_by_kind: Skip breakdown keyed by ErrorKind value
        skip_reasons: Reason text -> occurrence count
    """

    total_seen: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed_fatal: int = 0
    already_loaded: int = 0
    skipped_by_kind: dict[str, int] = Field(
        default_factory=lambda: {kind.value: 0 for kind in ErrorKind}
    )
    skip_reasons: dict[str, int] = Field(default_factory=dict)

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    def record_seen(self, count: int = 1) -> None:
        with self._lock:
            self.total_seen += count

    def record_succeeded(self, count: int) -> None:
        with self._lock:
            self.succeeded += count

    def record_skip(self, kind: ErrorKind, reasons: list[str]) -> None:
        """
        Count one skipped record.

        Args:
            kind: Skip category of the first failing stage
            reasons: Every reason attached to the record
        """
        with self._lock:
            self.skipped += 1
            self.skipped_by_kind[kind.value] = self.skipped_by_kind.get(kind.value, 0) + 1
            for reason in reasons:
                self.skip_reasons[reason] = self.skip_reasons.get(reason, 0) + 1

    def record_fatal(self, count: int) -> None:
        with self._lock:
            self.failed_fatal += count

    def record_already_loaded(self, count: int) -> None:
        with self._lock:
            self.already_loaded += count

    def reset(self) -> None:
        with self._lock:
            self.total_seen = 0
            self.succeeded = 0
            self.skipped = 0
            self.failed_fatal = 0
            self.already_loaded = 0
            self.skipped_by_kind = {kind.value: 0 for kind in ErrorKind}
            self.skip_reasons = {}

    def snapshot(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total_seen": self.total_seen,
                "succeeded": self.succeeded,
                "skipped": self.skipped,
                "failed_fatal": self.failed_fatal,
                "already_loaded": self.already_loaded,
                "skipped_by_kind": dict(self.skipped_by_kind),
                "skip_reasons": dict(self.skip_reasons),
            }

    class Config:
        json_schema_extra = {
            "example": {
                "total_seen": 1000,
                "succeeded": 990,
                "skipped": 10,
                "failed_fatal": 0,
                "already_loaded": 0,
                "skipped_by_kind": {"format": 2, "validation": 7, "reference": 1},
                "skip_reasons": {"card number fails Luhn checksum": 4}
            }
        }

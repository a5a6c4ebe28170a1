"""
Partition-aware bulk loader.

Commits one chunk of resolved rows atomically: ensures the monthly
partitions the chunk needs, then inserts every row in a single
SERIALIZABLE transaction, replaying the whole transaction on transient
conflicts with bounded exponential backoff.
"""

import threading
import time
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from src.core.errors import PartitionError, PersistenceError
from src.core.models import LoadReport, PersistableRow
from src.core.ports import PartitionManager, UnitOfWorkFactory
from src.observability.logger import get_logger
from src.observability.metrics import increment_counter, partitions_created_total

logger = get_logger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """
    Bounded exponential backoff.

    The delay before retry n (1-based) is
    ``min(base_delay * multiplier ** (n - 1), max_delay)``.
    """

    max_attempts: int = 3
    base_delay: float = 0.1
    multiplier: float = 2.0
    max_delay: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

    def delay_for(self, retry_number: int) -> float:
        return min(self.base_delay * (self.multiplier ** (retry_number - 1)), self.max_delay)


def partition_key(timestamp: datetime) -> str:
    """Month key "YYYY-MM" of an instant (UTC for aware values)."""
    if timestamp.tzinfo is not None:
        timestamp = timestamp.astimezone(timezone.utc)
    return f"{timestamp.year:04d}-{timestamp.month:02d}"


def month_bounds(key: str) -> tuple[datetime, datetime]:
    """[first instant of the month, first instant of the next month) in UTC."""
    year, month = (int(part) for part in key.split("-"))
    start = datetime(year, month, 1, tzinfo=timezone.utc)
    if month == 12:
        end = datetime(year + 1, 1, 1, tzinfo=timezone.utc)
    else:
        end = datetime(year, month + 1, 1, tzinfo=timezone.utc)
    return start, end


def partition_name(table: str, key: str) -> str:
    return f"{table}_{key.replace('-', '_')}"


class PartitionAwareBulkLoader:
    """
    Loads chunks of PersistableRow into their target tables.

    One loader is shared by every worker of a run. The known-partition set
    and the per-key locks make sure each month is ensured at most once per
    run even when several chunks need it at the same time.

    Args:
        uow_factory: Transaction boundary yielding a BatchInserter
        partition_manager: Creates missing partitions
        retry_policy: Backoff for transient commit failures
        timeout_seconds: Statement timeout inside each chunk transaction
        isolation: Transaction isolation level
        sleep: Injected for tests
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        partition_manager: PartitionManager,
        retry_policy: RetryPolicy | None = None,
        timeout_seconds: float = 30.0,
        isolation: str = "serializable",
        sleep: Callable[[float], None] = time.sleep,
        on_retry: Callable[[int, float, Exception], None] | None = None,
    ):
        self.uow_factory = uow_factory
        self.partition_manager = partition_manager
        self.retry_policy = retry_policy or RetryPolicy()
        self.timeout_seconds = timeout_seconds
        self.isolation = isolation
        self.sleep = sleep
        self.on_retry = on_retry

        self._known_partitions: set[str] = set()
        self._partition_locks: dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

    def load_chunk(self, rows: list[PersistableRow]) -> LoadReport:
        """
        Commit a chunk atomically.

        Args:
            rows: Resolved rows; may target more than one table

        Returns:
            LoadReport with rows inserted, attempts used and partitions ensured

        Raises:
            PartitionError: If a required partition cannot be created
            PersistenceError: On a non-transient failure, or when transient
                              failures exhaust the retry policy (both fatal)
        """
        if not rows:
            return LoadReport(rows_inserted=0, attempts=0, partitions_ensured=[])

        partitions = self._ensure_partitions(rows)
        batches = self._group_by_table(rows)

        attempt = 0
        while True:
            attempt += 1
            try:
                inserted = self._insert_all(batches)
                return LoadReport(rows_inserted=inserted, attempts=attempt, partitions_ensured=partitions)

            except PersistenceError as e:
                if not e.transient:
                    raise
                if attempt >= self.retry_policy.max_attempts:
                    raise PersistenceError(
                        f"Chunk failed after {attempt} attempts: {e}", transient=False
                    ) from e

                delay = self.retry_policy.delay_for(attempt)
                logger.warning(
                    f"Transient conflict, retrying chunk in {delay:.3f}s",
                    extra={"attempt": attempt, "delay_seconds": delay, "error": str(e)},
                )
                if self.on_retry:
                    self.on_retry(attempt, delay, e)
                self.sleep(delay)

    def _insert_all(self, batches: dict[str, tuple[list[str], list[tuple]]]) -> int:
        inserted = 0
        with self.uow_factory.transaction(self.isolation, self.timeout_seconds) as inserter:
            for table, (columns, values) in batches.items():
                inserted += inserter.insert_rows(table, columns, values)
        return inserted

    @staticmethod
    def _group_by_table(rows: list[PersistableRow]) -> dict[str, tuple[list[str], list[tuple]]]:
        batches: dict[str, tuple[list[str], list[tuple]]] = {}
        for row in rows:
            columns = row.columns
            if row.table not in batches:
                batches[row.table] = (columns, [])
            elif batches[row.table][0] != columns:
                raise ValueError(f"Rows for {row.table} have inconsistent columns")
            batches[row.table][1].append(tuple(row.values[c] for c in columns))
        return batches

    def _ensure_partitions(self, rows: list[PersistableRow]) -> list[str]:
        needed: dict[str, tuple[str, str]] = {}
        for row in rows:
            if row.partition_timestamp is None:
                continue
            key = partition_key(row.partition_timestamp)
            name = partition_name(row.table, key)
            needed[name] = (row.table, key)

        for name, (table, key) in sorted(needed.items()):
            self._ensure_partition(table, name, key)
        return sorted(needed)

    def _ensure_partition(self, table: str, name: str, key: str) -> None:
        if name in self._known_partitions:
            return

        with self._locks_guard:
            lock = self._partition_locks[name]

        with lock:
            if name in self._known_partitions:
                return

            start, end = month_bounds(key)
            try:
                created = self.partition_manager.ensure_partition(table, name, start, end)
            except PartitionError:
                raise
            except PersistenceError as e:
                raise PartitionError(name, str(e)) from e

            if created:
                increment_counter(partitions_created_total, 1, table=table)
                logger.info(f"Partition {name} created", extra={"partition": name})
            self._known_partitions.add(name)

"""
In-memory warehouse used by --dry-run and by unit and e2e tests.

Implements every pipeline port with the same observable contract as the
PostgreSQL adapters: atomic chunk commits, primary-key enforcement,
inserts into a missing partition failing, and partition creation that
reports whether it created anything.
"""

import threading
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Any, Iterator

import yaml

from src.core.errors import PartitionError, PersistenceError
from src.core.models import JobRun, QuarantineRecord
from src.core.ports import AccountInfo, CardInfo, XrefInfo

PRIMARY_KEYS: dict[str, tuple[str, ...]] = {
    "cards": ("card_number",),
    "accounts": ("account_id",),
    "card_xref": ("card_number",),
    "transactions": ("transaction_id", "processed_timestamp"),
}

PARTITION_COLUMNS: dict[str, str] = {
    "transactions": "processed_timestamp",
}


class _StagedInserter:
    """Collects inserts for one transaction; nothing is visible until commit."""

    def __init__(self):
        self.staged: list[tuple[str, dict[str, Any]]] = []

    def insert_rows(self, table: str, columns: list[str], rows: list[tuple[Any, ...]]) -> int:
        for row in rows:
            self.staged.append((table, dict(zip(columns, row))))
        return len(rows)


class InMemoryWarehouse:
    """
    Thread-safe in-memory implementation of the pipeline ports.

    Attributes:
        tables: Committed rows per table
        partitions: table -> {partition name: (start, end)}
        partition_creations: Number of partitions actually created
        transactions_committed: Successful commits
        quarantined: Quarantine records written
        job_runs: job_id -> last saved JobRun
    """

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = {table: [] for table in PRIMARY_KEYS}
        self.reference_codes: dict[str, set[str]] = {
            "transaction_type": set(),
            "transaction_category": set(),
        }
        self.partitions: dict[str, dict[str, tuple[datetime, datetime]]] = {}
        self.partition_creations = 0
        self.transactions_committed = 0
        self.transactions_attempted = 0
        self.quarantined: list[QuarantineRecord] = []
        self.job_runs: dict[str, JobRun] = {}
        self._lock = threading.RLock()
        self._keys: dict[str, set[tuple[Any, ...]]] = {table: set() for table in PRIMARY_KEYS}
        self._injected_failures: list[PersistenceError] = []
        self._failing_partitions: set[str] = set()

    # Seeding

    def add_reference_codes(self, code_set: str, codes: list[str]) -> None:
        with self._lock:
            self.reference_codes.setdefault(code_set, set()).update(codes)

    def add_account(self, account_id: str, active: bool = True) -> None:
        self._commit([("accounts", {
            "account_id": account_id,
            "active_status": active,
        })])

    def add_card(self, card_number: str, account_id: str, active: bool = True) -> None:
        self._commit([("cards", {
            "card_number": card_number,
            "account_id": account_id,
            "active_status": active,
        })])

    def add_xref(self, card_number: str, customer_id: str, account_id: str) -> None:
        self._commit([("card_xref", {
            "card_number": card_number,
            "customer_id": customer_id,
            "account_id": account_id,
        })])

    @classmethod
    def from_seed_file(cls, path: str | Path) -> "InMemoryWarehouse":
        """
        Build a store from a seed YAML file.

        Expected format:
        ```yaml
        transaction_types: ["01", "02"]
        transaction_categories: ["0001"]
        accounts:
          - {account_id: "00000000001", active: true}
        cards:
          - {card_number: "4532015112830366", account_id: "00000000001", active: true}
        xrefs:
          - {card_number: "4532015112830366", customer_id: "000000001", account_id: "00000000001"}
        ```
        """
        with open(path) as f:
            seed = yaml.safe_load(f) or {}

        store = cls()
        store.add_reference_codes("transaction_type", [str(c) for c in seed.get("transaction_types", [])])
        store.add_reference_codes("transaction_category", [str(c) for c in seed.get("transaction_categories", [])])
        for account in seed.get("accounts", []):
            store.add_account(str(account["account_id"]), account.get("active", True))
        for card in seed.get("cards", []):
            store.add_card(str(card["card_number"]), str(card["account_id"]), card.get("active", True))
        for xref in seed.get("xrefs", []):
            store.add_xref(str(xref["card_number"]), str(xref["customer_id"]), str(xref["account_id"]))
        return store

    # Fault injection (tests)

    def fail_next_commits(self, count: int, transient: bool = True, message: str = "could not serialize access") -> None:
        """Make the next ``count`` transactions fail at commit."""
        with self._lock:
            self._injected_failures.extend(
                PersistenceError(message, transient=transient) for _ in range(count)
            )

    def fail_partition(self, partition_name: str) -> None:
        with self._lock:
            self._failing_partitions.add(partition_name)

    def clear_faults(self) -> None:
        with self._lock:
            self._injected_failures.clear()
            self._failing_partitions.clear()

    # CardLookup / AccountLookup / XrefLookup / ReferenceCodeLookup

    def find_card(self, card_number: str) -> CardInfo | None:
        row = self._find("cards", (card_number,))
        if row is None:
            return None
        return CardInfo(row["card_number"], row["account_id"], bool(row["active_status"]))

    def find_account(self, account_id: str) -> AccountInfo | None:
        row = self._find("accounts", (account_id,))
        if row is None:
            return None
        return AccountInfo(row["account_id"], bool(row["active_status"]))

    def find_xref(self, card_number: str) -> XrefInfo | None:
        row = self._find("card_xref", (card_number,))
        if row is None:
            return None
        return XrefInfo(row["card_number"], row["customer_id"], row["account_id"])

    def load_codes(self, code_set: str) -> set[str]:
        with self._lock:
            if code_set not in self.reference_codes:
                raise ValueError(f"Unknown reference code set: {code_set}")
            return set(self.reference_codes[code_set])

    # PartitionManager

    def ensure_partition(self, table: str, partition_name: str, start: datetime, end: datetime) -> bool:
        with self._lock:
            if partition_name in self._failing_partitions:
                raise PartitionError(partition_name, "permission denied for table")
            table_partitions = self.partitions.setdefault(table, {})
            if partition_name in table_partitions:
                return False
            table_partitions[partition_name] = (start, end)
            self.partition_creations += 1
            return True

    # UnitOfWorkFactory

    @contextmanager
    def transaction(self, isolation: str = "serializable", timeout_seconds: float = 30.0) -> Iterator[_StagedInserter]:
        inserter = _StagedInserter()
        with self._lock:
            self.transactions_attempted += 1
        yield inserter
        with self._lock:
            if self._injected_failures:
                raise self._injected_failures.pop(0)
            self._commit(inserter.staged)
            self.transactions_committed += 1

    # QuarantineSink / JobRunStore

    def write_quarantine(self, records: list[QuarantineRecord]) -> int:
        with self._lock:
            self.quarantined.extend(records)
        return len(records)

    def save_job_run(self, job_run: JobRun) -> None:
        with self._lock:
            self.job_runs[job_run.job_id] = job_run.model_copy(deep=True)

    def get_job_run(self, job_id: str) -> JobRun | None:
        with self._lock:
            job_run = self.job_runs.get(job_id)
            return job_run.model_copy(deep=True) if job_run is not None else None

    # Helpers

    def rows(self, table: str) -> list[dict[str, Any]]:
        with self._lock:
            return [dict(row) for row in self.tables.get(table, [])]

    def _find(self, table: str, key: tuple[Any, ...]) -> dict[str, Any] | None:
        with self._lock:
            for row in self.tables[table]:
                if tuple(row[c] for c in PRIMARY_KEYS[table][:len(key)]) == key:
                    return row
        return None

    def _commit(self, staged: list[tuple[str, dict[str, Any]]]) -> None:
        """Validate every staged row, then apply all of them or none."""
        with self._lock:
            new_keys: dict[str, set[tuple[Any, ...]]] = {}
            for table, row in staged:
                if table not in PRIMARY_KEYS:
                    raise PersistenceError(f'relation "{table}" does not exist', transient=False)

                key = tuple(row.get(c) for c in PRIMARY_KEYS[table])
                table_keys = new_keys.setdefault(table, set())
                if key in self._keys[table] or key in table_keys:
                    raise PersistenceError(
                        f'duplicate key value violates unique constraint "{table}_pkey": {key}',
                        transient=False,
                    )
                table_keys.add(key)

                partition_column = PARTITION_COLUMNS.get(table)
                if partition_column and not self._has_partition(table, row.get(partition_column)):
                    raise PersistenceError(
                        f'no partition of relation "{table}" found for row', transient=False
                    )

            for table, row in staged:
                self.tables[table].append(row)
            for table, keys in new_keys.items():
                self._keys[table].update(keys)

    def _has_partition(self, table: str, value: datetime | None) -> bool:
        if value is None:
            return False
        return any(start <= value < end for start, end in self.partitions.get(table, {}).values())

"""
Collaborator interfaces used by the pipeline.

The PostgreSQL adapters in src.warehouse and the in-memory store in
src.warehouse.memory_store both implement these protocols.
"""

from contextlib import AbstractContextManager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from src.core.models import JobRun, QuarantineRecord


@dataclass(frozen=True)
class CardInfo:
    card_number: str
    account_id: str
    active: bool


@dataclass(frozen=True)
class AccountInfo:
    account_id: str
    active: bool


@dataclass(frozen=True)
class XrefInfo:
    card_number: str
    customer_id: str
    account_id: str


class CardLookup(Protocol):
    def find_card(self, card_number: str) -> CardInfo | None:
        ...


class AccountLookup(Protocol):
    def find_account(self, account_id: str) -> AccountInfo | None:
        ...


class XrefLookup(Protocol):
    def find_xref(self, card_number: str) -> XrefInfo | None:
        """Return the card's customer and account link, None when the card has none."""
        ...


class ReferenceCodeLookup(Protocol):
    def load_codes(self, code_set: str) -> set[str]:
        """Return every code in a reference set ("transaction_type", "transaction_category")."""
        ...


class PartitionManager(Protocol):
    def ensure_partition(self, table: str, partition_name: str, start: datetime, end: datetime) -> bool:
        """
        Create the partition if absent.

        Returns:
            True if this call created it, False if it already existed

        Raises:
            PartitionError: If the partition cannot be created
        """
        ...


class BatchInserter(Protocol):
    def insert_rows(self, table: str, columns: list[str], rows: list[tuple[Any, ...]]) -> int:
        ...


class UnitOfWorkFactory(Protocol):
    def transaction(self, isolation: str, timeout_seconds: float) -> AbstractContextManager[BatchInserter]:
        """
        Open one transaction; commit on clean exit, roll back on exception.

        Raises:
            PersistenceError: transient=True for serialization failures,
                              deadlocks and statement timeouts
        """
        ...


class QuarantineSink(Protocol):
    def write_quarantine(self, records: list[QuarantineRecord]) -> int:
        ...


class JobRunStore(Protocol):
    def save_job_run(self, job_run: JobRun) -> None:
        ...

    def get_job_run(self, job_id: str) -> JobRun | None:
        ...

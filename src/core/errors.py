"""
Error taxonomy for the migration pipeline.

Format, validation and reference errors are recovered at the record level
(skip and count). Persistence and partition errors propagate to the
orchestrator and abort the chunk.
"""

from enum import Enum
from typing import Any


class FormatErrorKind(str, Enum):
    """Kinds of structural problems found while decoding a line."""

    LENGTH_MISMATCH = "length_mismatch"
    INVALID_NUMERIC = "invalid_numeric"
    INVALID_DATE = "invalid_date"


class MigrationError(Exception):
    """Base class for every error raised by the migration pipeline."""


class FormatError(MigrationError):
    """Raised when a line or field cannot be decoded."""

    def __init__(self, kind: FormatErrorKind, message: str, field_name: str | None = None):
        self.kind = kind
        self.field_name = field_name
        self.message = message
        prefix = f"{field_name}: " if field_name else ""
        super().__init__(f"[{kind.value}] {prefix}{message}")


class RecordValidationError(MigrationError):
    """
    Raised when a decoded record fails one or more field rules.

    Carries every ValidationOutcome collected for the record so that the
    orchestrator can audit all failures, not only the first one.
    """

    def __init__(self, outcomes: list[Any]):
        self.outcomes = outcomes
        messages = "; ".join(o.message for o in outcomes)
        super().__init__(f"{len(outcomes)} validation failure(s): {messages}")


class CrossReferenceError(MigrationError):
    """Raised when a card/account reference cannot be resolved."""

    def __init__(self, result: Any):
        self.result = result
        super().__init__(result.reason or "cross-reference resolution failed")


class PersistenceError(MigrationError):
    """
    Raised when a chunk cannot be committed.

    Attributes:
        transient: True for conflicts worth retrying (serialization failure,
                   deadlock, statement timeout)
    """

    def __init__(self, message: str, transient: bool = False):
        self.transient = transient
        super().__init__(message)


class PartitionError(PersistenceError):
    """Raised when a monthly partition cannot be created. Always fatal."""

    def __init__(self, partition_name: str, message: str):
        self.partition_name = partition_name
        super().__init__(f"Partition {partition_name}: {message}", transient=False)

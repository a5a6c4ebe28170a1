"""
Core data models for the legacy record migration pipeline.

All models use Pydantic for runtime validation and type safety.
"""

from .account_record import AccountRecord
from .batch_result import BatchResult
from .card_record import CardRecord
from .card_xref_record import CardXrefRecord
from .cross_reference import CrossReferenceResult
from .job_run import FailurePoint, JobRun, JobStatus
from .persistable_row import LoadReport, PersistableRow
from .quarantine_record import QuarantineRecord
from .raw_record import RawRecord, RecordType
from .record_state import RecordState
from .transaction_record import TransactionRecord
from .validation_outcome import ErrorKind, PipelineStage, ValidationOutcome
from .validation_result import ValidationResult
from .validation_rule import ValidationRule

__all__ = [
    "RecordType",
    "RawRecord",
    "CardRecord",
    "CardXrefRecord",
    "AccountRecord",
    "TransactionRecord",
    "CrossReferenceResult",
    "ValidationOutcome",
    "ErrorKind",
    "PipelineStage",
    "RecordState",
    "BatchResult",
    "PersistableRow",
    "LoadReport",
    "QuarantineRecord",
    "JobRun",
    "JobStatus",
    "FailurePoint",
    "ValidationResult",
    "ValidationRule",
]

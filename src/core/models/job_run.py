"""
JobRun model representing one execution of the migration pipeline.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class JobStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class FailurePoint(BaseModel):
    """
    Where a failed job stopped.

    Attributes:
        chunk_index: 0-based index of the chunk that failed
        first_line_number: First source line of that chunk
        message: Error message of the fatal failure
    """

    chunk_index: int = Field(..., ge=0)
    first_line_number: int = Field(..., ge=1)
    message: str


class JobRun(BaseModel):
    """
    Audit row for one job run.

    Attributes:
        job_id: UUID of the run
        record_type: card, account, transaction or xref
        source_file: Input path
        status: running, completed, failed or cancelled
        started_at: When the run started
        finished_at: When the run finished
        counts: BatchResult snapshot at the end of the run
        failure_point: Populated for failed runs only
        chunk_size: Lines per chunk; a resumed run must use the same value
        committed_chunks: Indexes of chunks whose transaction committed
        resumed_from: Job this run resumed, if any
    """

    job_id: str
    record_type: str
    source_file: str
    status: JobStatus = JobStatus.RUNNING
    started_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    finished_at: datetime | None = None
    counts: dict[str, Any] = Field(default_factory=dict)
    failure_point: FailurePoint | None = None
    chunk_size: int | None = Field(default=None, gt=0)
    committed_chunks: list[int] = Field(default_factory=list)
    resumed_from: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == JobStatus.COMPLETED

    def summary(self) -> dict[str, Any]:
        """Flat dictionary for CLI output and logging."""
        result = {
            "job_id": self.job_id,
            "record_type": self.record_type,
            "source_file": self.source_file,
            "status": self.status.value,
            **self.counts,
        }
        if self.resumed_from is not None:
            result["resumed_from"] = self.resumed_from
        if self.failure_point is not None:
            result["failure_point"] = self.failure_point.model_dump()
        return result

    class Config:
        json_schema_extra = {
            "example": {
                "job_id": "5b0f6a8e-1f77-4a8b-9d55-0c1f9f2f8a11",
                "record_type": "transaction",
                "source_file": "data/dailytran.txt",
                "status": "failed",
                "counts": {"total_seen": 3000, "succeeded": 2000, "skipped": 4, "failed_fatal": 996},
                "chunk_size": 1000,
                "committed_chunks": [0, 1],
                "failure_point": {
                    "chunk_index": 2,
                    "first_line_number": 2001,
                    "message": "Partition transactions_2024_03: permission denied"
                }
            }
        }

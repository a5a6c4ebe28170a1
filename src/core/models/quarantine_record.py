"""
QuarantineRecord model representing skipped legacy lines with detailed error context.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, Field, field_validator


class QuarantineRecord(BaseModel):
    """
    Skipped legacy line with detailed error context.

    Attributes:
        quarantine_id: Auto-increment primary key
        job_id: Job run that skipped the line
        record_type: card, account or transaction
        line_number: 1-based line number in the source file
        record_key: Primary key value, when it could be decoded
        raw_line: Original line text
        error_kind: Skip category (format, validation, reference)
        failed_rules: Array of rule names that failed
        error_messages: Corresponding error messages
        quarantined_at: When quarantined
        reviewed: Whether analyst has reviewed
    """

    quarantine_id: int | None = None
    job_id: str
    record_type: str
    line_number: int = Field(..., ge=1)
    record_key: str | None = None
    raw_line: str
    error_kind: str
    failed_rules: list[str] = Field(..., min_length=1)
    error_messages: list[str] = Field(..., min_length=1)
    quarantined_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    reviewed: bool = False

    @field_validator('error_messages')
    @classmethod
    def check_arrays_same_length(cls, v, info):
        """Validate that failed_rules and error_messages have the same length."""
        failed_rules = info.data.get('failed_rules', [])
        if len(v) != len(failed_rules):
            raise ValueError(
                f"error_messages length ({len(v)}) must match failed_rules length ({len(failed_rules)})"
            )
        return v

    class Config:
        json_schema_extra = {
            "example": {
                "quarantine_id": 1,
                "job_id": "5b0f6a8e-1f77-4a8b-9d55-0c1f9f2f8a11",
                "record_type": "card",
                "line_number": 17,
                "record_key": "4532015112830367",
                "raw_line": "4532015112830367000000000011...",
                "error_kind": "validation",
                "failed_rules": ["card_number_luhn"],
                "error_messages": ["Card number fails Luhn checksum"],
                "reviewed": False
            }
        }

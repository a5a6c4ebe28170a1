"""
ValidationOutcome model representing one failed check on one record (ephemeral).
"""

from enum import Enum

from pydantic import BaseModel, Field


class PipelineStage(str, Enum):
    """Stage of the four-stage pipeline where an outcome was produced."""

    DECODE = "decode"
    VALIDATE = "validate"
    RESOLVE = "resolve"
    LOAD = "load"


class ErrorKind(str, Enum):
    """Skip categories reported in the job summary."""

    FORMAT = "format"
    VALIDATION = "validation"
    REFERENCE = "reference"


class ValidationOutcome(BaseModel):
    """
    A single failure attached to a record.

    Outcomes are never silently dropped: every outcome of a skipped record is
    counted in the BatchResult and written to quarantine.

    Attributes:
        record_ref: Record reference ("transaction:42")
        stage: Pipeline stage that produced the outcome
        error_kind: Skip category
        message: Human-readable reason
        field_name: Offending field, when the failure is field-scoped
        rule_name: Rule that failed, for audit
        severity: "error" rejects the record, "warning" is logged only
    """

    record_ref: str
    stage: PipelineStage
    error_kind: ErrorKind
    message: str = Field(..., min_length=1)
    field_name: str | None = None
    rule_name: str | None = None
    severity: str = "error"

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "record_ref": "card:3",
                "stage": "validate",
                "error_kind": "validation",
                "message": "Card number fails Luhn checksum",
                "field_name": "card_number",
                "rule_name": "card_number_luhn",
                "severity": "error"
            }
        }

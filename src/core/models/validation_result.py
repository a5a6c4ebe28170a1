"""
ValidationResult model representing the outcome of validating a record (ephemeral).
"""

from typing import Any, List

from pydantic import BaseModel, Field, field_validator

from .validation_outcome import ErrorKind, ValidationOutcome


class ValidationResult(BaseModel):
    """
    Outcome of running every rule against one decoded record.

    Note: ValidationResult is ephemeral, not persisted to database
    (used in-memory during processing).

    Attributes:
        record_ref: Which record was validated
        passed: Overall validation status
        passed_rules: Rules that succeeded
        failed_rules: Rules that failed with error severity
        outcomes: One ValidationOutcome per failed rule
        warnings: Non-blocking outcomes (warning severity)
        values: Field values after coercion (Decimal, date, bool, ...)
    """

    record_ref: str
    passed: bool
    passed_rules: List[str] = Field(default_factory=list)
    failed_rules: List[str] = Field(default_factory=list)
    outcomes: List[ValidationOutcome] = Field(default_factory=list)
    warnings: List[ValidationOutcome] = Field(default_factory=list)
    values: dict[str, Any] = Field(default_factory=dict)

    @field_validator('failed_rules')
    @classmethod
    def check_passed_consistency(cls, v, info):
        """Validate that passed=True implies failed_rules is empty."""
        if info.data.get('passed') and len(v) > 0:
            raise ValueError("passed=True but failed_rules is not empty")
        return v

    @property
    def error_kind(self) -> ErrorKind:
        """Format wins over validation when a record has both."""
        if any(o.error_kind == ErrorKind.FORMAT for o in self.outcomes):
            return ErrorKind.FORMAT
        return ErrorKind.VALIDATION

    class Config:
        json_schema_extra = {
            "example": {
                "record_ref": "card:1",
                "passed": False,
                "passed_rules": ["card_number_required", "card_number_digits"],
                "failed_rules": ["card_number_luhn"],
                "outcomes": [{
                    "record_ref": "card:1",
                    "stage": "validate",
                    "error_kind": "validation",
                    "message": "Card number fails Luhn checksum",
                    "field_name": "card_number",
                    "rule_name": "card_number_luhn"
                }],
                "warnings": [],
                "values": {}
            }
        }

"""
ValidationRule model representing a configurable constraint applied to a legacy field.
"""

from typing import Any, Dict, Literal

from pydantic import BaseModel, Field

RuleType = Literal[
    "required_field",
    "string_length",
    "regex",
    "range",
    "luhn",
    "date",
    "flag",
    "legacy_amount",
    "timestamp",
    "reference_code",
    "custom",
]


class ValidationRule(BaseModel):
    """
    A configurable constraint applied to a decoded field.

    Attributes:
        rule_name: Human-readable name ("card_number_luhn")
        rule_type: Validator key in the rule engine registry
        field_name: Which field this rule applies to
        parameters: Rule-specific params (e.g., {"min": 0, "max": 100})
        enabled: Whether rule is active
        severity: "error" (skip the record) or "warning" (log only)
    """

    rule_name: str = Field(..., min_length=1)
    rule_type: RuleType
    field_name: str
    parameters: Dict[str, Any] | None = None
    enabled: bool = True
    severity: Literal["error", "warning"] = "error"

    class Config:
        json_schema_extra = {
            "example": {
                "rule_name": "card_number_luhn",
                "rule_type": "luhn",
                "field_name": "card_number",
                "parameters": None,
                "enabled": True,
                "severity": "error"
            }
        }

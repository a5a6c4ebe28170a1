"""
FlagValidator - single-character Y/N legacy flags.
"""

from typing import Any

from .base_validator import BaseValidator


class FlagValidator(BaseValidator):
    """
    Validates a legacy flag and coerces it to bool.

    Parameters:
    - true_values: Characters meaning True (default "Y")
    - false_values: Characters meaning False (default "N")
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.true_values = set(self.parameters.get("true_values", ["Y"]))
        self.false_values = set(self.parameters.get("false_values", ["N"]))

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if isinstance(value, bool):
            return
        if value not in self.true_values and value not in self.false_values:
            allowed = "/".join(sorted(self.true_values | self.false_values))
            raise self._fail(f"Flag '{value}' must be one of {allowed}")

    def coerce(self, value: Any) -> bool:
        if isinstance(value, bool):
            return value
        return value in self.true_values

    @property
    def rule_type(self) -> str:
        return "flag"

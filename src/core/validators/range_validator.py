"""
RangeValidator - validates decimal values are within a specified range.
"""

from decimal import Decimal
from typing import Any

from .base_validator import BaseValidator


class RangeValidator(BaseValidator):
    """
    Validates that a numeric field is within a specified range.

    Bounds are converted to Decimal through their string form so that
    YAML floats like 0.01 compare exactly.

    Parameters:
    - min: Minimum value (inclusive)
    - max: Maximum value (inclusive)
    - min_exclusive: Minimum value (exclusive)
    - max_exclusive: Maximum value (exclusive)
    - abs: Compare the absolute value (for signed amounts)
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        self.min_value = self._bound("min")
        self.max_value = self._bound("max")
        self.min_exclusive = self._bound("min_exclusive")
        self.max_exclusive = self._bound("max_exclusive")
        self.use_abs = bool(self.parameters.get("abs", False))

        if all(v is None for v in [self.min_value, self.max_value, self.min_exclusive, self.max_exclusive]):
            raise ValueError("RangeValidator requires at least one of: min, max, min_exclusive, max_exclusive")

    def _bound(self, key: str) -> Decimal | None:
        raw = self.parameters.get(key)
        return None if raw is None else Decimal(str(raw))

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the value is within the specified range.

        Raises:
            ValidationError: If value is not numeric or is outside the range
        """
        if value is None:
            return

        # bool is an int subclass, floats are never exact enough for money
        if isinstance(value, bool) or not isinstance(value, int | Decimal):
            raise self._fail(f"Value must be a decimal, got {type(value).__name__}")

        number = abs(Decimal(value)) if self.use_abs else Decimal(value)
        label = "Magnitude" if self.use_abs else "Value"

        if self.min_value is not None and number < self.min_value:
            raise self._fail(f"{label} {value} is less than minimum {self.min_value}")

        if self.min_exclusive is not None and number <= self.min_exclusive:
            raise self._fail(f"{label} {value} must be greater than {self.min_exclusive}")

        if self.max_value is not None and number > self.max_value:
            raise self._fail(f"{label} {value} exceeds maximum {self.max_value}")

        if self.max_exclusive is not None and number >= self.max_exclusive:
            raise self._fail(f"{label} {value} must be less than {self.max_exclusive}")

    @property
    def rule_type(self) -> str:
        return "range"

"""
RequiredFieldValidator and StringLengthValidator - presence and length of text fields.
"""

from typing import Any

from .base_validator import BaseValidator


class RequiredFieldValidator(BaseValidator):
    """
    Validates that a required field is present and not blank.

    Fixed-width fields are always present after decoding, so in practice
    this rejects all-space fields.
    """

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate that the field is present and not null/blank.

        Raises:
            ValidationError: If field is missing, None, or blank
        """
        if self.field_name not in record:
            raise self._fail("Field is missing from record")

        if value is None:
            raise self._fail("Field value is null")

        if isinstance(value, str) and value.strip() == "":
            raise self._fail("Field is required but blank")

    @property
    def rule_type(self) -> str:
        return "required_field"


class StringLengthValidator(BaseValidator):
    """
    Validates the length of a text field.

    Parameters:
    - min_length: Minimum length (default 0)
    - max_length: Maximum length (optional)

    Blank values are skipped; pair with RequiredFieldValidator for mandatory fields.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.min_length = int(self.parameters.get("min_length", 0))
        max_length = self.parameters.get("max_length")
        self.max_length = int(max_length) if max_length is not None else None

        if self.max_length is not None and self.max_length < self.min_length:
            raise ValueError("max_length must be >= min_length")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None or value == "":
            return

        length = len(str(value))
        if length < self.min_length:
            raise self._fail(f"Length {length} is shorter than {self.min_length}")
        if self.max_length is not None and length > self.max_length:
            raise self._fail(f"Length {length} exceeds maximum {self.max_length}")

    @property
    def rule_type(self) -> str:
        return "string_length"

"""
ReferenceCodeValidator - checks a code against a reference table.
"""

from typing import Any

from .base_validator import BaseValidator


class ReferenceCodeValidator(BaseValidator):
    """
    Validates that a code exists in a reference set (transaction types, categories).

    Parameters:
    - code_set: Reference set name ("transaction_type", "transaction_category")
    - reference_codes: Object with ``exists(code_set, code) -> bool``,
      normally the per-run ReferenceCodeCache
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.code_set = self.parameters.get("code_set", field_name)
        self.reference_codes = self.parameters.get("reference_codes")
        if self.reference_codes is None:
            raise ValueError("ReferenceCodeValidator requires 'reference_codes' parameter")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None or value == "":
            return

        if not self.reference_codes.exists(self.code_set, str(value)):
            raise self._fail(f"Unknown {self.code_set} code '{value}'")

    @property
    def rule_type(self) -> str:
        return "reference_code"

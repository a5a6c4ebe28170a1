"""
LegacyAmountValidator - decodes signed display amounts into exact decimals.
"""

from decimal import Decimal
from typing import Any

from src.core.codec import LegacyDecimalCodec

from .base_validator import BaseValidator


class LegacyAmountValidator(BaseValidator):
    """
    Validates a legacy amount by decoding it.

    Parameters:
    - codec: LegacyDecimalCodec to decode with (default: brace markers, half-even)

    A payload that cannot be decoded raises FormatError (INVALID_NUMERIC),
    which the rule engine counts as a format skip rather than a validation skip.
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.codec: LegacyDecimalCodec = self.parameters.get("codec") or LegacyDecimalCodec()

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if isinstance(value, Decimal):
            return
        self.codec.decode_amount(value, self.field_name)

    def coerce(self, value: Any) -> Decimal:
        if isinstance(value, Decimal):
            return value
        return self.codec.decode_amount(value, self.field_name)

    @property
    def rule_type(self) -> str:
        return "legacy_amount"

"""
Validation rule implementations.

Provides validators for required fields, lengths, digit patterns, decimal
ranges, Luhn checksums, legacy dates, flags, amounts, reference codes and
custom cross-field logic.
"""

from .amount_validator import LegacyAmountValidator
from .base_validator import BaseValidator, ValidationError
from .custom_validator import NAMED_CHECKS, CustomValidator, register_check
from .date_validator import DateValidator, TimestampValidator, parse_legacy_date, parse_legacy_timestamp
from .flag_validator import FlagValidator
from .luhn import LuhnValidator, is_luhn_valid, luhn_checksum
from .range_validator import RangeValidator
from .reference_code_validator import ReferenceCodeValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator, StringLengthValidator

__all__ = [
    "BaseValidator",
    "ValidationError",
    "RequiredFieldValidator",
    "StringLengthValidator",
    "RegexValidator",
    "RangeValidator",
    "LuhnValidator",
    "DateValidator",
    "TimestampValidator",
    "FlagValidator",
    "LegacyAmountValidator",
    "ReferenceCodeValidator",
    "CustomValidator",
    "NAMED_CHECKS",
    "register_check",
    "is_luhn_valid",
    "luhn_checksum",
    "parse_legacy_date",
    "parse_legacy_timestamp",
]

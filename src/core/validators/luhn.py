"""
Luhn (mod 10) checksum for card numbers.
"""

from typing import Any

from .base_validator import BaseValidator


def luhn_checksum(number: str) -> int:
    """
    Compute the Luhn sum of a digit string, modulo 10.

    Walks the digits right to left, doubling every second one and
    subtracting 9 from doubled results above 9.

    Raises:
        ValueError: If the string contains a non-digit
    """
    if not (number.isascii() and number.isdigit()):
        raise ValueError(f"'{number}' is not a digit string")

    total = 0
    for position, char in enumerate(reversed(number)):
        digit = int(char)
        if position % 2 == 1:
            digit *= 2
            if digit > 9:
                digit -= 9
        total += digit
    return total % 10


def is_luhn_valid(number: str) -> bool:
    if not number or not (number.isascii() and number.isdigit()):
        return False
    return luhn_checksum(number) == 0


class LuhnValidator(BaseValidator):
    """Validates that a digit string passes the Luhn checksum."""

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        if value is None or value == "":
            return

        if not is_luhn_valid(str(value)):
            raise self._fail("Card number fails Luhn checksum")

    @property
    def rule_type(self) -> str:
        return "luhn"

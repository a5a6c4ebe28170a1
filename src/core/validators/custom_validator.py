"""
CustomValidator - validates using a custom Python function (cross-field rules).
"""

from typing import Any, Callable

from .base_validator import BaseValidator

CheckFunc = Callable[[Any, dict[str, Any]], None]

# Named checks usable from YAML rule files ("check: cash_limit_within_credit_limit")
NAMED_CHECKS: dict[str, CheckFunc] = {}


def register_check(name: str) -> Callable[[CheckFunc], CheckFunc]:
    """Register a function under a name so YAML rules can refer to it."""
    def decorator(func: CheckFunc) -> CheckFunc:
        NAMED_CHECKS[name] = func
        return func
    return decorator


class CustomValidator(BaseValidator):
    """
    Validates using a custom validation function.

    Parameters:
    - validator_func: A callable that takes (value, record) and returns None on success
                      or raises ValueError on failure
    - check: Name of a registered check, used instead of validator_func
    - depends_on: Fields that must have passed their own rules first
    - error_message: Optional prefix for the error message

    The validator function signature should be:
        def my_validator(value: Any, record: Dict[str, Any]) -> None:
            if not valid:
                raise ValueError("Validation failed")
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)

        self.validator_func = self.parameters.get("validator_func")
        check_name = self.parameters.get("check")
        if not self.validator_func and check_name:
            if check_name not in NAMED_CHECKS:
                raise ValueError(f"Unknown custom check '{check_name}'")
            self.validator_func = NAMED_CHECKS[check_name]

        if not self.validator_func:
            raise ValueError("CustomValidator requires 'validator_func' or 'check' parameter")

        if not callable(self.validator_func):
            raise ValueError("validator_func must be callable")

        self.depends_on: list[str] = list(self.parameters.get("depends_on", []))
        self.error_message = self.parameters.get("error_message")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Validate using the custom function.

        Raises:
            ValidationError: If custom validation fails
        """
        try:
            self.validator_func(value, record)
        except (ValueError, TypeError, ArithmeticError) as e:
            message = f"{self.error_message}: {e}" if self.error_message else str(e)
            raise self._fail(message)

    @property
    def rule_type(self) -> str:
        return "custom"

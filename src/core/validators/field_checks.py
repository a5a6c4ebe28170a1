"""
Stateless field checks returning a ValidationOutcome on failure and None on success.

These wrap the class validators for callers that check a single value
outside the rule engine (resolver inputs, fixtures, ad-hoc tooling).
"""

from collections.abc import Collection
from datetime import date
from typing import Any

from src.core.errors import FormatError
from src.core.models import ErrorKind, PipelineStage, ValidationOutcome

from .base_validator import BaseValidator, ValidationError
from .date_validator import DateValidator
from .luhn import LuhnValidator
from .regex_validator import RegexValidator
from .required_field_validator import RequiredFieldValidator, StringLengthValidator

CARD_NUMBER_PATTERN = r"[0-9]{16}"
ACCOUNT_ID_PATTERN = r"[0-9]{11}"
CUSTOMER_ID_PATTERN = r"[0-9]{9}"
TRANSACTION_ID_PATTERN = r"[0-9A-Za-z]{16}"
CVV_PATTERN = r"[0-9]{3}"
TRANSACTION_TYPE_PATTERN = r"[0-9]{2}"
TRANSACTION_CATEGORY_PATTERN = r"[0-9]{4}"


def _outcome_from(error: ValidationError | FormatError, record_ref: str) -> ValidationOutcome:
    if isinstance(error, FormatError):
        return ValidationOutcome(
            record_ref=record_ref,
            stage=PipelineStage.VALIDATE,
            error_kind=ErrorKind.FORMAT,
            message=error.message,
            field_name=error.field_name,
            rule_name=error.kind.value,
        )
    return ValidationOutcome(
        record_ref=record_ref,
        stage=PipelineStage.VALIDATE,
        error_kind=ErrorKind.VALIDATION,
        message=error.message,
        field_name=error.field_name,
        rule_name=error.rule_name,
    )


def _run(value: Any, record_ref: str, *validators: BaseValidator) -> ValidationOutcome | None:
    record = {validators[0].field_name: value}
    for validator in validators:
        try:
            validator.validate(value, record)
        except (ValidationError, FormatError) as e:
            return _outcome_from(e, record_ref)
    return None


def _digits(field_name: str, pattern: str, description: str) -> RegexValidator:
    return RegexValidator(field_name, {"pattern": pattern, "description": description})


def validate_card_number(value: str | None, record_ref: str = "-") -> ValidationOutcome | None:
    """16 digits, then Luhn."""
    return _run(
        value,
        record_ref,
        RequiredFieldValidator("card_number"),
        _digits("card_number", CARD_NUMBER_PATTERN, "16 digits"),
        LuhnValidator("card_number"),
    )


def validate_account_id(value: str | None, record_ref: str = "-") -> ValidationOutcome | None:
    return _run(
        value,
        record_ref,
        RequiredFieldValidator("account_id"),
        _digits("account_id", ACCOUNT_ID_PATTERN, "11 digits"),
    )


def validate_transaction_id(value: str | None, record_ref: str = "-") -> ValidationOutcome | None:
    return _run(
        value,
        record_ref,
        RequiredFieldValidator("transaction_id"),
        _digits("transaction_id", TRANSACTION_ID_PATTERN, "16 alphanumeric characters"),
    )


def validate_cvv(value: str | None, record_ref: str = "-") -> ValidationOutcome | None:
    return _run(
        value,
        record_ref,
        RequiredFieldValidator("cvv"),
        _digits("cvv", CVV_PATTERN, "3 digits"),
    )


def validate_transaction_type(
    value: str | None,
    record_ref: str = "-",
    known_codes: Collection[str] | None = None,
) -> ValidationOutcome | None:
    """2 digits; when known_codes is given the code must also be one of them."""
    outcome = _run(
        value,
        record_ref,
        RequiredFieldValidator("transaction_type"),
        _digits("transaction_type", TRANSACTION_TYPE_PATTERN, "2 digits"),
    )
    if outcome is None and known_codes is not None and value not in known_codes:
        outcome = _outcome_from(
            ValidationError("reference_code", "transaction_type", f"Unknown transaction_type code '{value}'"),
            record_ref,
        )
    return outcome


def validate_transaction_category(
    value: str | None,
    record_ref: str = "-",
    known_codes: Collection[str] | None = None,
) -> ValidationOutcome | None:
    """4 digits; when known_codes is given the code must also be one of them."""
    outcome = _run(
        value,
        record_ref,
        RequiredFieldValidator("transaction_category"),
        _digits("transaction_category", TRANSACTION_CATEGORY_PATTERN, "4 digits"),
    )
    if outcome is None and known_codes is not None and value not in known_codes:
        outcome = _outcome_from(
            ValidationError(
                "reference_code", "transaction_category", f"Unknown transaction_category code '{value}'"
            ),
            record_ref,
        )
    return outcome


def validate_string_field(
    value: str | None,
    field_name: str,
    max_length: int,
    required: bool = True,
    record_ref: str = "-",
) -> ValidationOutcome | None:
    """Non-empty (when required) and at most max_length characters."""
    validators: list[BaseValidator] = []
    if required:
        validators.append(RequiredFieldValidator(field_name))
    validators.append(StringLengthValidator(field_name, {"max_length": max_length}))
    return _run(value, record_ref, *validators)


def validate_date_field(
    value: str | None,
    field_name: str,
    record_ref: str = "-",
    **parameters: Any,
) -> tuple[date | None, ValidationOutcome | None]:
    """
    Parse and check a legacy date.

    Args:
        value: Raw YYYY-MM-DD text
        field_name: Field being checked
        record_ref: Record reference for the outcome
        **parameters: DateValidator parameters (required, min_date, max_date,
                      not_past, not_after_today, max_years_ahead, today)

    Returns:
        (date, None) on success, (None, None) for absent/sentinel dates,
        (None, outcome) on failure
    """
    validator = DateValidator(field_name, parameters)
    outcome = _run(value, record_ref, validator)
    if outcome is not None:
        return None, outcome
    return validator.coerce(value), None

"""
Default rule sets for card, account, transaction and card cross-reference records.

A YAML rule file can replace the defaults for any record type; see
config/validation_rules.yaml.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

from pydantic import BaseModel

from src.core.models import AccountRecord, CardRecord, CardXrefRecord, RecordType, TransactionRecord
from src.core.settings import MigrationSettings
from src.core.validators import register_check
from src.core.validators.field_checks import (
    ACCOUNT_ID_PATTERN,
    CARD_NUMBER_PATTERN,
    CUSTOMER_ID_PATTERN,
    CVV_PATTERN,
    TRANSACTION_CATEGORY_PATTERN,
    TRANSACTION_ID_PATTERN,
    TRANSACTION_TYPE_PATTERN,
)

from .rule_config import RuleConfigBuilder, RuleConfigLoader
from .rule_engine import RuleEngine

MAX_AMOUNT = Decimal("999999999.99")

RECORD_MODELS: dict[RecordType, type[BaseModel]] = {
    RecordType.CARD: CardRecord,
    RecordType.ACCOUNT: AccountRecord,
    RecordType.TRANSACTION: TransactionRecord,
    RecordType.XREF: CardXrefRecord,
}

PRIMARY_KEY_FIELDS: dict[RecordType, str] = {
    RecordType.CARD: "card_number",
    RecordType.ACCOUNT: "account_id",
    RecordType.TRANSACTION: "transaction_id",
    RecordType.XREF: "card_number",
}


@register_check("cash_limit_within_credit_limit")
def cash_limit_within_credit_limit(value: Any, record: dict[str, Any]) -> None:
    credit_limit = record.get("credit_limit")
    if isinstance(value, Decimal) and isinstance(credit_limit, Decimal) and value > credit_limit:
        raise ValueError(f"cash credit limit {value} exceeds credit limit {credit_limit}")


@register_check("processed_not_before_original")
def processed_not_before_original(value: Any, record: dict[str, Any]) -> None:
    original = record.get("original_timestamp")
    if value is not None and original is not None and value < original:
        raise ValueError(f"processed at {value.isoformat()} before it originated at {original.isoformat()}")


def card_rules(settings: MigrationSettings) -> list[dict[str, Any]]:
    return (
        RuleConfigBuilder()
        .add_required_field("card_number")
        .add_regex("card_number", CARD_NUMBER_PATTERN, "16 digits")
        .add_luhn("card_number")
        .add_required_field("account_id")
        .add_regex("account_id", ACCOUNT_ID_PATTERN, "11 digits")
        .add_required_field("cvv")
        .add_regex("cvv", CVV_PATTERN, "3 digits")
        .add_required_field("embossed_name")
        .add_length("embossed_name", max_length=50)
        .add_date(
            "expiration_date",
            required=True,
            not_past=True,
            max_years_ahead=settings.card_max_years_ahead,
        )
        .add_flag("active_status")
        .build()
    )


def account_rules(settings: MigrationSettings) -> list[dict[str, Any]]:
    builder = (
        RuleConfigBuilder()
        .add_required_field("account_id")
        .add_regex("account_id", ACCOUNT_ID_PATTERN, "11 digits")
        .add_flag("active_status")
        .add_legacy_amount("current_balance")
    )
    for field_name in ("credit_limit", "cash_credit_limit", "cycle_credit", "cycle_debit"):
        builder.add_legacy_amount(field_name).add_range(field_name, min_value=0)

    return (
        builder
        .add_date("open_date", required=True, not_after_today=True)
        .add_date("expiration_date", not_before_field="open_date")
        .add_date("reissue_date")
        .add_length("address_zip", max_length=10)
        .add_length("group_id", max_length=10)
        .add_custom(
            "cash_limit_within_credit_limit",
            "cash_credit_limit",
            "cash_limit_within_credit_limit",
            depends_on=["credit_limit", "cash_credit_limit"],
            severity="warning",
        )
        .build()
    )


def transaction_rules(settings: MigrationSettings) -> list[dict[str, Any]]:
    return (
        RuleConfigBuilder()
        .add_required_field("transaction_id")
        .add_regex("transaction_id", TRANSACTION_ID_PATTERN, "16 alphanumeric characters")
        .add_required_field("transaction_type")
        .add_regex("transaction_type", TRANSACTION_TYPE_PATTERN, "2 digits")
        .add_reference_code("transaction_type")
        .add_required_field("transaction_category")
        .add_regex("transaction_category", TRANSACTION_CATEGORY_PATTERN, "4 digits")
        .add_reference_code("transaction_category")
        .add_length("transaction_source", max_length=10)
        .add_length("description", max_length=100)
        .add_legacy_amount("amount")
        .add_range("amount", max_value=MAX_AMOUNT, use_abs=True)
        .add_regex("merchant_id", r"[0-9]{9}", "9 digits")
        .add_required_field("merchant_name")
        .add_length("merchant_name", max_length=50)
        .add_length("merchant_city", max_length=50)
        .add_length("merchant_zip", max_length=10)
        .add_required_field("card_number")
        .add_regex("card_number", CARD_NUMBER_PATTERN, "16 digits")
        .add_luhn("card_number")
        .add_timestamp("original_timestamp")
        .add_timestamp("processed_timestamp")
        .add_custom(
            "processed_not_before_original",
            "processed_timestamp",
            "processed_not_before_original",
            depends_on=["original_timestamp", "processed_timestamp"],
            severity="warning",
        )
        .build()
    )


def xref_rules(settings: MigrationSettings) -> list[dict[str, Any]]:
    return (
        RuleConfigBuilder()
        .add_required_field("card_number")
        .add_regex("card_number", CARD_NUMBER_PATTERN, "16 digits")
        .add_luhn("card_number")
        .add_required_field("customer_id")
        .add_regex("customer_id", CUSTOMER_ID_PATTERN, "9 digits")
        .add_required_field("account_id")
        .add_regex("account_id", ACCOUNT_ID_PATTERN, "11 digits")
        .build()
    )


DEFAULT_RULES: dict[RecordType, Callable[[MigrationSettings], list[dict[str, Any]]]] = {
    RecordType.CARD: card_rules,
    RecordType.ACCOUNT: account_rules,
    RecordType.TRANSACTION: transaction_rules,
    RecordType.XREF: xref_rules,
}


def build_rule_engine(
    record_type: RecordType,
    settings: MigrationSettings,
    reference_codes: Any = None,
    rules_path: str | Path | None = None,
    today: Callable[[], date] | None = None,
) -> RuleEngine:
    """
    Build the rule engine for one record type.

    Args:
        record_type: Which record family to validate
        settings: Pipeline settings (codec, date window, card horizon)
        reference_codes: Per-run ReferenceCodeCache, required for transactions
        rules_path: Optional YAML file overriding the default rules
        today: Clock override for date rules

    Returns:
        RuleEngine whose build() produces the typed record
    """
    rules = None
    if rules_path is not None:
        rules = RuleConfigLoader(rules_path).load_rules(record_type.value)
    if rules is None:
        rules = DEFAULT_RULES[record_type](settings)

    context: dict[str, Any] = {
        "codec": settings.codec.build(),
        "min_date": settings.date_window.min_date,
        "max_date": settings.date_window.max_date,
        "today": today or date.today,
    }
    if reference_codes is not None:
        context["reference_codes"] = reference_codes

    return RuleEngine(rules, model=RECORD_MODELS[record_type], context=context)

"""
Unit tests for validation rules.

Includes property-based testing with hypothesis for validators.
"""

from datetime import date, datetime, timezone
from decimal import Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.core.codec import PLUS_MINUS, LegacyDecimalCodec
from src.core.errors import FormatError, FormatErrorKind
from src.core.validators import (
    CustomValidator,
    DateValidator,
    FlagValidator,
    LegacyAmountValidator,
    LuhnValidator,
    RangeValidator,
    ReferenceCodeValidator,
    RegexValidator,
    RequiredFieldValidator,
    StringLengthValidator,
    TimestampValidator,
    ValidationError,
    is_luhn_valid,
    luhn_checksum,
    register_check,
)
from src.core.validators.date_validator import add_years, parse_legacy_date


def _reference_luhn(number: str) -> bool:
    digits = [int(c) for c in number]
    odd = digits[-1::-2]
    even = [sum(divmod(2 * d, 10)) for d in digits[-2::-2]]
    return (sum(odd) + sum(even)) % 10 == 0


class TestRequiredFieldValidator:
    """Tests for RequiredFieldValidator"""

    def test_valid_required_field(self):
        validator = RequiredFieldValidator("embossed_name")
        record = {"embossed_name": "JOHN DOE"}
        validator.validate(record["embossed_name"], record)  # Should not raise

    def test_missing_field_raises_error(self):
        validator = RequiredFieldValidator("cvv")
        with pytest.raises(ValidationError) as exc_info:
            validator.validate(None, {})

        assert "missing" in str(exc_info.value).lower()
        assert exc_info.value.field_name == "cvv"

    def test_blank_field_raises_error(self):
        validator = RequiredFieldValidator("cvv")
        with pytest.raises(ValidationError, match="blank"):
            validator.validate("   ", {"cvv": "   "})

    @given(st.text(min_size=1).filter(lambda s: s.strip() != ""))
    def test_property_any_nonblank_string_passes(self, value):
        RequiredFieldValidator("field").validate(value, {"field": value})


class TestStringLengthValidator:
    """Tests for StringLengthValidator"""

    def test_within_limit(self):
        StringLengthValidator("merchant_zip", {"max_length": 10}).validate("98101", {})

    def test_too_long(self):
        with pytest.raises(ValidationError, match="exceeds maximum 10"):
            StringLengthValidator("merchant_zip", {"max_length": 10}).validate("X" * 11, {})

    def test_blank_skipped(self):
        StringLengthValidator("merchant_zip", {"min_length": 3}).validate("", {})

    def test_inconsistent_bounds(self):
        with pytest.raises(ValueError):
            StringLengthValidator("f", {"min_length": 5, "max_length": 2})


class TestRegexValidator:
    """Tests for RegexValidator"""

    def test_full_match_required(self):
        validator = RegexValidator("account_id", {"pattern": r"[0-9]{11}", "description": "11 digits"})
        validator.validate("00000000001", {})

        with pytest.raises(ValidationError, match="11 digits"):
            validator.validate("000000000012", {})

    def test_blank_is_left_to_required_rule(self):
        RegexValidator("merchant_id", {"pattern": r"[0-9]{9}"}).validate("", {})

    def test_missing_pattern(self):
        with pytest.raises(ValueError):
            RegexValidator("f", {})

    @given(st.from_regex(r"[0-9]{16}", fullmatch=True))
    def test_property_sixteen_digits_match(self, value):
        RegexValidator("card_number", {"pattern": r"[0-9]{16}"}).validate(value, {})


class TestRangeValidator:
    """Tests for RangeValidator"""

    def test_decimal_in_range(self):
        RangeValidator("credit_limit", {"min": 0}).validate(Decimal("0.00"), {})

    def test_below_minimum(self):
        with pytest.raises(ValidationError, match="less than minimum"):
            RangeValidator("credit_limit", {"min": 0}).validate(Decimal("-0.01"), {})

    def test_absolute_bound(self):
        validator = RangeValidator("amount", {"max": "999999999.99", "abs": True})
        validator.validate(Decimal("-999999999.99"), {})
        with pytest.raises(ValidationError, match="Magnitude"):
            validator.validate(Decimal("-1000000000.00"), {})

    def test_float_rejected(self):
        with pytest.raises(ValidationError, match="decimal"):
            RangeValidator("amount", {"max": 10}).validate(1.5, {})

    def test_bool_rejected(self):
        with pytest.raises(ValidationError):
            RangeValidator("amount", {"max": 10}).validate(True, {})

    def test_requires_a_bound(self):
        with pytest.raises(ValueError):
            RangeValidator("amount", {})

    @given(st.decimals(min_value=0, max_value=100, places=2))
    def test_property_values_in_range_pass(self, value):
        RangeValidator("value", {"min": 0, "max": 100}).validate(value, {})


class TestLuhn:
    """Tests for the Luhn checksum"""

    def test_known_valid(self):
        assert is_luhn_valid("4532015112830366")

    def test_known_invalid(self):
        assert not is_luhn_valid("4532015112830367")

    def test_non_digit(self):
        assert not is_luhn_valid("453201511283036X")
        with pytest.raises(ValueError):
            luhn_checksum("4532-0151")

    def test_validator_message(self):
        with pytest.raises(ValidationError, match="Luhn"):
            LuhnValidator("card_number").validate("4532015112830367", {})

    @given(st.from_regex(r"[0-9]{16}", fullmatch=True))
    def test_property_matches_reference(self, number):
        assert is_luhn_valid(number) == _reference_luhn(number)

    @given(st.from_regex(r"[0-9]{15}", fullmatch=True))
    def test_property_exactly_one_check_digit(self, prefix):
        valid = [d for d in "0123456789" if is_luhn_valid(prefix + d)]
        assert len(valid) == 1


class TestFlagValidator:
    """Tests for FlagValidator"""

    def test_coerce(self):
        validator = FlagValidator("active_status")
        assert validator.coerce("Y") is True
        assert validator.coerce("N") is False

    def test_invalid_flag(self):
        with pytest.raises(ValidationError, match="N/Y"):
            FlagValidator("active_status").validate("X", {})


class TestLegacyAmountValidator:
    """Tests for LegacyAmountValidator"""

    def test_coerce_to_decimal(self):
        assert LegacyAmountValidator("amount").coerce("00000009190}") == Decimal("-91.90")

    def test_bad_payload_is_format_error(self):
        with pytest.raises(FormatError) as exc_info:
            LegacyAmountValidator("amount").validate("ABCDEFGHIJK{", {})
        assert exc_info.value.kind == FormatErrorKind.INVALID_NUMERIC

    def test_injected_codec(self):
        validator = LegacyAmountValidator("amount", {"codec": LegacyDecimalCodec(PLUS_MINUS)})
        assert validator.coerce("00000009190-") == Decimal("-91.90")


class TestDateValidator:
    """Tests for DateValidator"""

    TODAY = date(2025, 6, 15)

    def _validator(self, **params):
        return DateValidator("expiration_date", {"today": lambda: self.TODAY, **params})

    def test_valid_date_coerced(self):
        validator = self._validator()
        validator.validate("2027-06-15", {})
        assert validator.coerce("2027-06-15") == date(2027, 6, 15)

    @pytest.mark.parametrize("sentinel", ["", "0000-00-00", "0001-01-01"])
    def test_sentinels_are_absent(self, sentinel):
        validator = self._validator()
        validator.validate(sentinel, {})
        assert validator.coerce(sentinel) is None

    def test_absent_but_required(self):
        with pytest.raises(ValidationError, match="required"):
            self._validator(required=True).validate("0000-00-00", {})

    def test_not_a_date_is_format_error(self):
        with pytest.raises(FormatError) as exc_info:
            self._validator().validate("2024-02-30", {})
        assert exc_info.value.kind == FormatErrorKind.INVALID_DATE

    def test_outside_plausible_window(self):
        with pytest.raises(ValidationError, match="plausible window"):
            self._validator().validate("1899-12-31", {})

    def test_expired(self):
        with pytest.raises(ValidationError, match="expired"):
            self._validator(not_past=True).validate("2025-06-14", {})

    def test_today_is_not_expired(self):
        self._validator(not_past=True).validate("2025-06-15", {})

    def test_max_years_ahead(self):
        validator = self._validator(max_years_ahead=10)
        validator.validate("2035-06-15", {})
        with pytest.raises(ValidationError, match="10 years ahead"):
            validator.validate("2035-06-16", {})

    def test_not_after_today(self):
        with pytest.raises(ValidationError, match="future"):
            self._validator(not_after_today=True).validate("2025-06-16", {})

    def test_not_before_field(self):
        record = {"open_date": date(2020, 1, 1)}
        with pytest.raises(ValidationError, match="before open_date"):
            self._validator(not_before_field="open_date").validate("2019-12-31", record)

    def test_add_years_leap_day(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 2, 28)

    def test_parse_legacy_date(self):
        assert parse_legacy_date("2014-11-20") == date(2014, 11, 20)


class TestTimestampValidator:
    """Tests for TimestampValidator"""

    def test_coerce_to_utc(self):
        value = TimestampValidator("processed_timestamp").coerce("2024-03-12 10:38:00.000000")
        assert value == datetime(2024, 3, 12, 10, 38, tzinfo=timezone.utc)

    def test_blank_required_by_default(self):
        with pytest.raises(ValidationError):
            TimestampValidator("processed_timestamp").validate("", {})

    def test_invalid_timestamp(self):
        with pytest.raises(FormatError) as exc_info:
            TimestampValidator("processed_timestamp").validate("2024-13-12 10:38:00.000000", {})
        assert exc_info.value.kind == FormatErrorKind.INVALID_DATE


class TestReferenceCodeValidator:
    """Tests for ReferenceCodeValidator"""

    class _Codes:
        def exists(self, code_set, code):
            return code_set == "transaction_type" and code in {"01", "02"}

    def test_known_code(self):
        ReferenceCodeValidator("transaction_type", {"reference_codes": self._Codes()}).validate("01", {})

    def test_unknown_code(self):
        validator = ReferenceCodeValidator("transaction_type", {"reference_codes": self._Codes()})
        with pytest.raises(ValidationError, match="Unknown transaction_type code '99'"):
            validator.validate("99", {})

    def test_requires_reference_codes(self):
        with pytest.raises(ValueError):
            ReferenceCodeValidator("transaction_type", {})


class TestCustomValidator:
    """Tests for CustomValidator"""

    def test_callable_check(self):
        def positive(value, record):
            if value <= 0:
                raise ValueError("must be positive")

        validator = CustomValidator("credit_limit", {"validator_func": positive})
        validator.validate(Decimal("1.00"), {})
        with pytest.raises(ValidationError, match="must be positive"):
            validator.validate(Decimal("0.00"), {})

    def test_named_check(self):
        @register_check("cycle_debit_within_limit")
        def cycle_debit_within_limit(value, record):
            if value > record["credit_limit"]:
                raise ValueError("cycle debit exceeds credit limit")

        validator = CustomValidator(
            "cycle_debit",
            {"check": "cycle_debit_within_limit", "depends_on": ["credit_limit"]},
        )
        record = {"credit_limit": Decimal("100.00"), "cycle_debit": Decimal("200.00")}
        with pytest.raises(ValidationError, match="exceeds credit limit"):
            validator.validate(record["cycle_debit"], record)
        assert validator.depends_on == ["credit_limit"]

    def test_unknown_named_check(self):
        with pytest.raises(ValueError, match="Unknown custom check"):
            CustomValidator("f", {"check": "no_such_check"})

    def test_requires_function(self):
        with pytest.raises(ValueError):
            CustomValidator("f", {})

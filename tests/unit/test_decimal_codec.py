"""
Unit tests for the legacy decimal codec.

Includes property-based testing with hypothesis.
"""

from decimal import ROUND_HALF_UP, Decimal

import pytest
from hypothesis import given
from hypothesis import strategies as st

from src.core.codec import BRACE, PLUS_MINUS, LegacyDecimalCodec, SignConvention
from src.core.errors import FormatError, FormatErrorKind


@pytest.mark.unit
class TestDecodeAmount:
    """Tests for decode_amount()"""

    def setup_method(self):
        self.codec = LegacyDecimalCodec()

    def test_positive_brace(self):
        assert self.codec.decode_amount("00000012345{") == Decimal("123.45")

    def test_negative_brace(self):
        assert self.codec.decode_amount("00000012345}") == Decimal("-123.45")

    def test_result_has_scale_two(self):
        value = self.codec.decode_amount("00000000100{")
        assert value == Decimal("1.00")
        assert value.as_tuple().exponent == -2

    def test_blank_is_zero(self):
        assert self.codec.decode_amount("            ") == Decimal("0.00")
        assert self.codec.decode_amount(None) == Decimal("0.00")

    def test_all_zero_digits(self):
        assert self.codec.decode_amount("00000000000{") == Decimal("0.00")

    def test_maximum_amount_is_exact(self):
        assert self.codec.decode_amount("99999999999{") == Decimal("999999999.99")

    def test_non_digit_payload(self):
        with pytest.raises(FormatError) as exc_info:
            self.codec.decode_amount("0000001A345{", field_name="amount")

        assert exc_info.value.kind == FormatErrorKind.INVALID_NUMERIC
        assert exc_info.value.field_name == "amount"

    @pytest.mark.parametrize("raw", ["{", "}", "          {"])
    def test_sign_marker_without_digits(self, raw):
        with pytest.raises(FormatError) as exc_info:
            self.codec.decode_amount(raw, field_name="amount")

        assert exc_info.value.kind == FormatErrorKind.INVALID_NUMERIC
        assert "no digits" in exc_info.value.message

    def test_unknown_marker(self):
        with pytest.raises(FormatError) as exc_info:
            self.codec.decode_amount("00000012345X")
        assert exc_info.value.kind == FormatErrorKind.INVALID_NUMERIC

    def test_unsigned_rejected_by_default(self):
        with pytest.raises(FormatError):
            self.codec.decode_amount("000000123456")

    def test_unsigned_accepted_when_configured(self):
        codec = LegacyDecimalCodec(SignConvention("lenient", frozenset("{"), frozenset("}"), allow_unsigned=True))
        assert codec.decode_amount("000000123456") == Decimal("1234.56")

    def test_plus_minus_convention(self):
        codec = LegacyDecimalCodec(PLUS_MINUS)
        assert codec.decode_amount("00000012345+") == Decimal("123.45")
        assert codec.decode_amount("00000012345-") == Decimal("-123.45")
        with pytest.raises(FormatError):
            codec.decode_amount("00000012345{")


@pytest.mark.unit
class TestRounding:
    """Rounding only shows when the payload carries more than two decimals"""

    def test_half_even_default(self):
        codec = LegacyDecimalCodec(implied_scale=3)
        assert codec.decode_amount("00000012345{") == Decimal("12.34")
        assert codec.decode_amount("00000012355{") == Decimal("12.36")

    def test_half_up(self):
        codec = LegacyDecimalCodec(rounding=ROUND_HALF_UP, implied_scale=3)
        assert codec.decode_amount("00000012345{") == Decimal("12.35")

    def test_from_settings(self):
        codec = LegacyDecimalCodec.from_settings("plus_minus", "half_up", 2)
        assert codec.sign_convention is PLUS_MINUS
        assert codec.rounding == ROUND_HALF_UP

    def test_from_settings_unknown_names(self):
        with pytest.raises(ValueError, match="sign convention"):
            LegacyDecimalCodec.from_settings("ebcdic", "half_even", 2)
        with pytest.raises(ValueError, match="rounding"):
            LegacyDecimalCodec.from_settings("brace", "ceiling", 2)

    def test_negative_scale_rejected(self):
        with pytest.raises(ValueError):
            LegacyDecimalCodec(implied_scale=-1)


@pytest.mark.unit
class TestEncodeAmount:
    """Tests for encode_amount()"""

    def test_encode_positive(self):
        assert LegacyDecimalCodec().encode_amount(Decimal("123.45")) == "00000012345{"

    def test_encode_negative(self):
        assert LegacyDecimalCodec(BRACE).encode_amount(Decimal("-91.90")) == "00000009190}"

    def test_encode_overflow(self):
        with pytest.raises(ValueError, match="does not fit"):
            LegacyDecimalCodec().encode_amount(Decimal("1000000000.00"))

    @given(st.decimals(min_value=Decimal("-999999999.99"), max_value=Decimal("999999999.99"), places=2))
    def test_property_decode_inverts_encode(self, value):
        codec = LegacyDecimalCodec()
        assert codec.decode_amount(codec.encode_amount(value)) == value

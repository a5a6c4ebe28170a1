"""
Legacy decimal codec.

Legacy amounts are display digits with an implied decimal point followed by a
one-character sign marker, e.g. ``00000012345{`` is +123.45 and
``00000012345}`` is -123.45. Values are reconstructed with ``decimal`` only;
float never enters the path.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_EVEN, ROUND_HALF_UP, Context, Decimal

from src.core.errors import FormatError, FormatErrorKind

TWO_PLACES = Decimal("0.01")
PRECISION = 31

ROUNDING_MODES = {
    "half_even": ROUND_HALF_EVEN,
    "half_up": ROUND_HALF_UP,
}


@dataclass(frozen=True)
class SignConvention:
    """
    Trailing sign markers accepted by the codec.

    Attributes:
        positive: Characters marking a positive value
        negative: Characters marking a negative value
        allow_unsigned: Accept a value whose last character is a digit
    """

    name: str
    positive: frozenset[str]
    negative: frozenset[str]
    allow_unsigned: bool = False

    @property
    def positive_marker(self) -> str:
        return min(self.positive)

    @property
    def negative_marker(self) -> str:
        return min(self.negative)


BRACE = SignConvention("brace", frozenset("{"), frozenset("}"))
PLUS_MINUS = SignConvention("plus_minus", frozenset("+"), frozenset("-"))

SIGN_CONVENTIONS = {
    BRACE.name: BRACE,
    PLUS_MINUS.name: PLUS_MINUS,
}


class LegacyDecimalCodec:
    """
    Decode and encode legacy signed display amounts.

    Args:
        sign_convention: Marker set, BRACE by default
        rounding: ``decimal`` rounding constant applied when quantizing to scale 2
        implied_scale: Digits after the implied decimal point in the payload
    """

    def __init__(
        self,
        sign_convention: SignConvention = BRACE,
        rounding: str = ROUND_HALF_EVEN,
        implied_scale: int = 2,
    ):
        if implied_scale < 0:
            raise ValueError("implied_scale must be non-negative")
        if rounding not in ROUNDING_MODES.values():
            raise ValueError(f"Unsupported rounding mode: {rounding}")
        self.sign_convention = sign_convention
        self.rounding = rounding
        self.implied_scale = implied_scale
        self.context = Context(prec=PRECISION, rounding=rounding)

    @classmethod
    def from_settings(cls, sign_convention: str, rounding: str, implied_scale: int) -> "LegacyDecimalCodec":
        """Build a codec from configuration names ("brace", "half_even")."""
        try:
            convention = SIGN_CONVENTIONS[sign_convention]
        except KeyError:
            raise ValueError(f"Unknown sign convention: {sign_convention}")
        try:
            mode = ROUNDING_MODES[rounding]
        except KeyError:
            raise ValueError(f"Unknown rounding mode: {rounding}")
        return cls(convention, mode, implied_scale)

    def decode_amount(self, raw: str | None, field_name: str | None = None) -> Decimal:
        """
        Reconstruct an exact scale-2 Decimal from legacy text.

        Args:
            raw: Field text, e.g. "00000012345{"
            field_name: Reported in the FormatError

        Returns:
            Decimal quantized to two places

        Raises:
            FormatError: INVALID_NUMERIC for an unknown sign marker or non-digit payload
        """
        text = (raw or "").strip()
        if not text:
            return Decimal("0.00")

        marker = text[-1]
        if marker in self.sign_convention.positive:
            negative, payload = False, text[:-1]
        elif marker in self.sign_convention.negative:
            negative, payload = True, text[:-1]
        elif marker.isdigit() and self.sign_convention.allow_unsigned:
            negative, payload = False, text
        else:
            raise FormatError(
                FormatErrorKind.INVALID_NUMERIC,
                f"'{text}' has no valid {self.sign_convention.name} sign marker",
                field_name,
            )

        if not (payload.isascii() and payload.isdigit()):
            raise FormatError(
                FormatErrorKind.INVALID_NUMERIC,
                f"'{text}' has no digits" if not payload else f"'{text}' has a non-digit payload",
                field_name,
            )

        digits = payload.lstrip("0") or "0"
        unscaled = Decimal(int(digits))
        value = self.context.divide(unscaled, Decimal(10) ** self.implied_scale)
        if negative:
            value = self.context.minus(value)
        return value.quantize(TWO_PLACES, rounding=self.rounding, context=self.context)

    def encode_amount(self, value: Decimal, width: int = 12) -> str:
        """
        Produce legacy text for a value: zero-padded digits plus sign marker.

        Raises:
            ValueError: If the value does not fit in ``width - 1`` digits
        """
        scaled = (Decimal(value) * (Decimal(10) ** self.implied_scale)).to_integral_value(
            rounding=self.rounding, context=self.context
        )
        marker = (
            self.sign_convention.negative_marker if scaled < 0
            else self.sign_convention.positive_marker
        )
        digits = str(abs(int(scaled)))
        if len(digits) > width - 1:
            raise ValueError(f"{value} does not fit in a {width}-byte legacy amount")
        return digits.zfill(width - 1) + marker

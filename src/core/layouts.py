"""
Fixed-width record layouts for the legacy card, account, transaction and
card cross-reference files.

Positions are 1-indexed and inclusive, as they appear in the copybooks.
"""

from dataclasses import dataclass

from src.core.models import RecordType


@dataclass(frozen=True)
class FieldSpec:
    """One field of a fixed-width layout."""

    name: str
    start: int
    width: int

    @property
    def end(self) -> int:
        return self.start + self.width - 1

    @property
    def is_filler(self) -> bool:
        return self.name.startswith("filler")


class RecordLayout:
    """
    Ordered, gap-free field layout for one record type.

    Raises ValueError at construction when fields overlap, leave a gap,
    or do not cover the declared record length.
    """

    def __init__(self, record_type: RecordType, record_length: int, fields: list[tuple[str, int, int]]):
        self.record_type = record_type
        self.record_length = record_length
        self.fields = [FieldSpec(name, start, width) for name, start, width in fields]
        self._verify()

    def _verify(self) -> None:
        expected_start = 1
        seen: set[str] = set()
        for spec in self.fields:
            if spec.width <= 0:
                raise ValueError(f"{self.record_type.value}.{spec.name}: width must be positive")
            if spec.start != expected_start:
                raise ValueError(
                    f"{self.record_type.value}.{spec.name}: starts at {spec.start}, "
                    f"expected {expected_start} (overlap or gap)"
                )
            if spec.name in seen:
                raise ValueError(f"{self.record_type.value}: duplicate field {spec.name}")
            seen.add(spec.name)
            expected_start = spec.end + 1

        if expected_start - 1 != self.record_length:
            raise ValueError(
                f"{self.record_type.value}: fields cover {expected_start - 1} bytes, "
                f"record length is {self.record_length}"
            )

    @property
    def field_names(self) -> list[str]:
        return [spec.name for spec in self.fields if not spec.is_filler]

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(name)

    def __repr__(self) -> str:
        return f"RecordLayout({self.record_type.value}, length={self.record_length}, fields={len(self.fields)})"


CARD_LAYOUT = RecordLayout(
    RecordType.CARD,
    150,
    [
        ("card_number", 1, 16),
        ("account_id", 17, 11),
        ("cvv", 28, 3),
        ("embossed_name", 31, 50),
        ("expiration_date", 81, 10),
        ("active_status", 91, 1),
        ("filler", 92, 59),
    ],
)

ACCOUNT_LAYOUT = RecordLayout(
    RecordType.ACCOUNT,
    300,
    [
        ("account_id", 1, 11),
        ("active_status", 12, 1),
        ("current_balance", 13, 12),
        ("credit_limit", 25, 12),
        ("cash_credit_limit", 37, 12),
        ("open_date", 49, 10),
        ("expiration_date", 59, 10),
        ("reissue_date", 69, 10),
        ("cycle_credit", 79, 12),
        ("cycle_debit", 91, 12),
        ("address_zip", 103, 10),
        ("group_id", 113, 10),
        ("filler", 123, 178),
    ],
)

TRANSACTION_LAYOUT = RecordLayout(
    RecordType.TRANSACTION,
    350,
    [
        ("transaction_id", 1, 16),
        ("transaction_type", 17, 2),
        ("transaction_category", 19, 4),
        ("transaction_source", 23, 10),
        ("description", 33, 100),
        ("amount", 133, 12),
        ("merchant_id", 145, 9),
        ("merchant_name", 154, 50),
        ("merchant_city", 204, 50),
        ("merchant_zip", 254, 10),
        ("card_number", 264, 16),
        ("original_timestamp", 280, 26),
        ("processed_timestamp", 306, 26),
        ("filler", 332, 19),
    ],
)

XREF_LAYOUT = RecordLayout(
    RecordType.XREF,
    50,
    [
        ("card_number", 1, 16),
        ("customer_id", 17, 9),
        ("account_id", 26, 11),
        ("filler", 37, 14),
    ],
)

LAYOUTS: dict[RecordType, RecordLayout] = {
    RecordType.CARD: CARD_LAYOUT,
    RecordType.ACCOUNT: ACCOUNT_LAYOUT,
    RecordType.TRANSACTION: TRANSACTION_LAYOUT,
    RecordType.XREF: XREF_LAYOUT,
}


def get_layout(record_type: RecordType | str) -> RecordLayout:
    """Look up the layout for a record type (enum or its string value)."""
    return LAYOUTS[RecordType(record_type)]

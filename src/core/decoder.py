"""
Fixed-width decoder: slices a legacy line into named raw fields.

No type coercion happens here; amounts, dates and flags stay strings until
the rule engine validates them.
"""

from typing import Any

from src.core.errors import FormatError, FormatErrorKind
from src.core.layouts import RecordLayout, get_layout
from src.core.models import RawRecord, RecordType


def decode(line: str, record_type: RecordType | str, line_number: int = 1) -> RawRecord:
    """
    Decode one fixed-width line.

    Args:
        line: Raw line, with or without its trailing newline
        record_type: Layout to decode with
        line_number: 1-based line number, for audit

    Returns:
        RawRecord with every non-filler field, stripped of surrounding spaces

    Raises:
        FormatError: LENGTH_MISMATCH when the line length differs from the layout
    """
    layout = get_layout(record_type)
    return decode_with_layout(line, layout, line_number)


def decode_with_layout(line: str, layout: RecordLayout, line_number: int = 1) -> RawRecord:
    text = line.rstrip("\r\n")
    if len(text) != layout.record_length:
        raise FormatError(
            FormatErrorKind.LENGTH_MISMATCH,
            f"line {line_number} has {len(text)} characters, "
            f"{layout.record_type.value} layout requires {layout.record_length}",
        )

    fields: dict[str, str] = {}
    for spec in layout.fields:
        if spec.is_filler:
            continue
        fields[spec.name] = text[spec.start - 1:spec.end].strip(" ")

    return RawRecord(record_type=layout.record_type, line_number=line_number, fields=fields)


def encode(values: dict[str, Any], record_type: RecordType | str) -> str:
    """
    Build a fixed-width line from field values (left-justified, space padded).

    Used by fixtures and the dry-run seeding path. Values longer than their
    field raise ValueError.
    """
    layout = get_layout(record_type)
    parts = []
    for spec in layout.fields:
        value = "" if spec.is_filler else str(values.get(spec.name, "") or "")
        if len(value) > spec.width:
            raise ValueError(f"{spec.name}: '{value}' exceeds width {spec.width}")
        parts.append(value.ljust(spec.width))
    return "".join(parts)

"""
RawRecord model representing one decoded fixed-width line (ephemeral).
"""

from enum import Enum

from pydantic import BaseModel, Field


class RecordType(str, Enum):
    """Legacy record families migrated by the pipeline."""

    CARD = "card"
    ACCOUNT = "account"
    TRANSACTION = "transaction"
    XREF = "xref"


class RawRecord(BaseModel):
    """
    Ordered mapping of field name to trimmed raw string.

    Note: RawRecord is produced by the decoder and consumed immediately by the
    rule engine. No type coercion has happened yet.

    Attributes:
        record_type: Which layout the line was decoded with
        line_number: 1-based line number in the source file
        fields: Field name -> trimmed raw text, in layout order
    """

    record_type: RecordType
    line_number: int = Field(..., ge=1)
    fields: dict[str, str]

    @property
    def record_ref(self) -> str:
        """Stable reference used in audit messages ("card:12")."""
        return f"{self.record_type.value}:{self.line_number}"

    def get(self, field_name: str, default: str | None = None) -> str | None:
        return self.fields.get(field_name, default)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "record_type": "card",
                "line_number": 1,
                "fields": {
                    "card_number": "4532015112830366",
                    "account_id": "00000000001",
                    "cvv": "123",
                    "embossed_name": "JOHN DOE",
                    "expiration_date": "2027-05-31",
                    "active_status": "Y",
                }
            }
        }

"""
TransactionRecord model representing a validated transaction from the 350-byte file.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class TransactionRecord(BaseModel):
    """
    Validated transaction entity.

    Attributes:
        transaction_id: 16 characters (PK together with processed_timestamp)
        transaction_type: 2-digit code present in transaction_types
        transaction_category: 4-digit code present in transaction_categories
        transaction_source: Optional channel code
        description: Optional free text
        amount: Exact scale-2 decimal, |amount| <= 999,999,999.99
        merchant_id: Optional 9-digit merchant number
        merchant_name: Required merchant name
        merchant_city: Optional
        merchant_zip: Optional
        card_number: Card the transaction was posted to
        original_timestamp: When the transaction happened
        processed_timestamp: When it was posted (partition key)
    """

    transaction_id: str = Field(..., min_length=16, max_length=16)
    transaction_type: str = Field(..., pattern=r"^[0-9]{2}$")
    transaction_category: str = Field(..., pattern=r"^[0-9]{4}$")
    transaction_source: str | None = Field(None, max_length=10)
    description: str | None = Field(None, max_length=100)
    amount: Decimal = Field(..., max_digits=11, decimal_places=2)
    merchant_id: str | None = Field(None, pattern=r"^[0-9]{9}$")
    merchant_name: str = Field(..., min_length=1, max_length=50)
    merchant_city: str | None = Field(None, max_length=50)
    merchant_zip: str | None = Field(None, max_length=10)
    card_number: str = Field(..., pattern=r"^[0-9]{16}$")
    original_timestamp: datetime
    processed_timestamp: datetime

    @property
    def primary_key(self) -> str:
        return self.transaction_id

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "transaction_id": "0000000000683580",
                "transaction_type": "01",
                "transaction_category": "0001",
                "transaction_source": "POS TERM",
                "description": "Purchase at Abshire-Lowe",
                "amount": "-91.90",
                "merchant_id": "800000000",
                "merchant_name": "Abshire-Lowe",
                "merchant_city": "North Enoshaven",
                "merchant_zip": "72112",
                "card_number": "4859452612877065",
                "original_timestamp": "2024-03-11T10:37:00",
                "processed_timestamp": "2024-03-12T10:37:00"
            }
        }

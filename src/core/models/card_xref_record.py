"""
CardXrefRecord model representing one line of the 50-byte card cross-reference file.
"""

from pydantic import BaseModel, Field


class CardXrefRecord(BaseModel):
    """
    Validated card -> customer -> account link.

    Attributes:
        card_number: 16 digits, Luhn-valid (PK, must exist in cards)
        customer_id: Owning customer, 9 digits
        account_id: Account the card belongs to, 11 digits
    """

    card_number: str = Field(..., pattern=r"^[0-9]{16}$")
    customer_id: str = Field(..., pattern=r"^[0-9]{9}$")
    account_id: str = Field(..., pattern=r"^[0-9]{11}$")

    @property
    def primary_key(self) -> str:
        return self.card_number

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "card_number": "4532015112830366",
                "customer_id": "000000001",
                "account_id": "00000000001"
            }
        }

"""
CardRecord model representing a validated card from the 150-byte card file.
"""

from datetime import date

from pydantic import BaseModel, Field


class CardRecord(BaseModel):
    """
    Validated card entity.

    Attributes:
        card_number: 16 digits, Luhn-valid (PK)
        account_id: Owning account, 11 digits
        cvv: 3-digit card verification value
        embossed_name: Name printed on the card
        expiration_date: Not in the past, at most 10 years ahead
        active_status: True when the legacy flag was 'Y'
    """

    card_number: str = Field(..., pattern=r"^[0-9]{16}$")
    account_id: str = Field(..., pattern=r"^[0-9]{11}$")
    cvv: str = Field(..., pattern=r"^[0-9]{3}$")
    embossed_name: str = Field(..., min_length=1, max_length=50)
    expiration_date: date
    active_status: bool

    @property
    def primary_key(self) -> str:
        return self.card_number

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "card_number": "4532015112830366",
                "account_id": "00000000001",
                "cvv": "123",
                "embossed_name": "JOHN DOE",
                "expiration_date": "2027-05-31",
                "active_status": True
            }
        }

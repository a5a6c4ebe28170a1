"""
AccountRecord model representing a validated account from the 300-byte account file.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class AccountRecord(BaseModel):
    """
    Validated account entity.

    Monetary fields are exact scale-2 decimals reconstructed from the legacy
    signed display encoding; they are never routed through float.

    Attributes:
        account_id: 11 digits (PK)
        active_status: True when the legacy flag was 'Y'
        current_balance: May be negative
        credit_limit: Non-negative
        cash_credit_limit: Non-negative
        cycle_credit: Non-negative
        cycle_debit: Non-negative
        open_date: Not after today
        expiration_date: Optional, not before open_date
        reissue_date: Optional
        address_zip: Optional mailing ZIP
        group_id: Optional disclosure group
    """

    account_id: str = Field(..., pattern=r"^[0-9]{11}$")
    active_status: bool
    current_balance: Decimal = Field(..., decimal_places=2)
    credit_limit: Decimal = Field(..., ge=0, decimal_places=2)
    cash_credit_limit: Decimal = Field(..., ge=0, decimal_places=2)
    cycle_credit: Decimal = Field(..., ge=0, decimal_places=2)
    cycle_debit: Decimal = Field(..., ge=0, decimal_places=2)
    open_date: date
    expiration_date: date | None = None
    reissue_date: date | None = None
    address_zip: str | None = Field(None, max_length=10)
    group_id: str | None = Field(None, max_length=10)

    @property
    def primary_key(self) -> str:
        return self.account_id

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "account_id": "00000000001",
                "active_status": True,
                "current_balance": "1940.00",
                "credit_limit": "2020.00",
                "cash_credit_limit": "1020.00",
                "cycle_credit": "0.00",
                "cycle_debit": "0.00",
                "open_date": "2014-11-20",
                "expiration_date": "2025-05-20",
                "reissue_date": "2025-05-20",
                "address_zip": "A000000000",
                "group_id": "DEFAULT"
            }
        }

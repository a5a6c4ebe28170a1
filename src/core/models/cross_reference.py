"""
CrossReferenceResult model representing the outcome of resolving a card (ephemeral).
"""

from pydantic import BaseModel


class CrossReferenceResult(BaseModel):
    """
    Outcome of resolving a card number or account id against existing data.

    Note: never persisted. Cached per run by the resolver.

    Attributes:
        valid: Whether the reference resolved to active entities
        account_id: Owning account (valid results only)
        customer_id: Owning customer, may be None even when valid
        reason: Why resolution failed (invalid results only)
    """

    valid: bool
    account_id: str | None = None
    customer_id: str | None = None
    reason: str | None = None

    @classmethod
    def resolved(cls, account_id: str, customer_id: str | None = None) -> "CrossReferenceResult":
        return cls(valid=True, account_id=account_id, customer_id=customer_id)

    @classmethod
    def rejected(cls, reason: str) -> "CrossReferenceResult":
        return cls(valid=False, reason=reason)

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "valid": True,
                "account_id": "00000000001",
                "customer_id": "000000001",
                "reason": None
            }
        }

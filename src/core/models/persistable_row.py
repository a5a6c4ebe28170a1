"""
PersistableRow and LoadReport models exchanged with the bulk loader.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PersistableRow(BaseModel):
    """
    A resolved record ready for insertion.

    Attributes:
        table: Target table name
        record_ref: Source record reference for audit
        values: Column -> value, in insert order
        partition_timestamp: Partition key instant, None for unpartitioned tables
    """

    table: str
    record_ref: str
    values: dict[str, Any]
    partition_timestamp: datetime | None = None

    @property
    def columns(self) -> list[str]:
        return list(self.values.keys())

    class Config:
        frozen = True
        json_schema_extra = {
            "example": {
                "table": "transactions",
                "record_ref": "transaction:7",
                "values": {"transaction_id": "0000000000683580", "amount": "-91.90"},
                "partition_timestamp": "2024-03-12T10:37:00"
            }
        }


class LoadReport(BaseModel):
    """
    Outcome of committing one chunk.

    Attributes:
        rows_inserted: Rows committed
        attempts: Transaction attempts used (1 when no retry was needed)
        partitions_ensured: Partition names checked or created for the chunk
    """

    rows_inserted: int = Field(0, ge=0)
    attempts: int = Field(0, ge=0)
    partitions_ensured: list[str] = Field(default_factory=list)

    class Config:
        json_schema_extra = {
            "example": {
                "rows_inserted": 1000,
                "attempts": 1,
                "partitions_ensured": ["transactions_2024_03"]
            }
        }

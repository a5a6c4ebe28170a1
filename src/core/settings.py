"""
Pipeline settings loaded from YAML.

Database connection settings are not part of this file; they come from the
DB_* environment variables read by DatabaseConnectionPool.
"""

from datetime import date
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator

from src.core.codec import LegacyDecimalCodec


class RetrySettings(BaseModel):
    """
    Bounded exponential backoff for transient commit failures.

    Attributes:
        max_attempts: Total attempts including the first one
        base_delay: Seconds before the first retry
        multiplier: Factor applied to the delay after each retry
        max_delay: Upper bound on a single delay, in seconds
    """

    max_attempts: int = Field(3, ge=1)
    base_delay: float = Field(0.1, ge=0)
    multiplier: float = Field(2.0, ge=1)
    max_delay: float = Field(2.0, ge=0)


class CodecSettings(BaseModel):
    sign_convention: Literal["brace", "plus_minus"] = "brace"
    rounding: Literal["half_even", "half_up"] = "half_even"
    implied_scale: int = Field(2, ge=0, le=9)

    def build(self) -> LegacyDecimalCodec:
        return LegacyDecimalCodec.from_settings(self.sign_convention, self.rounding, self.implied_scale)


class DateWindowSettings(BaseModel):
    min_date: date = date(1900, 1, 1)
    max_date: date = date(2100, 12, 31)

    @model_validator(mode="after")
    def check_order(self):
        if self.min_date > self.max_date:
            raise ValueError("date_window.min_date must not be after max_date")
        return self


class MigrationSettings(BaseModel):
    """
    Tunables for one migration run.

    Attributes:
        chunk_size: Records per atomic chunk
        max_workers: Chunks processed concurrently
        max_in_flight: Chunks read ahead of the workers (defaults to 2 x max_workers)
        retry: Backoff for transient commit failures
        transaction_timeout_seconds: Statement timeout applied inside each chunk transaction
        codec: Legacy amount sign convention and rounding
        date_window: Plausible date range for every legacy date
        card_max_years_ahead: Latest allowed card expiration, in years from today
        quarantine_enabled: Write skipped lines to the quarantine table
    """

    chunk_size: int = Field(1000, ge=1)
    max_workers: int = Field(4, ge=1)
    max_in_flight: int | None = Field(None, ge=1)
    retry: RetrySettings = Field(default_factory=RetrySettings)
    transaction_timeout_seconds: float = Field(30.0, gt=0)
    codec: CodecSettings = Field(default_factory=CodecSettings)
    date_window: DateWindowSettings = Field(default_factory=DateWindowSettings)
    card_max_years_ahead: int = Field(10, ge=0)
    quarantine_enabled: bool = True

    @property
    def in_flight_limit(self) -> int:
        return self.max_in_flight or self.max_workers * 2

    @classmethod
    def from_yaml(cls, path: str | Path) -> "MigrationSettings":
        """
        Load settings from a YAML file with an optional top-level 'migration' key.

        Raises:
            FileNotFoundError: If the file does not exist
            pydantic.ValidationError: If a value is out of range
        """
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Migration configuration file not found: {path}")

        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        return cls.model_validate(config.get("migration", config))

    class Config:
        json_schema_extra = {
            "example": {
                "chunk_size": 1000,
                "max_workers": 4,
                "retry": {"max_attempts": 3, "base_delay": 0.1, "multiplier": 2.0, "max_delay": 2.0},
                "transaction_timeout_seconds": 30,
                "codec": {"sign_convention": "brace", "rounding": "half_even", "implied_scale": 2},
                "date_window": {"min_date": "1900-01-01", "max_date": "2100-12-31"},
                "card_max_years_ahead": 10
            }
        }

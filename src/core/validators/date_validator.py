"""
DateValidator and TimestampValidator - legacy date and instant sanity checks.
"""

from datetime import date, datetime, timezone
from typing import Any, Callable

from src.core.errors import FormatError, FormatErrorKind

from .base_validator import BaseValidator

DATE_FORMAT = "%Y-%m-%d"
TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S.%f"

# All-zero and low-value dates written by the legacy system for "no date"
ABSENT_DATE_SENTINELS = frozenset({"0000-00-00", "0001-01-01", "00000000"})

DEFAULT_MIN_DATE = date(1900, 1, 1)
DEFAULT_MAX_DATE = date(2100, 12, 31)


def _as_date(value: Any) -> date | None:
    if value is None or isinstance(value, date):
        return value
    return datetime.strptime(str(value), DATE_FORMAT).date()


def add_years(base: date, years: int) -> date:
    """Shift a date by whole years, clamping Feb 29 to Feb 28."""
    try:
        return base.replace(year=base.year + years)
    except ValueError:
        return base.replace(year=base.year + years, day=28)


def parse_legacy_date(raw: str | None, field_name: str | None = None) -> date | None:
    """
    Parse a YYYY-MM-DD legacy date.

    Returns:
        The date, or None for blank and sentinel values

    Raises:
        FormatError: INVALID_DATE when the text is not a calendar date
    """
    text = (raw or "").strip()
    if not text or text in ABSENT_DATE_SENTINELS:
        return None
    try:
        return datetime.strptime(text, DATE_FORMAT).date()
    except ValueError:
        raise FormatError(FormatErrorKind.INVALID_DATE, f"'{text}' is not a valid YYYY-MM-DD date", field_name)


def parse_legacy_timestamp(raw: str | None, field_name: str | None = None) -> datetime | None:
    """
    Parse a ``YYYY-MM-DD HH:MM:SS.ffffff`` legacy timestamp as a UTC instant.

    Raises:
        FormatError: INVALID_DATE when the text is not a valid timestamp
    """
    text = (raw or "").strip()
    if not text:
        return None
    for fmt in (TIMESTAMP_FORMAT, "%Y-%m-%d %H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).replace(tzinfo=timezone.utc)
        except ValueError:
            continue
    raise FormatError(
        FormatErrorKind.INVALID_DATE,
        f"'{text}' is not a valid YYYY-MM-DD HH:MM:SS.ffffff timestamp",
        field_name,
    )


class DateValidator(BaseValidator):
    """
    Validates a legacy date and coerces it to ``datetime.date``.

    Blank and all-zero sentinel dates are treated as absent, not invalid.

    Parameters:
    - required: Reject absent dates (default False)
    - min_date / max_date: Plausible window (default 1900-01-01 .. 2100-12-31)
    - not_past: Reject dates before today ("expired")
    - not_after_today: Reject dates after today
    - max_years_ahead: Reject dates more than N years after today
    - not_before_field: Reject dates before another (already coerced) date field
    - today: Callable returning today's date, for deterministic runs
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.required = bool(self.parameters.get("required", False))
        self.min_date = _as_date(self.parameters.get("min_date")) or DEFAULT_MIN_DATE
        self.max_date = _as_date(self.parameters.get("max_date")) or DEFAULT_MAX_DATE
        self.not_past = bool(self.parameters.get("not_past", False))
        self.not_after_today = bool(self.parameters.get("not_after_today", False))
        self.max_years_ahead = self.parameters.get("max_years_ahead")
        self.not_before_field = self.parameters.get("not_before_field")
        self.today: Callable[[], date] = self.parameters.get("today") or date.today

        if self.min_date > self.max_date:
            raise ValueError("min_date must not be after max_date")

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        """
        Raises:
            FormatError: If the text is not a calendar date
            ValidationError: If the date is absent but required, or breaks a window rule
        """
        parsed = value if isinstance(value, date) else parse_legacy_date(value, self.field_name)

        if parsed is None:
            if self.required:
                raise self._fail("Date is required but absent")
            return

        if parsed < self.min_date or parsed > self.max_date:
            raise self._fail(f"Date {parsed} is outside the plausible window {self.min_date}..{self.max_date}")

        today = self.today()
        if self.not_past and parsed < today:
            raise self._fail(f"Date {parsed} is expired")

        if self.not_after_today and parsed > today:
            raise self._fail(f"Date {parsed} is in the future")

        if self.max_years_ahead is not None and parsed > add_years(today, int(self.max_years_ahead)):
            raise self._fail(f"Date {parsed} is more than {self.max_years_ahead} years ahead")

        if self.not_before_field:
            other = record.get(self.not_before_field)
            if isinstance(other, date) and parsed < other:
                raise self._fail(f"Date {parsed} is before {self.not_before_field} {other}")

    def coerce(self, value: Any) -> date | None:
        return value if isinstance(value, date) else parse_legacy_date(value, self.field_name)

    @property
    def rule_type(self) -> str:
        return "date"


class TimestampValidator(BaseValidator):
    """
    Validates a legacy timestamp and coerces it to an aware UTC datetime.

    Parameters:
    - required: Reject blank timestamps (default True)
    - min_date / max_date: Plausible window on the date part
    """

    def __init__(self, field_name: str, parameters: dict[str, Any] | None = None):
        super().__init__(field_name, parameters)
        self.required = bool(self.parameters.get("required", True))
        self.min_date = _as_date(self.parameters.get("min_date")) or DEFAULT_MIN_DATE
        self.max_date = _as_date(self.parameters.get("max_date")) or DEFAULT_MAX_DATE

    def validate(self, value: Any, record: dict[str, Any]) -> None:
        parsed = value if isinstance(value, datetime) else parse_legacy_timestamp(value, self.field_name)

        if parsed is None:
            if self.required:
                raise self._fail("Timestamp is required but blank")
            return

        if not self.min_date <= parsed.date() <= self.max_date:
            raise self._fail(f"Timestamp {parsed.isoformat()} is outside the plausible window")

    def coerce(self, value: Any) -> datetime | None:
        return value if isinstance(value, datetime) else parse_legacy_timestamp(value, self.field_name)

    @property
    def rule_type(self) -> str:
        return "timestamp"

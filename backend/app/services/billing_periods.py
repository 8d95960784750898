"""Service helpers to resolve monthly billing periods."""

from __future__ import annotations

import re
from calendar import monthrange
from dataclasses import dataclass
from datetime import date, timedelta

from .errors import BillingValidationError


@dataclass(frozen=True)
class BillingPeriod:
    """Inclusive date range billed by one invoice."""

    key: str
    starts_on: date
    ends_on: date

    def contains(self, value: date) -> bool:
        return self.starts_on <= value <= self.ends_on

    def due_date(self, due_days: int) -> date:
        return self.ends_on + timedelta(days=due_days)


class BillingPeriodService:
    """Utility helpers to normalize billing periods."""

    VALID_PERIOD_PATTERN = re.compile(r"^\d{4}-\d{2}$")

    @staticmethod
    def for_month(year: int, month: int) -> BillingPeriod:
        if month < 1 or month > 12:
            raise BillingValidationError("month must be between 1 and 12")
        if year < 1:
            raise BillingValidationError("year must be positive")
        starts_on = date(year, month, 1)
        _, last_day = monthrange(year, month)
        return BillingPeriod(
            key=f"{year:04d}-{month:02d}",
            starts_on=starts_on,
            ends_on=date(year, month, last_day),
        )

    @classmethod
    def from_key(cls, period_key: str) -> BillingPeriod:
        """Parse a ``YYYY-MM`` key into its first and last day."""

        if not period_key:
            raise BillingValidationError("period_key is required")
        sanitized = period_key.strip()
        if not cls.VALID_PERIOD_PATTERN.match(sanitized):
            raise BillingValidationError("Invalid period key format, expected YYYY-MM")
        year_str, month_str = sanitized.split("-", maxsplit=1)
        return cls.for_month(int(year_str), int(month_str))

    @staticmethod
    def custom(period_start: date, period_end: date) -> BillingPeriod:
        if period_end < period_start:
            raise BillingValidationError("period_end cannot be before period_start")
        return BillingPeriod(
            key=f"{period_start.isoformat()}..{period_end.isoformat()}",
            starts_on=period_start,
            ends_on=period_end,
        )

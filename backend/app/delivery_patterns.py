"""Delivery-day patterns attached to customer subscriptions."""

from __future__ import annotations

import enum
from datetime import date
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

DEFAULT_ALTERNATE_ANCHOR = date(2024, 1, 1)


class DeliveryPatternError(ValueError):
    """Raised when a stored or submitted delivery pattern is malformed."""


class Weekday(str, enum.Enum):
    """Weekday names in ``date.weekday()`` order."""

    MONDAY = "monday"
    TUESDAY = "tuesday"
    WEDNESDAY = "wednesday"
    THURSDAY = "thursday"
    FRIDAY = "friday"
    SATURDAY = "saturday"
    SUNDAY = "sunday"

    @classmethod
    def of(cls, value: date) -> "Weekday":
        return list(cls)[value.weekday()]


class _PatternBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    def includes(self, on: date) -> bool:  # pragma: no cover - overridden
        raise NotImplementedError


class DailyPattern(_PatternBase):
    """Deliver every day."""

    kind: Literal["daily"] = "daily"

    def includes(self, on: date) -> bool:
        return True


class AlternatePattern(_PatternBase):
    """Deliver every second day counted from ``anchor_date``."""

    kind: Literal["alternate"] = "alternate"
    anchor_date: date = DEFAULT_ALTERNATE_ANCHOR

    def includes(self, on: date) -> bool:
        return (on - self.anchor_date).days % 2 == 0


class WeeklyPattern(_PatternBase):
    """Deliver on the listed weekdays, Sunday when none are given."""

    kind: Literal["weekly"] = "weekly"
    days: tuple[Weekday, ...] = (Weekday.SUNDAY,)

    @field_validator("days")
    @classmethod
    def _default_to_sunday(cls, value: tuple[Weekday, ...]) -> tuple[Weekday, ...]:
        return value or (Weekday.SUNDAY,)

    def includes(self, on: date) -> bool:
        return Weekday.of(on) in self.days


class CustomPattern(_PatternBase):
    """Deliver on an explicit, non-empty set of weekdays."""

    kind: Literal["custom"] = "custom"
    days: tuple[Weekday, ...] = Field(..., min_length=1)

    def includes(self, on: date) -> bool:
        return Weekday.of(on) in self.days


DeliveryPattern = Annotated[
    Union[DailyPattern, AlternatePattern, WeeklyPattern, CustomPattern],
    Field(discriminator="kind"),
]

_PATTERN_ADAPTER: TypeAdapter = TypeAdapter(DeliveryPattern)
_PATTERN_TYPES = (DailyPattern, AlternatePattern, WeeklyPattern, CustomPattern)


def parse_delivery_pattern(raw: Any) -> DeliveryPattern:
    """Validate ``raw`` (a pattern, mapping or JSON string) into a pattern."""

    if isinstance(raw, _PATTERN_TYPES):
        return raw
    try:
        if isinstance(raw, (str, bytes)):
            return _PATTERN_ADAPTER.validate_json(raw)
        return _PATTERN_ADAPTER.validate_python(raw)
    except ValidationError as exc:
        raise DeliveryPatternError(f"Invalid delivery pattern: {exc}") from exc


__all__ = [
    "AlternatePattern",
    "CustomPattern",
    "DEFAULT_ALTERNATE_ANCHOR",
    "DailyPattern",
    "DeliveryPattern",
    "DeliveryPatternError",
    "Weekday",
    "WeeklyPattern",
    "parse_delivery_pattern",
]

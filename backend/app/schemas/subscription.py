from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from ..delivery_patterns import DailyPattern, DeliveryPattern
from .common import PaginatedResponse


def _pattern_as_mapping(value: Any) -> Any:
    # ORM rows carry pattern model instances; validate them like submitted JSON.
    if isinstance(value, BaseModel):
        return value.model_dump()
    return value


class SubscriptionBase(BaseModel):
    """Shared attributes for subscription operations."""

    customer_id: str = Field(..., description="Customer receiving the product")
    product_id: str = Field(..., description="Subscribed product")
    quantity: Decimal = Field(..., gt=0, description="Quantity per delivery")
    custom_price: Optional[Decimal] = Field(
        default=None, ge=0, description="Price overriding the product's base price"
    )
    delivery_pattern: DeliveryPattern = Field(
        default_factory=DailyPattern, description="Days on which the product is delivered"
    )

    @field_validator("delivery_pattern", mode="before")
    @classmethod
    def _coerce_pattern(cls, value: Any) -> Any:
        return _pattern_as_mapping(value)


class SubscriptionCreate(SubscriptionBase):
    is_active: bool = True


class SubscriptionUpdate(BaseModel):
    quantity: Optional[Decimal] = Field(default=None, gt=0)
    custom_price: Optional[Decimal] = Field(default=None, ge=0)
    delivery_pattern: Optional[DeliveryPattern] = None
    is_active: Optional[bool] = None

    @field_validator("delivery_pattern", mode="before")
    @classmethod
    def _coerce_pattern(cls, value: Any) -> Any:
        return _pattern_as_mapping(value)


class SubscriptionRead(SubscriptionBase):
    id: str
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SubscriptionListResponse(PaginatedResponse[SubscriptionRead]):
    """Paginated subscription listing."""

    pass


class VacationCreate(BaseModel):
    customer_id: str
    start_date: date
    end_date: date
    reason: Optional[str] = None

    @model_validator(mode="after")
    def _validate_range(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date cannot be before start_date")
        return self


class VacationRead(BaseModel):
    id: str
    customer_id: str
    start_date: date
    end_date: date
    reason: Optional[str] = None
    is_active: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class VacationListResponse(PaginatedResponse[VacationRead]):
    """Paginated vacation window listing."""

    pass

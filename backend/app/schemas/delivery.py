from __future__ import annotations

import datetime as dt
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.delivery import DeliveryStatus
from .common import PaginatedResponse


class ScheduleRequest(BaseModel):
    """Schedule deliveries for one date."""

    target_date: date
    mark_delivered: bool = Field(
        default=False, description="Create the deliveries as already delivered"
    )


class ScheduleRangeRequest(BaseModel):
    start_date: date
    days: int = Field(..., ge=1, le=31)
    mark_delivered: bool = False


class AutoDeliverRequest(BaseModel):
    target_date: date


class BatchErrorRead(BaseModel):
    customer_id: Optional[str] = None
    message: str

    model_config = ConfigDict(from_attributes=True)


class ScheduleResultRead(BaseModel):
    date: dt.date
    scheduled: int
    skipped: int
    auto_delivered: int
    skipped_vacation: int
    skipped_existing: int
    skipped_not_due: int
    held_invoiced: int
    errors: list[BatchErrorRead]

    model_config = ConfigDict(from_attributes=True)


class ScheduleRangeResultRead(BaseModel):
    results: list[ScheduleResultRead]
    scheduled: int
    skipped: int
    errors: int


class AutoDeliverResultRead(BaseModel):
    date: dt.date
    delivered: int
    skipped: int
    errors: list[BatchErrorRead]

    model_config = ConfigDict(from_attributes=True)


class DeliveryItemRead(BaseModel):
    id: int
    product_id: str
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class DeliveryRead(BaseModel):
    id: str
    customer_id: str
    delivery_date: date
    status: DeliveryStatus
    delivery_time: Optional[datetime] = None
    notes: Optional[str] = None
    items: list[DeliveryItemRead] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class DeliveryListResponse(PaginatedResponse[DeliveryRead]):
    """Paginated delivery listing."""

    pass


class DeliveryStatusUpdate(BaseModel):
    status: DeliveryStatus

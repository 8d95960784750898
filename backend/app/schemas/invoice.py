from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.invoice import PaymentStatus
from .common import PaginatedResponse
from .delivery import BatchErrorRead


class InvoiceGenerateRequest(BaseModel):
    """Run monthly invoicing for every active customer."""

    year: int = Field(..., ge=2000, le=9999)
    month: int = Field(..., ge=1, le=12)


class InvoiceCreate(BaseModel):
    """Bill a single customer for an explicit period."""

    customer_id: str
    period_start: date
    period_end: date
    notes: Optional[str] = None

    @model_validator(mode="after")
    def _validate_period(self):
        if self.period_end < self.period_start:
            raise ValueError("period_end cannot be before period_start")
        return self


class InvoiceRead(BaseModel):
    id: str
    invoice_number: str
    customer_id: str
    period_start: date
    period_end: date
    total_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal
    paid_amount: Decimal
    payment_status: PaymentStatus
    effective_status: Optional[PaymentStatus] = Field(
        default=None, description="Status at read time, including overdue"
    )
    payment_date: Optional[date] = None
    due_date: date
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class InvoiceListResponse(PaginatedResponse[InvoiceRead]):
    """Paginated invoice listing with the outstanding amount of the page."""

    outstanding_amount: Decimal = Decimal("0.00")


class GeneratedInvoiceRead(BaseModel):
    invoice_id: str
    invoice_number: str
    customer_id: str
    final_amount: Decimal

    model_config = ConfigDict(from_attributes=True)


class InvoiceGenerationResultRead(BaseModel):
    period_start: date
    period_end: date
    generated: int
    skipped: int
    total_amount: Decimal
    errors: list[BatchErrorRead]
    invoices: list[GeneratedInvoiceRead]

    model_config = ConfigDict(from_attributes=True)

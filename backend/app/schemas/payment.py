from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models.payment import PaymentMode
from .common import PaginatedResponse
from .invoice import InvoiceRead


class PaymentBase(BaseModel):
    """Shared attributes for payment operations."""

    customer_id: str = Field(..., description="Customer making the payment")
    amount: Decimal = Field(..., gt=0, description="Amount received")
    mode: PaymentMode = Field(default=PaymentMode.CASH, description="Payment mode used")
    payment_date: Optional[date] = Field(
        default=None, description="Date the payment was received; defaults to today"
    )
    invoice_id: Optional[str] = Field(
        default=None, description="Invoice the payment settles, if any"
    )
    reference_number: Optional[str] = Field(
        default=None, description="UPI/transaction reference"
    )
    notes: Optional[str] = None


class PaymentCreate(PaymentBase):
    """Schema used when recording a payment."""

    pass


class PaymentRead(PaymentBase):
    id: str
    payment_date: date
    applied_amount: Decimal
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class PaymentListResponse(PaginatedResponse[PaymentRead]):
    """Paginated payment listing."""

    pass


class PaymentRecordRead(BaseModel):
    """Recorded payment plus its effect on the invoice and the ledger."""

    payment: PaymentRead
    invoice: Optional[InvoiceRead] = None
    applied_amount: Decimal
    excess_amount: Decimal
    running_balance: Decimal

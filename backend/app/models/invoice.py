"""Monthly customer invoices."""

from __future__ import annotations

import enum
import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


class PaymentStatus(str, enum.Enum):
    """Payment progress of an invoice.

    ``OVERDUE`` is never stored; it is derived when reading an unpaid invoice
    past its due date.
    """

    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


PAYMENT_STATUS_ENUM = SAEnum(
    PaymentStatus,
    name="invoice_payment_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class Invoice(Base):
    """Bill for everything delivered to a customer during one period."""

    __tablename__ = "invoices"
    __table_args__ = (
        UniqueConstraint(
            "customer_id",
            "period_start",
            "period_end",
            name="uq_invoices_customer_period",
        ),
        CheckConstraint("period_end >= period_start", name="ck_invoices_period_range"),
        CheckConstraint("final_amount >= 0", name="ck_invoices_final_non_negative"),
        CheckConstraint("paid_amount >= 0", name="ck_invoices_paid_non_negative"),
    )

    id = Column("invoice_id", String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    invoice_number = Column(String(32), nullable=False, unique=True)
    customer_id = Column(
        String(36),
        ForeignKey("customers.customer_id", ondelete="RESTRICT"),
        nullable=False,
    )
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    tax_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    final_amount = Column(Numeric(12, 2), nullable=False)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    payment_status = Column(
        PAYMENT_STATUS_ENUM,
        nullable=False,
        default=PaymentStatus.PENDING,
        server_default=PaymentStatus.PENDING.value,
    )
    payment_date = Column(Date, nullable=True)
    due_date = Column(Date, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="invoices")
    payments = relationship("Payment", back_populates="invoice")

    @property
    def remaining_amount(self) -> Decimal:
        remaining = Decimal(self.final_amount or 0) - Decimal(self.paid_amount or 0)
        return max(remaining, Decimal("0"))

    def effective_status(self, today: Optional[date] = None) -> PaymentStatus:
        status = PaymentStatus(self.payment_status)
        if status == PaymentStatus.PAID:
            return status
        reference = today or date.today()
        if self.due_date is not None and reference > self.due_date:
            return PaymentStatus.OVERDUE
        return status


Index("invoices_customer_status_idx", Invoice.customer_id, Invoice.payment_status)
Index("invoices_period_idx", Invoice.period_start, Invoice.period_end)

"""SQLAlchemy model definitions for customer payments."""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


class PaymentMode(str, enum.Enum):
    """Supported payment modes."""

    CASH = "cash"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CARD = "card"
    OTHER = "other"


PAYMENT_MODE_ENUM = Enum(
    PaymentMode,
    name="payment_mode_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class Payment(Base):
    """Money received from a customer, optionally against one invoice."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        CheckConstraint(
            "applied_amount >= 0 AND applied_amount <= amount",
            name="ck_payments_applied_within_amount",
        ),
    )

    id = Column("payment_id", String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(
        String(36),
        ForeignKey("customers.customer_id", ondelete="RESTRICT"),
        nullable=False,
    )
    invoice_id = Column(
        String(36),
        ForeignKey("invoices.invoice_id", ondelete="SET NULL"),
        nullable=True,
    )
    amount = Column(Numeric(12, 2), nullable=False)
    applied_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    mode = Column(PAYMENT_MODE_ENUM, nullable=False)
    payment_date = Column(Date, nullable=False)
    reference_number = Column(String, nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="payments")
    invoice = relationship("Invoice", back_populates="payments")


Index("payments_customer_date_idx", Payment.customer_id, Payment.payment_date)
Index("payments_invoice_idx", Payment.invoice_id)

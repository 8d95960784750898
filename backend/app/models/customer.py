"""SQLAlchemy model definitions for dairy customers and products."""

from __future__ import annotations

import uuid

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


class Customer(Base):
    """A household or shop receiving recurring deliveries."""

    __tablename__ = "customers"
    __table_args__ = (
        CheckConstraint(
            "advance_balance >= 0", name="ck_customers_advance_non_negative"
        ),
        CheckConstraint(
            "invoice_discount IS NULL OR invoice_discount >= 0",
            name="ck_customers_invoice_discount_non_negative",
        ),
    )

    id = Column("customer_id", String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False)
    phone = Column(String, nullable=True)
    email = Column(String, nullable=True)
    address = Column(Text, nullable=True)
    area = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    auto_deliver = Column(Boolean, nullable=False, default=True, server_default="1")
    invoice_discount = Column(Numeric(12, 2), nullable=True)
    # Cached from the ledger; only LedgerService writes these.
    credit_balance = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    advance_balance = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    subscriptions = relationship(
        "Subscription",
        back_populates="customer",
        cascade="all, delete-orphan",
    )
    vacations = relationship(
        "VacationWindow",
        back_populates="customer",
        cascade="all, delete-orphan",
    )
    deliveries = relationship("Delivery", back_populates="customer")
    invoices = relationship("Invoice", back_populates="customer")
    payments = relationship("Payment", back_populates="customer")
    ledger_entries = relationship(
        "CustomerLedgerEntry",
        back_populates="customer",
        order_by="CustomerLedgerEntry.entry_number",
    )


class Product(Base):
    """Catalog item delivered to customers (milk, curd, ghee...)."""

    __tablename__ = "products"
    __table_args__ = (
        CheckConstraint("base_price >= 0", name="ck_products_base_price_non_negative"),
    )

    id = Column("product_id", String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String, nullable=False, unique=True)
    unit = Column(String, nullable=False, default="litre", server_default="litre")
    base_price = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")

    subscriptions = relationship("Subscription", back_populates="product")


Index("customers_active_auto_deliver_idx", Customer.is_active, Customer.auto_deliver)

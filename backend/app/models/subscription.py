"""Model definitions for product subscriptions and vacation pauses."""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base
from ..db_types import DeliveryPatternType
from ..delivery_patterns import DailyPattern


class Subscription(Base):
    """A product a customer receives on the days its pattern selects."""

    __tablename__ = "customer_products"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_customer_products_quantity_positive"),
        CheckConstraint(
            "custom_price IS NULL OR custom_price >= 0",
            name="ck_customer_products_custom_price_non_negative",
        ),
    )

    id = Column("subscription_id", String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(
        String(36),
        ForeignKey("customers.customer_id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id = Column(
        String(36),
        ForeignKey("products.product_id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity = Column(Numeric(10, 3), nullable=False)
    custom_price = Column(Numeric(12, 2), nullable=True)
    delivery_pattern = Column(
        DeliveryPatternType(),
        nullable=False,
        default=lambda: DailyPattern(),
    )
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="subscriptions")
    product = relationship("Product", back_populates="subscriptions")

    @property
    def unit_price(self):
        if self.custom_price is not None:
            return self.custom_price
        if self.product is not None and self.product.base_price is not None:
            return self.product.base_price
        return 0

    def is_due_on(self, target_date: date) -> bool:
        return bool(self.is_active) and self.delivery_pattern.includes(target_date)


class VacationWindow(Base):
    """Inclusive date range during which a customer's deliveries pause."""

    __tablename__ = "customer_vacations"
    __table_args__ = (
        CheckConstraint("end_date >= start_date", name="ck_customer_vacations_range"),
    )

    id = Column("vacation_id", String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(
        String(36),
        ForeignKey("customers.customer_id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    reason = Column(Text, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, server_default="1")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="vacations")

    def covers(self, target_date: date) -> bool:
        return bool(self.is_active) and self.start_date <= target_date <= self.end_date


Index("customer_products_customer_active_idx", Subscription.customer_id, Subscription.is_active)
Index(
    "customer_vacations_customer_range_idx",
    VacationWindow.customer_id,
    VacationWindow.start_date,
    VacationWindow.end_date,
)

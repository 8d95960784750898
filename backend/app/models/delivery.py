"""Models for daily customer deliveries and their line items."""

from __future__ import annotations

import enum
import uuid

from sqlalchemy import (
    CheckConstraint,
    Column,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


class DeliveryStatus(str, enum.Enum):
    """Lifecycle of a delivery on its scheduled day."""

    PENDING = "pending"
    DELIVERED = "delivered"
    MISSED = "missed"
    PARTIAL = "partial"


DELIVERY_STATUS_ENUM = SAEnum(
    DeliveryStatus,
    name="delivery_status_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class Delivery(Base):
    """One visit to a customer on one date."""

    __tablename__ = "deliveries"
    __table_args__ = (
        UniqueConstraint("customer_id", "delivery_date", name="uq_deliveries_customer_date"),
    )

    id = Column("delivery_id", String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(
        String(36),
        ForeignKey("customers.customer_id", ondelete="CASCADE"),
        nullable=False,
    )
    delivery_date = Column(Date, nullable=False)
    status = Column(
        DELIVERY_STATUS_ENUM,
        nullable=False,
        default=DeliveryStatus.PENDING,
        server_default=DeliveryStatus.PENDING.value,
    )
    delivery_time = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="deliveries")
    items = relationship(
        "DeliveryItem",
        back_populates="delivery",
        cascade="all, delete-orphan",
    )

    @property
    def total_amount(self):
        return sum((item.total_amount for item in self.items), 0)


class DeliveryItem(Base):
    """Quantity of one product handed over during a delivery."""

    __tablename__ = "delivery_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_delivery_items_quantity_positive"),
        CheckConstraint("unit_price >= 0", name="ck_delivery_items_unit_price_non_negative"),
    )

    id = Column("delivery_item_id", Integer, primary_key=True, autoincrement=True)
    delivery_id = Column(
        String(36),
        ForeignKey("deliveries.delivery_id", ondelete="CASCADE"),
        nullable=False,
    )
    product_id = Column(
        String(36),
        ForeignKey("products.product_id", ondelete="RESTRICT"),
        nullable=False,
    )
    quantity = Column(Numeric(10, 3), nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)

    delivery = relationship("Delivery", back_populates="items")
    product = relationship("Product")


Index("deliveries_date_status_idx", Delivery.delivery_date, Delivery.status)
Index("delivery_items_delivery_idx", DeliveryItem.delivery_id)

"""Per-customer financial ledger."""

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


class LedgerEntryType(str, enum.Enum):
    """Types of ledger entries tracked for a customer."""

    INVOICE = "invoice"
    PAYMENT = "payment"
    ADVANCE = "advance"
    ADJUSTMENT = "adjustment"


LEDGER_ENTRY_TYPE_ENUM = SAEnum(
    LedgerEntryType,
    name="customer_ledger_entry_type_enum",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
    native_enum=False,
    validate_strings=True,
)


class CustomerLedgerEntry(Base):
    """One debit or credit movement on a customer's account.

    ``running_balance`` is the amount owed after this entry; a negative value
    means the customer holds an advance.
    """

    __tablename__ = "customer_ledger"
    __table_args__ = (
        UniqueConstraint(
            "customer_id", "entry_number", name="uq_customer_ledger_customer_entry"
        ),
        CheckConstraint("debit_amount >= 0", name="ck_customer_ledger_debit_non_negative"),
        CheckConstraint("credit_amount >= 0", name="ck_customer_ledger_credit_non_negative"),
    )

    id = Column("ledger_entry_id", String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    customer_id = Column(
        String(36),
        ForeignKey("customers.customer_id", ondelete="CASCADE"),
        nullable=False,
    )
    entry_number = Column(Integer, nullable=False)
    entry_date = Column(Date, nullable=False)
    entry_type = Column(LEDGER_ENTRY_TYPE_ENUM, nullable=False)
    description = Column(Text, nullable=True)
    debit_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    credit_amount = Column(Numeric(12, 2), nullable=False, default=0, server_default="0")
    running_balance = Column(Numeric(12, 2), nullable=False)
    reference_id = Column(String(36), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    customer = relationship("Customer", back_populates="ledger_entries")


Index("customer_ledger_reference_idx", CustomerLedgerEntry.reference_id)
Index(
    "customer_ledger_customer_date_idx",
    CustomerLedgerEntry.customer_id,
    CustomerLedgerEntry.entry_date,
)

"""Expose SQLAlchemy models for convenient imports."""

from .customer import Customer, Product
from .delivery import Delivery, DeliveryItem, DeliveryStatus
from .invoice import Invoice, PaymentStatus
from .ledger import CustomerLedgerEntry, LedgerEntryType
from .payment import Payment, PaymentMode
from .subscription import Subscription, VacationWindow

__all__ = [
    "Customer",
    "Product",
    "Subscription",
    "VacationWindow",
    "Delivery",
    "DeliveryItem",
    "DeliveryStatus",
    "Invoice",
    "PaymentStatus",
    "CustomerLedgerEntry",
    "LedgerEntryType",
    "Payment",
    "PaymentMode",
]

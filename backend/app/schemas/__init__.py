"""Expose Pydantic schemas for convenient imports."""

from .common import PaginatedResponse
from .delivery import (
    AutoDeliverRequest,
    AutoDeliverResultRead,
    BatchErrorRead,
    DeliveryItemRead,
    DeliveryListResponse,
    DeliveryRead,
    DeliveryStatusUpdate,
    ScheduleRangeRequest,
    ScheduleRangeResultRead,
    ScheduleRequest,
    ScheduleResultRead,
)
from .invoice import (
    GeneratedInvoiceRead,
    InvoiceCreate,
    InvoiceGenerateRequest,
    InvoiceGenerationResultRead,
    InvoiceListResponse,
    InvoiceRead,
)
from .ledger import (
    BalanceDriftRead,
    BalanceMismatchRead,
    LedgerAdjustmentCreate,
    LedgerAdvanceCreate,
    LedgerEntryRead,
    LedgerIntegrityReportRead,
    LedgerStatementResponse,
    LedgerVerificationRead,
)
from .payment import (
    PaymentBase,
    PaymentCreate,
    PaymentListResponse,
    PaymentRead,
    PaymentRecordRead,
)
from .subscription import (
    SubscriptionBase,
    SubscriptionCreate,
    SubscriptionListResponse,
    SubscriptionRead,
    SubscriptionUpdate,
    VacationCreate,
    VacationListResponse,
    VacationRead,
)

__all__ = [
    "PaginatedResponse",
    "AutoDeliverRequest",
    "AutoDeliverResultRead",
    "BatchErrorRead",
    "DeliveryItemRead",
    "DeliveryListResponse",
    "DeliveryRead",
    "DeliveryStatusUpdate",
    "ScheduleRangeRequest",
    "ScheduleRangeResultRead",
    "ScheduleRequest",
    "ScheduleResultRead",
    "GeneratedInvoiceRead",
    "InvoiceCreate",
    "InvoiceGenerateRequest",
    "InvoiceGenerationResultRead",
    "InvoiceListResponse",
    "InvoiceRead",
    "BalanceDriftRead",
    "BalanceMismatchRead",
    "LedgerAdjustmentCreate",
    "LedgerAdvanceCreate",
    "LedgerEntryRead",
    "LedgerIntegrityReportRead",
    "LedgerStatementResponse",
    "LedgerVerificationRead",
    "PaymentBase",
    "PaymentCreate",
    "PaymentListResponse",
    "PaymentRead",
    "PaymentRecordRead",
    "SubscriptionBase",
    "SubscriptionCreate",
    "SubscriptionListResponse",
    "SubscriptionRead",
    "SubscriptionUpdate",
    "VacationCreate",
    "VacationListResponse",
    "VacationRead",
]

"""Service layer encapsulating business logic for API routers."""

from .billing_periods import BillingPeriod, BillingPeriodService
from .billing_settings import BillingSettings
from .delivery_aggregation import AggregatedLine, CustomerAggregation, DeliveryAggregator
from .delivery_scheduler import (
    AutoDeliverResult,
    BatchError,
    DeliverySchedulerService,
    ScheduleResult,
)
from .errors import (
    BillingConflictError,
    BillingError,
    BillingValidationError,
    LedgerConsistencyError,
    RecordNotFoundError,
    StoreUnavailableError,
)
from .invoice_documents import InvoiceDocument, InvoiceDocumentService
from .invoices import GeneratedInvoice, InvoiceGenerationResult, InvoiceService
from .ledger import LedgerService, LedgerVerification
from .ledger_integrity import LedgerIntegrityReport, LedgerIntegrityService
from .notifications import BillingNotifier, build_notification_client_from_env
from .payments import PaymentRecordResult, PaymentService, PaymentServiceError
from .subscriptions import SubscriptionService
from .vacations import VacationService

__all__ = [
    "AggregatedLine",
    "AutoDeliverResult",
    "BatchError",
    "BillingConflictError",
    "BillingError",
    "BillingNotifier",
    "BillingPeriod",
    "BillingPeriodService",
    "BillingSettings",
    "BillingValidationError",
    "CustomerAggregation",
    "DeliveryAggregator",
    "DeliverySchedulerService",
    "GeneratedInvoice",
    "InvoiceDocument",
    "InvoiceDocumentService",
    "InvoiceGenerationResult",
    "InvoiceService",
    "LedgerConsistencyError",
    "LedgerIntegrityReport",
    "LedgerIntegrityService",
    "LedgerService",
    "LedgerVerification",
    "PaymentRecordResult",
    "PaymentService",
    "PaymentServiceError",
    "RecordNotFoundError",
    "ScheduleResult",
    "StoreUnavailableError",
    "SubscriptionService",
    "VacationService",
    "build_notification_client_from_env",
]

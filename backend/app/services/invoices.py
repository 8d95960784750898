"""Monthly invoice generation and invoice lookups."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .. import models
from .billing_periods import BillingPeriod, BillingPeriodService
from .billing_settings import BillingSettings
from .delivery_aggregation import CustomerAggregation, DeliveryAggregator
from .delivery_scheduler import BatchError
from .errors import (
    BillingConflictError,
    BillingError,
    BillingValidationError,
    LedgerConsistencyError,
    RecordNotFoundError,
    StoreUnavailableError,
)
from .ledger import LedgerService
from .money import ZERO, normalize_amount

LOGGER = logging.getLogger(__name__)

INVOICE_NUMBER_ATTEMPTS = 5


@dataclass(frozen=True)
class GeneratedInvoice:
    invoice_id: str
    invoice_number: str
    customer_id: str
    final_amount: Decimal

    def to_dict(self) -> dict[str, str]:
        return {
            "invoice_id": self.invoice_id,
            "invoice_number": self.invoice_number,
            "customer_id": self.customer_id,
            "final_amount": str(self.final_amount),
        }


@dataclass
class InvoiceGenerationResult:
    """Summary of one monthly invoicing run."""

    period_start: date
    period_end: date
    generated: int = 0
    skipped: int = 0
    total_amount: Decimal = ZERO
    errors: list[BatchError] = field(default_factory=list)
    invoices: list[GeneratedInvoice] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "period_start": self.period_start.isoformat(),
            "period_end": self.period_end.isoformat(),
            "generated": self.generated,
            "skipped": self.skipped,
            "total_amount": str(self.total_amount),
            "errors": [error.to_dict() for error in self.errors],
            "invoices": [invoice.to_dict() for invoice in self.invoices],
        }


@dataclass(frozen=True)
class InvoiceAmounts:
    total_amount: Decimal
    tax_amount: Decimal
    discount_amount: Decimal
    final_amount: Decimal


class InvoiceService:
    """Bill delivered items exactly once per customer and period."""

    @staticmethod
    def status_for(paid_amount: Decimal, final_amount: Decimal) -> models.PaymentStatus:
        paid = normalize_amount(paid_amount)
        final = normalize_amount(final_amount)
        if paid >= final:
            return models.PaymentStatus.PAID
        if paid == ZERO:
            return models.PaymentStatus.PENDING
        return models.PaymentStatus.PARTIAL

    @staticmethod
    def compute_amounts(
        total_amount: Decimal,
        settings: BillingSettings,
        customer_discount: Optional[Decimal] = None,
    ) -> InvoiceAmounts:
        """Apply the flat tax/discount rule; the discount never drives the total below zero."""

        total = normalize_amount(total_amount)
        tax = normalize_amount(total * settings.tax_rate_percent / Decimal("100"))
        requested_discount = (
            customer_discount if customer_discount is not None else settings.flat_discount
        )
        discount = min(normalize_amount(requested_discount), total + tax)
        return InvoiceAmounts(
            total_amount=total,
            tax_amount=tax,
            discount_amount=discount,
            final_amount=normalize_amount(total + tax - discount),
        )

    @staticmethod
    def next_invoice_number(db: Session, period_start: date, prefix: str) -> str:
        """Return ``PREFIX-YYYYMM-NNNN`` following the highest number issued so far."""

        stem = f"{prefix}-{period_start.year:04d}{period_start.month:02d}-"
        existing = (
            db.query(models.Invoice.invoice_number)
            .filter(models.Invoice.invoice_number.like(f"{stem}%"))
            .all()
        )
        highest = 0
        for (number,) in existing:
            suffix = number[len(stem):]
            if suffix.isdigit():
                highest = max(highest, int(suffix))
        return f"{stem}{highest + 1:04d}"

    @staticmethod
    def _overlapping(query, period: BillingPeriod):
        return query.filter(models.Invoice.period_start <= period.ends_on).filter(
            models.Invoice.period_end >= period.starts_on
        )

    @classmethod
    def _invoice_for_period(
        cls, db: Session, customer_id: str, period: BillingPeriod
    ) -> Optional[models.Invoice]:
        """Return an invoice of the customer sharing any day with ``period``."""

        query = db.query(models.Invoice).filter(models.Invoice.customer_id == customer_id)
        return cls._overlapping(query, period).first()

    @classmethod
    def _customers_invoiced_for(cls, db: Session, period: BillingPeriod) -> set[str]:
        query = db.query(models.Invoice.customer_id)
        return {customer_id for (customer_id,) in cls._overlapping(query, period).all()}

    @staticmethod
    def _invoice_number_taken(db: Session, invoice_number: str) -> bool:
        return (
            db.query(models.Invoice.id)
            .filter(models.Invoice.invoice_number == invoice_number)
            .first()
            is not None
        )

    @classmethod
    def _issue_invoice(
        cls,
        db: Session,
        customer: models.Customer,
        period: BillingPeriod,
        aggregation: CustomerAggregation,
        settings: BillingSettings,
        *,
        issued_on: date,
        notes: Optional[str] = None,
    ) -> models.Invoice:
        """Insert the invoice and its ledger debit without committing."""

        amounts = cls.compute_amounts(
            aggregation.total_amount, settings, customer.invoice_discount
        )
        for attempt in range(1, INVOICE_NUMBER_ATTEMPTS + 1):
            invoice_number = cls.next_invoice_number(
                db, period.starts_on, settings.invoice_prefix
            )
            invoice = models.Invoice(
                invoice_number=invoice_number,
                customer_id=customer.id,
                period_start=period.starts_on,
                period_end=period.ends_on,
                total_amount=amounts.total_amount,
                tax_amount=amounts.tax_amount,
                discount_amount=amounts.discount_amount,
                final_amount=amounts.final_amount,
                paid_amount=ZERO,
                payment_status=cls.status_for(ZERO, amounts.final_amount),
                due_date=period.due_date(settings.due_days),
                notes=notes,
            )
            try:
                with db.begin_nested():
                    db.add(invoice)
                    db.flush()
            except IntegrityError:
                # Another run issued this number between our read and insert.
                if not cls._invoice_number_taken(db, invoice_number):
                    raise
                LOGGER.info(
                    "Invoice number already issued; allocating the next one",
                    extra={"invoice_number": invoice_number, "attempt": attempt},
                )
                continue
            break
        else:
            raise BillingConflictError("Could not allocate a free invoice number")

        if amounts.final_amount > 0:
            try:
                LedgerService.append_entry(
                    db,
                    customer.id,
                    entry_date=issued_on,
                    entry_type=models.LedgerEntryType.INVOICE,
                    description=(
                        f"Invoice {invoice.invoice_number} "
                        f"({period.starts_on.isoformat()} to {period.ends_on.isoformat()})"
                    ),
                    debit=amounts.final_amount,
                    reference_id=invoice.id,
                )
            except (SQLAlchemyError, BillingError) as exc:
                raise LedgerConsistencyError(
                    f"Ledger debit failed for invoice {invoice.invoice_number}: {exc}"
                ) from exc
        return invoice

    @classmethod
    def generate_monthly_invoices(
        cls,
        db: Session,
        year: int,
        month: int,
        *,
        settings: Optional[BillingSettings] = None,
        issued_on: Optional[date] = None,
    ) -> InvoiceGenerationResult:
        """Create one invoice per active customer with delivered items in the month.

        Customers already invoiced for the period, and customers with nothing
        delivered, are skipped. Each invoice and its ledger debit commit
        together; a failure is rolled back and collected in ``errors``.
        """

        period = BillingPeriodService.for_month(year, month)
        settings = settings or BillingSettings.from_env()
        issued_on = issued_on or date.today()
        result = InvoiceGenerationResult(period_start=period.starts_on, period_end=period.ends_on)

        try:
            customer_ids = [
                customer_id
                for (customer_id,) in db.query(models.Customer.id)
                .filter(models.Customer.is_active.is_(True))
                .order_by(models.Customer.name.asc(), models.Customer.id.asc())
                .all()
            ]
            already_invoiced = cls._customers_invoiced_for(db, period)
            aggregations = DeliveryAggregator.aggregate_period(
                db, period.starts_on, period.ends_on, customer_ids
            )
        except OperationalError as exc:
            db.rollback()
            raise StoreUnavailableError("Record store unavailable while invoicing") from exc

        for customer_id in customer_ids:
            if customer_id in already_invoiced:
                result.skipped += 1
                continue
            aggregation = aggregations.get(customer_id)
            if aggregation is None or aggregation.total_amount <= 0:
                result.skipped += 1
                continue

            try:
                customer = db.get(models.Customer, customer_id)
                invoice = cls._issue_invoice(
                    db, customer, period, aggregation, settings, issued_on=issued_on
                )
                generated = GeneratedInvoice(
                    invoice_id=invoice.id,
                    invoice_number=invoice.invoice_number,
                    customer_id=customer_id,
                    final_amount=normalize_amount(invoice.final_amount),
                )
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                if cls._invoice_for_period(db, customer_id, period) is not None:
                    LOGGER.info(
                        "Invoice created concurrently; skipping",
                        extra={"customer_id": customer_id, "period": period.key},
                    )
                    result.skipped += 1
                else:
                    result.errors.append(BatchError(customer_id, str(exc.orig or exc)))
                continue
            except BillingConflictError as exc:
                db.rollback()
                LOGGER.warning(
                    "Failed to generate invoice",
                    extra={"customer_id": customer_id, "period": period.key},
                )
                result.errors.append(BatchError(customer_id, str(exc)))
                continue
            except LedgerConsistencyError as exc:
                db.rollback()
                LOGGER.error(
                    "Invoice rolled back after ledger failure",
                    extra={"customer_id": customer_id, "period": period.key},
                    exc_info=exc,
                )
                result.errors.append(BatchError(customer_id, str(exc)))
                continue
            except SQLAlchemyError as exc:
                db.rollback()
                LOGGER.warning(
                    "Failed to generate invoice",
                    extra={"customer_id": customer_id, "period": period.key},
                    exc_info=exc,
                )
                result.errors.append(BatchError(customer_id, str(exc)))
                continue

            result.generated += 1
            result.total_amount = normalize_amount(result.total_amount + generated.final_amount)
            result.invoices.append(generated)

        LOGGER.info(
            "Monthly invoicing completed",
            extra={
                "period": period.key,
                "generated": result.generated,
                "skipped": result.skipped,
                "errors": len(result.errors),
                "total_amount": str(result.total_amount),
            },
        )
        return result

    @classmethod
    def generate_invoice(
        cls,
        db: Session,
        customer_id: str,
        period_start: date,
        period_end: date,
        *,
        notes: Optional[str] = None,
        settings: Optional[BillingSettings] = None,
        issued_on: Optional[date] = None,
    ) -> models.Invoice:
        """Bill a single customer for an arbitrary period, raising on any failure."""

        period = BillingPeriodService.custom(period_start, period_end)
        settings = settings or BillingSettings.from_env()
        customer = db.get(models.Customer, customer_id)
        if customer is None:
            raise RecordNotFoundError("Customer not found")
        if cls._invoice_for_period(db, customer_id, period) is not None:
            raise BillingConflictError("An invoice already covers part of this period")

        aggregation = DeliveryAggregator.aggregate_customer(
            db, customer_id, period.starts_on, period.ends_on
        )
        if aggregation.total_amount <= 0:
            raise BillingValidationError("No delivered items to bill in this period")

        try:
            invoice = cls._issue_invoice(
                db,
                customer,
                period,
                aggregation,
                settings,
                issued_on=issued_on or date.today(),
                notes=notes,
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise BillingConflictError("An invoice already covers part of this period") from exc
        except (BillingConflictError, LedgerConsistencyError, SQLAlchemyError):
            db.rollback()
            raise

        db.refresh(invoice)
        LOGGER.info(
            "Invoice generated",
            extra={
                "customer_id": customer_id,
                "invoice_number": invoice.invoice_number,
                "final_amount": str(invoice.final_amount),
            },
        )
        return invoice

    @staticmethod
    def get_invoice(db: Session, invoice_id: str) -> Optional[models.Invoice]:
        return (
            db.query(models.Invoice)
            .options(selectinload(models.Invoice.customer))
            .filter(models.Invoice.id == invoice_id)
            .first()
        )

    @staticmethod
    def list_invoices(
        db: Session,
        *,
        customer_id: Optional[str] = None,
        status: Optional[models.PaymentStatus] = None,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
        today: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[Iterable[models.Invoice], int]:
        """List invoices, filtering ``status`` by its effective (read-time) value."""

        reference = today or date.today()
        query = db.query(models.Invoice)
        if customer_id:
            query = query.filter(models.Invoice.customer_id == customer_id)
        if period_start:
            query = query.filter(models.Invoice.period_start >= period_start)
        if period_end:
            query = query.filter(models.Invoice.period_end <= period_end)
        if status == models.PaymentStatus.OVERDUE:
            query = query.filter(
                models.Invoice.payment_status != models.PaymentStatus.PAID,
                models.Invoice.due_date < reference,
            )
        elif status == models.PaymentStatus.PAID:
            query = query.filter(models.Invoice.payment_status == models.PaymentStatus.PAID)
        elif status is not None:
            query = query.filter(
                models.Invoice.payment_status == status,
                or_(models.Invoice.due_date >= reference, models.Invoice.due_date.is_(None)),
            )

        total = query.count()
        items = (
            query.order_by(models.Invoice.period_start.desc(), models.Invoice.invoice_number.desc())
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @staticmethod
    def outstanding_balance(invoices: Iterable[models.Invoice]) -> Decimal:
        return normalize_amount(sum((invoice.remaining_amount for invoice in invoices), ZERO))

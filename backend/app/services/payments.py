"""Business logic for payment operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .. import models
from .billing_settings import BillingSettings
from .errors import (
    BillingError,
    BillingValidationError,
    LedgerConsistencyError,
    RecordNotFoundError,
    StoreUnavailableError,
    is_transient_store_error,
)
from .invoices import InvoiceService
from .ledger import LedgerService
from .money import ZERO, normalize_amount
from .notifications import BillingNotifier

LOGGER = logging.getLogger(__name__)


class PaymentServiceError(BillingError):
    """Raised when payment operations cannot be completed."""


@dataclass
class PaymentRecordResult:
    """Result from recording a payment including its effect on the ledger."""

    payment: models.Payment
    invoice: Optional[models.Invoice]
    applied_amount: Decimal
    excess_amount: Decimal
    running_balance: Decimal


class PaymentService:
    """Operations for reading and recording customer payments."""

    @staticmethod
    def list_payments(
        db: Session,
        *,
        customer_id: Optional[str] = None,
        invoice_id: Optional[str] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        mode: Optional[models.PaymentMode] = None,
        min_amount: Optional[Decimal] = None,
        max_amount: Optional[Decimal] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[Iterable[models.Payment], int]:
        query = db.query(models.Payment).options(selectinload(models.Payment.invoice))

        if customer_id:
            query = query.filter(models.Payment.customer_id == customer_id)
        if invoice_id:
            query = query.filter(models.Payment.invoice_id == invoice_id)
        if start_date:
            query = query.filter(models.Payment.payment_date >= start_date)
        if end_date:
            query = query.filter(models.Payment.payment_date <= end_date)
        if mode:
            query = query.filter(models.Payment.mode == mode)
        if min_amount is not None:
            query = query.filter(models.Payment.amount >= min_amount)
        if max_amount is not None:
            query = query.filter(models.Payment.amount <= max_amount)

        total = query.count()
        items = (
            query.order_by(
                models.Payment.payment_date.desc(),
                models.Payment.created_at.desc(),
            )
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @staticmethod
    def get_payment(db: Session, payment_id: str) -> Optional[models.Payment]:
        return (
            db.query(models.Payment)
            .options(selectinload(models.Payment.invoice))
            .filter(models.Payment.id == payment_id)
            .first()
        )

    @staticmethod
    def _resolve_invoice(
        db: Session, invoice_id: str, *, for_update: bool = False
    ) -> models.Invoice:
        query = db.query(models.Invoice).filter(models.Invoice.id == invoice_id)

        if for_update and getattr(getattr(db, "bind", None), "dialect", None):
            if getattr(db.bind.dialect, "supports_for_update", False):
                query = query.with_for_update()

        invoice = query.populate_existing().first()
        if invoice is None:
            raise RecordNotFoundError("Invoice not found")
        return invoice

    @staticmethod
    def _apply_to_invoice(
        invoice: models.Invoice, amount: Decimal, paid_on: date
    ) -> Decimal:
        """Apply up to the invoice's remaining amount and return what was applied."""

        remaining = normalize_amount(invoice.remaining_amount)
        applied = min(amount, remaining)
        invoice.paid_amount = normalize_amount(Decimal(invoice.paid_amount or 0) + applied)
        invoice.payment_status = InvoiceService.status_for(
            invoice.paid_amount, invoice.final_amount
        )
        if invoice.payment_status == models.PaymentStatus.PAID and invoice.payment_date is None:
            invoice.payment_date = paid_on
        return applied

    @classmethod
    def record_payment(
        cls,
        db: Session,
        *,
        customer_id: str,
        amount: Decimal | int | str,
        mode: models.PaymentMode,
        payment_date: Optional[date] = None,
        invoice_id: Optional[str] = None,
        notes: Optional[str] = None,
        reference_number: Optional[str] = None,
        notifier: Optional[BillingNotifier] = None,
        settings: Optional[BillingSettings] = None,
    ) -> PaymentRecordResult:
        """Record a payment, update its invoice and credit the ledger atomically.

        The invoice receives at most its remaining amount while the ledger is
        credited with the full payment, so any excess shows up as an advance.
        Notifications go out only after the commit succeeded.
        """

        normalized = normalize_amount(amount)
        if normalized <= 0:
            raise BillingValidationError("amount must be greater than zero")
        paid_on = payment_date or date.today()

        try:
            customer = db.get(models.Customer, customer_id)
            if customer is None:
                raise RecordNotFoundError("Customer not found")

            invoice = None
            applied = ZERO
            if invoice_id:
                invoice = cls._resolve_invoice(db, invoice_id, for_update=True)
                if invoice.customer_id != customer_id:
                    raise BillingValidationError("Invoice does not belong to this customer")
                applied = cls._apply_to_invoice(invoice, normalized, paid_on)
                db.add(invoice)

            payment = models.Payment(
                customer_id=customer_id,
                invoice_id=invoice.id if invoice else None,
                amount=normalized,
                applied_amount=applied,
                mode=mode,
                payment_date=paid_on,
                reference_number=reference_number,
                notes=notes,
            )
            db.add(payment)
            db.flush()

            description = (
                f"Payment for {invoice.invoice_number}" if invoice else "General Payment"
            )
            try:
                balance = LedgerService.append_entry(
                    db,
                    customer_id,
                    entry_date=paid_on,
                    entry_type=models.LedgerEntryType.PAYMENT,
                    description=description,
                    credit=normalized,
                    reference_id=payment.id,
                )
            except (SQLAlchemyError, BillingError) as exc:
                raise LedgerConsistencyError(
                    f"Ledger credit failed for payment {payment.id}: {exc}"
                ) from exc

            db.commit()
        except BillingError:
            db.rollback()
            raise
        except SQLAlchemyError as exc:
            db.rollback()
            if is_transient_store_error(exc):
                raise StoreUnavailableError("Record store unavailable; retry the payment") from exc
            raise PaymentServiceError("Could not record the payment") from exc

        db.refresh(payment)
        if invoice is not None:
            db.refresh(invoice)

        LOGGER.info(
            "Payment recorded",
            extra={
                "customer_id": customer_id,
                "payment_id": payment.id,
                "invoice_id": payment.invoice_id,
                "amount": str(normalized),
                "applied_amount": str(applied),
                "running_balance": str(balance),
            },
        )

        if notifier is None:
            settings = settings or BillingSettings.from_env()
            notifier = BillingNotifier.from_env(settings.large_transaction_threshold)
        notifier.payment_received(customer, payment, invoice)

        return PaymentRecordResult(
            payment=payment,
            invoice=invoice,
            applied_amount=applied,
            excess_amount=normalize_amount(normalized - applied) if invoice else ZERO,
            running_balance=balance,
        )

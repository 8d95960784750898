"""Reconciliation checks between the ledger and the records it mirrors."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import and_, func
from sqlalchemy.orm import Session

from .. import models
from .money import normalize_amount


@dataclass(frozen=True)
class BalanceMismatch:
    """A customer whose cached balance disagrees with its ledger."""

    customer_id: str
    customer_name: str
    cached_balance: Decimal
    ledger_balance: Decimal

    @property
    def difference(self) -> Decimal:
        return self.cached_balance - self.ledger_balance


@dataclass(frozen=True)
class LedgerIntegrityReport:
    """Inconsistencies detected across customers, invoices and payments."""

    customers_checked: int
    balance_mismatches: list[BalanceMismatch]
    invoices_without_debit: list[str]
    payments_without_credit: list[str]

    @property
    def is_clean(self) -> bool:
        return not (
            self.balance_mismatches
            or self.invoices_without_debit
            or self.payments_without_credit
        )


class LedgerIntegrityService:
    """Data reconciliation helpers to surface ledger drift."""

    @staticmethod
    def _ledger_totals(db: Session) -> dict[str, Decimal]:
        rows = (
            db.query(
                models.CustomerLedgerEntry.customer_id,
                func.coalesce(func.sum(models.CustomerLedgerEntry.debit_amount), 0),
                func.coalesce(func.sum(models.CustomerLedgerEntry.credit_amount), 0),
            )
            .group_by(models.CustomerLedgerEntry.customer_id)
            .all()
        )
        return {
            str(customer_id): normalize_amount(debits) - normalize_amount(credits)
            for customer_id, debits, credits in rows
        }

    @classmethod
    def balance_mismatches(cls, db: Session) -> tuple[int, list[BalanceMismatch]]:
        totals = cls._ledger_totals(db)
        customers = db.query(models.Customer).order_by(models.Customer.name).all()
        mismatches = []
        for customer in customers:
            ledger_balance = totals.get(str(customer.id), normalize_amount(0))
            cached = normalize_amount(customer.credit_balance)
            if cached != ledger_balance:
                mismatches.append(
                    BalanceMismatch(
                        customer_id=str(customer.id),
                        customer_name=customer.name,
                        cached_balance=cached,
                        ledger_balance=ledger_balance,
                    )
                )
        return len(customers), mismatches

    @staticmethod
    def invoices_without_debit(db: Session) -> list[str]:
        """Invoices with something to pay but no ledger debit referencing them."""

        rows = (
            db.query(models.Invoice.invoice_number)
            .outerjoin(
                models.CustomerLedgerEntry,
                and_(
                    models.CustomerLedgerEntry.reference_id == models.Invoice.id,
                    models.CustomerLedgerEntry.entry_type == models.LedgerEntryType.INVOICE,
                ),
            )
            .filter(models.Invoice.final_amount > 0)
            .filter(models.CustomerLedgerEntry.id.is_(None))
            .order_by(models.Invoice.invoice_number)
            .all()
        )
        return [invoice_number for (invoice_number,) in rows]

    @staticmethod
    def payments_without_credit(db: Session) -> list[str]:
        rows = (
            db.query(models.Payment.id)
            .outerjoin(
                models.CustomerLedgerEntry,
                and_(
                    models.CustomerLedgerEntry.reference_id == models.Payment.id,
                    models.CustomerLedgerEntry.entry_type == models.LedgerEntryType.PAYMENT,
                ),
            )
            .filter(models.CustomerLedgerEntry.id.is_(None))
            .order_by(models.Payment.payment_date)
            .all()
        )
        return [str(payment_id) for (payment_id,) in rows]

    @classmethod
    def integrity_report(cls, db: Session) -> LedgerIntegrityReport:
        checked, mismatches = cls.balance_mismatches(db)
        return LedgerIntegrityReport(
            customers_checked=checked,
            balance_mismatches=mismatches,
            invoices_without_debit=cls.invoices_without_debit(db),
            payments_without_credit=cls.payments_without_credit(db),
        )

"""Append-only customer ledger with an atomically maintained running balance."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models
from .errors import BillingValidationError, RecordNotFoundError
from .money import ZERO, normalize_amount

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class BalanceDrift:
    """A stored running balance that disagrees with the replayed one."""

    entry_number: int
    stored_balance: Decimal
    expected_balance: Decimal


@dataclass
class LedgerVerification:
    """Outcome of replaying a customer's ledger from zero."""

    customer_id: str
    entry_count: int
    ledger_balance: Decimal
    cached_balance: Decimal
    drifted_entries: list[BalanceDrift] = field(default_factory=list)

    @property
    def cache_in_sync(self) -> bool:
        return self.ledger_balance == self.cached_balance

    @property
    def is_consistent(self) -> bool:
        return not self.drifted_entries and self.cache_in_sync

    def to_dict(self) -> dict[str, object]:
        return {
            "customer_id": self.customer_id,
            "entry_count": self.entry_count,
            "ledger_balance": str(self.ledger_balance),
            "cached_balance": str(self.cached_balance),
            "drifted_entries": [
                {
                    "entry_number": drift.entry_number,
                    "stored_balance": str(drift.stored_balance),
                    "expected_balance": str(drift.expected_balance),
                }
                for drift in self.drifted_entries
            ],
            "is_consistent": self.is_consistent,
        }


class LedgerService:
    """Single writer of customer balances.

    ``running_balance`` is the amount the customer owes after each entry:
    debits raise it, credits lower it. ``Customer.credit_balance`` mirrors the
    latest entry and ``Customer.advance_balance`` holds any negative part.
    """

    @staticmethod
    def _lock_customer(db: Session, customer_id: str) -> models.Customer:
        query = db.query(models.Customer).filter(models.Customer.id == customer_id)

        if getattr(getattr(db, "bind", None), "dialect", None):
            if getattr(db.bind.dialect, "supports_for_update", False):
                query = query.with_for_update()

        customer = query.populate_existing().first()
        if customer is None:
            raise RecordNotFoundError("Customer not found")
        return customer

    @staticmethod
    def _latest_entry(db: Session, customer_id: str) -> Optional[models.CustomerLedgerEntry]:
        return (
            db.query(models.CustomerLedgerEntry)
            .filter(models.CustomerLedgerEntry.customer_id == customer_id)
            .order_by(models.CustomerLedgerEntry.entry_number.desc())
            .first()
        )

    @staticmethod
    def _sync_customer_cache(customer: models.Customer, balance: Decimal) -> None:
        customer.credit_balance = balance
        customer.advance_balance = max(-balance, ZERO)

    @classmethod
    def append_entry(
        cls,
        db: Session,
        customer_id: str,
        *,
        entry_date: date,
        entry_type: models.LedgerEntryType,
        description: Optional[str],
        debit: Decimal | int | str = 0,
        credit: Decimal | int | str = 0,
        reference_id: Optional[str] = None,
    ) -> Decimal:
        """Append one entry inside the caller's transaction and return the new balance.

        The customer row is locked first so concurrent appends for the same
        customer serialize; the ``(customer_id, entry_number)`` unique
        constraint rejects any interleaving the lock does not cover. Nothing
        is committed here.
        """

        debit_amount = normalize_amount(debit)
        credit_amount = normalize_amount(credit)
        if debit_amount < 0 or credit_amount < 0:
            raise BillingValidationError("Ledger amounts cannot be negative")
        if debit_amount == 0 and credit_amount == 0:
            raise BillingValidationError("A ledger entry needs a debit or a credit amount")

        customer = cls._lock_customer(db, customer_id)
        previous = cls._latest_entry(db, customer_id)
        previous_balance = normalize_amount(previous.running_balance) if previous else ZERO
        next_number = (previous.entry_number + 1) if previous else 1

        new_balance = normalize_amount(previous_balance + debit_amount - credit_amount)
        entry = models.CustomerLedgerEntry(
            customer_id=customer_id,
            entry_number=next_number,
            entry_date=entry_date,
            entry_type=entry_type,
            description=description,
            debit_amount=debit_amount,
            credit_amount=credit_amount,
            running_balance=new_balance,
            reference_id=reference_id,
        )
        db.add(entry)
        cls._sync_customer_cache(customer, new_balance)
        db.add(customer)
        db.flush()

        LOGGER.debug(
            "Ledger entry appended",
            extra={
                "customer_id": customer_id,
                "entry_number": next_number,
                "entry_type": getattr(entry_type, "value", entry_type),
                "running_balance": str(new_balance),
            },
        )
        return new_balance

    @classmethod
    def _record_standalone(
        cls,
        db: Session,
        customer_id: str,
        *,
        entry_date: date,
        entry_type: models.LedgerEntryType,
        description: Optional[str],
        debit: Decimal,
        credit: Decimal,
    ) -> models.CustomerLedgerEntry:
        try:
            cls.append_entry(
                db,
                customer_id,
                entry_date=entry_date,
                entry_type=entry_type,
                description=description,
                debit=debit,
                credit=credit,
            )
            entry = cls._latest_entry(db, customer_id)
            db.commit()
        except (BillingValidationError, SQLAlchemyError):
            db.rollback()
            raise
        db.refresh(entry)
        return entry

    @classmethod
    def record_adjustment(
        cls,
        db: Session,
        customer_id: str,
        *,
        entry_date: date,
        description: str,
        debit: Decimal | int | str = 0,
        credit: Decimal | int | str = 0,
    ) -> models.CustomerLedgerEntry:
        """Commit a manual correction (e.g. a returned bottle deposit)."""

        return cls._record_standalone(
            db,
            customer_id,
            entry_date=entry_date,
            entry_type=models.LedgerEntryType.ADJUSTMENT,
            description=description,
            debit=debit,
            credit=credit,
        )

    @classmethod
    def record_advance(
        cls,
        db: Session,
        customer_id: str,
        *,
        amount: Decimal | int | str,
        entry_date: date,
        description: Optional[str] = None,
    ) -> models.CustomerLedgerEntry:
        normalized = normalize_amount(amount)
        if normalized <= 0:
            raise BillingValidationError("amount must be greater than zero")
        return cls._record_standalone(
            db,
            customer_id,
            entry_date=entry_date,
            entry_type=models.LedgerEntryType.ADVANCE,
            description=description or "Advance payment",
            debit=ZERO,
            credit=normalized,
        )

    @staticmethod
    def list_entries(
        db: Session,
        customer_id: str,
        *,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[Iterable[models.CustomerLedgerEntry], int]:
        query = db.query(models.CustomerLedgerEntry).filter(
            models.CustomerLedgerEntry.customer_id == customer_id
        )
        if start_date:
            query = query.filter(models.CustomerLedgerEntry.entry_date >= start_date)
        if end_date:
            query = query.filter(models.CustomerLedgerEntry.entry_date <= end_date)

        total = query.count()
        items = (
            query.order_by(models.CustomerLedgerEntry.entry_number.asc())
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @classmethod
    def current_balance(cls, db: Session, customer_id: str) -> Decimal:
        if db.get(models.Customer, customer_id) is None:
            raise RecordNotFoundError("Customer not found")
        latest = cls._latest_entry(db, customer_id)
        return normalize_amount(latest.running_balance) if latest else ZERO

    @staticmethod
    def _replay(
        entries: Iterable[models.CustomerLedgerEntry],
    ) -> tuple[Decimal, list[tuple[models.CustomerLedgerEntry, Decimal]]]:
        balance = ZERO
        replayed: list[tuple[models.CustomerLedgerEntry, Decimal]] = []
        for entry in entries:
            balance = normalize_amount(
                balance
                + normalize_amount(entry.debit_amount)
                - normalize_amount(entry.credit_amount)
            )
            replayed.append((entry, balance))
        return balance, replayed

    @classmethod
    def verify_customer(cls, db: Session, customer_id: str) -> LedgerVerification:
        """Replay the ledger from zero and report every drifted balance."""

        customer = db.get(models.Customer, customer_id)
        if customer is None:
            raise RecordNotFoundError("Customer not found")

        entries = (
            db.query(models.CustomerLedgerEntry)
            .filter(models.CustomerLedgerEntry.customer_id == customer_id)
            .order_by(models.CustomerLedgerEntry.entry_number.asc())
            .all()
        )
        balance, replayed = cls._replay(entries)
        drifted = [
            BalanceDrift(
                entry_number=entry.entry_number,
                stored_balance=normalize_amount(entry.running_balance),
                expected_balance=expected,
            )
            for entry, expected in replayed
            if normalize_amount(entry.running_balance) != expected
        ]
        return LedgerVerification(
            customer_id=customer_id,
            entry_count=len(entries),
            ledger_balance=balance,
            cached_balance=normalize_amount(customer.credit_balance),
            drifted_entries=drifted,
        )

    @classmethod
    def recalculate_customer(cls, db: Session, customer_id: str) -> LedgerVerification:
        """Rewrite running balances from the replay and resync the cached balance."""

        try:
            customer = cls._lock_customer(db, customer_id)
            entries = (
                db.query(models.CustomerLedgerEntry)
                .filter(models.CustomerLedgerEntry.customer_id == customer_id)
                .order_by(models.CustomerLedgerEntry.entry_number.asc())
                .all()
            )
            balance, replayed = cls._replay(entries)
            repaired = 0
            for entry, expected in replayed:
                if normalize_amount(entry.running_balance) != expected:
                    entry.running_balance = expected
                    db.add(entry)
                    repaired += 1
            cls._sync_customer_cache(customer, balance)
            db.add(customer)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

        LOGGER.info(
            "Ledger recalculated",
            extra={"customer_id": customer_id, "repaired_entries": repaired},
        )
        return cls.verify_customer(db, customer_id)

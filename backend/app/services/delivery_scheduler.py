"""Daily delivery scheduling from customer subscriptions."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .. import models
from ..delivery_patterns import DeliveryPatternError
from .errors import (
    BillingConflictError,
    BillingValidationError,
    RecordNotFoundError,
    StoreUnavailableError,
)
from .money import normalize_amount
from .subscriptions import SubscriptionService
from .vacations import VacationService

LOGGER = logging.getLogger(__name__)

MAX_SCHEDULE_RANGE_DAYS = 31


@dataclass(frozen=True)
class BatchError:
    """Failure recorded for one customer during a batch run."""

    customer_id: Optional[str]
    message: str

    def to_dict(self) -> dict[str, Optional[str]]:
        return {"customer_id": self.customer_id, "message": self.message}


@dataclass
class ScheduleResult:
    """Counters produced by scheduling one date."""

    date: date
    scheduled: int = 0
    auto_delivered: int = 0
    skipped_vacation: int = 0
    skipped_existing: int = 0
    skipped_not_due: int = 0
    held_invoiced: int = 0
    errors: list[BatchError] = field(default_factory=list)

    @property
    def skipped(self) -> int:
        return self.skipped_vacation + self.skipped_existing + self.skipped_not_due

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "scheduled": self.scheduled,
            "skipped": self.skipped,
            "auto_delivered": self.auto_delivered,
            "skipped_vacation": self.skipped_vacation,
            "skipped_existing": self.skipped_existing,
            "skipped_not_due": self.skipped_not_due,
            "held_invoiced": self.held_invoiced,
            "errors": [error.to_dict() for error in self.errors],
        }


@dataclass
class AutoDeliverResult:
    """Counters produced when closing out a date's pending deliveries."""

    date: date
    delivered: int = 0
    skipped: int = 0
    errors: list[BatchError] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {
            "date": self.date.isoformat(),
            "delivered": self.delivered,
            "skipped": self.skipped,
            "errors": [error.to_dict() for error in self.errors],
        }


class DeliverySchedulerService:
    """Create each day's deliveries from the subscription registry."""

    @staticmethod
    def _now() -> datetime:
        return datetime.now(timezone.utc)

    @staticmethod
    def _eligible_customers(db: Session) -> list[models.Customer]:
        return (
            db.query(models.Customer)
            .filter(models.Customer.is_active.is_(True))
            .filter(models.Customer.auto_deliver.is_(True))
            .filter(models.Customer.subscriptions.any(models.Subscription.is_active.is_(True)))
            .order_by(models.Customer.name.asc(), models.Customer.id.asc())
            .all()
        )

    @staticmethod
    def _customers_with_delivery(db: Session, target_date: date) -> set[str]:
        rows = (
            db.query(models.Delivery.customer_id)
            .filter(models.Delivery.delivery_date == target_date)
            .all()
        )
        return {customer_id for (customer_id,) in rows}

    @staticmethod
    def _customers_invoiced_on(db: Session, target_date: date) -> set[str]:
        rows = (
            db.query(models.Invoice.customer_id)
            .filter(models.Invoice.period_start <= target_date)
            .filter(models.Invoice.period_end >= target_date)
            .all()
        )
        return {customer_id for (customer_id,) in rows}

    @staticmethod
    def _is_invoiced(db: Session, customer_id: str, on_date: date) -> bool:
        return (
            db.query(models.Invoice.id)
            .filter(models.Invoice.customer_id == customer_id)
            .filter(models.Invoice.period_start <= on_date)
            .filter(models.Invoice.period_end >= on_date)
            .first()
            is not None
        )

    @staticmethod
    def _delivery_exists(db: Session, customer_id: str, target_date: date) -> bool:
        return (
            db.query(models.Delivery.id)
            .filter(models.Delivery.customer_id == customer_id)
            .filter(models.Delivery.delivery_date == target_date)
            .first()
            is not None
        )

    @staticmethod
    def _build_items(
        subscriptions: Iterable[models.Subscription],
    ) -> list[models.DeliveryItem]:
        items = []
        for subscription in subscriptions:
            quantity = Decimal(subscription.quantity)
            unit_price = normalize_amount(subscription.unit_price)
            items.append(
                models.DeliveryItem(
                    product_id=subscription.product_id,
                    quantity=quantity,
                    unit_price=unit_price,
                    total_amount=normalize_amount(quantity * unit_price),
                )
            )
        return items

    @classmethod
    def _due_subscriptions(
        cls, db: Session, customer_id: str, target_date: date
    ) -> list[models.Subscription]:
        subscriptions = (
            db.query(models.Subscription)
            .options(selectinload(models.Subscription.product))
            .filter(models.Subscription.customer_id == customer_id)
            .filter(models.Subscription.is_active.is_(True))
            .order_by(models.Subscription.created_at.asc(), models.Subscription.id)
            .all()
        )
        return SubscriptionService.due_on(subscriptions, target_date)

    @classmethod
    def schedule_for_date(
        cls,
        db: Session,
        target_date: date,
        *,
        mark_delivered: bool = False,
    ) -> ScheduleResult:
        """Create one delivery per eligible customer due on ``target_date``.

        Each customer is committed on its own so one failure never blocks the
        rest of the run. Running the same date twice creates nothing new.
        With ``mark_delivered`` a customer whose invoice already covers the
        date gets a pending delivery instead, counted in ``held_invoiced``.
        """

        result = ScheduleResult(date=target_date)
        try:
            customers = cls._eligible_customers(db)
            vacationing = VacationService.customers_on_vacation(db, target_date)
            existing = cls._customers_with_delivery(db, target_date)
            invoiced = cls._customers_invoiced_on(db, target_date) if mark_delivered else set()
        except OperationalError as exc:
            db.rollback()
            raise StoreUnavailableError("Record store unavailable while scheduling") from exc

        customer_ids = [customer.id for customer in customers]
        for customer_id in customer_ids:
            if customer_id in vacationing:
                result.skipped_vacation += 1
                continue
            if customer_id in existing:
                result.skipped_existing += 1
                continue

            try:
                due = cls._due_subscriptions(db, customer_id, target_date)
                if not due:
                    result.skipped_not_due += 1
                    continue

                deliver_now = mark_delivered and customer_id not in invoiced
                delivery = models.Delivery(
                    customer_id=customer_id,
                    delivery_date=target_date,
                    status=(
                        models.DeliveryStatus.DELIVERED
                        if deliver_now
                        else models.DeliveryStatus.PENDING
                    ),
                    delivery_time=cls._now() if deliver_now else None,
                    items=cls._build_items(due),
                )
                db.add(delivery)
                db.commit()
            except IntegrityError as exc:
                db.rollback()
                if cls._delivery_exists(db, customer_id, target_date):
                    LOGGER.info(
                        "Delivery created concurrently; skipping",
                        extra={"customer_id": customer_id, "date": target_date.isoformat()},
                    )
                    result.skipped_existing += 1
                else:
                    result.errors.append(BatchError(customer_id, str(exc.orig or exc)))
                continue
            except (SQLAlchemyError, DeliveryPatternError) as exc:
                db.rollback()
                LOGGER.warning(
                    "Failed to schedule delivery",
                    extra={"customer_id": customer_id, "date": target_date.isoformat()},
                    exc_info=exc,
                )
                result.errors.append(BatchError(customer_id, str(exc)))
                continue

            result.scheduled += 1
            if deliver_now:
                result.auto_delivered += 1
            elif mark_delivered:
                LOGGER.warning(
                    "Delivery left pending inside an invoiced period",
                    extra={"customer_id": customer_id, "date": target_date.isoformat()},
                )
                result.held_invoiced += 1

        LOGGER.info("Delivery schedule completed", extra=result.to_dict())
        return result

    @classmethod
    def schedule_for_range(
        cls,
        db: Session,
        start_date: date,
        days: int,
        *,
        mark_delivered: bool = False,
    ) -> list[ScheduleResult]:
        if days < 1 or days > MAX_SCHEDULE_RANGE_DAYS:
            raise BillingValidationError(
                f"days must be between 1 and {MAX_SCHEDULE_RANGE_DAYS}"
            )
        return [
            cls.schedule_for_date(
                db, start_date + timedelta(days=offset), mark_delivered=mark_delivered
            )
            for offset in range(days)
        ]

    @classmethod
    def auto_deliver_pending(cls, db: Session, target_date: date) -> AutoDeliverResult:
        """Mark the date's pending deliveries as delivered.

        A pending delivery without items is filled from the customer's due
        subscriptions first; if none are due it is left pending. Deliveries
        inside an already invoiced period are also left pending and counted
        as skipped.
        """

        result = AutoDeliverResult(date=target_date)
        pending_ids = [
            delivery_id
            for (delivery_id,) in db.query(models.Delivery.id)
            .filter(models.Delivery.delivery_date == target_date)
            .filter(models.Delivery.status == models.DeliveryStatus.PENDING)
            .order_by(models.Delivery.created_at.asc(), models.Delivery.id)
            .all()
        ]

        for delivery_id in pending_ids:
            customer_id = None
            try:
                delivery = db.get(models.Delivery, delivery_id)
                customer_id = delivery.customer_id
                if cls._is_invoiced(db, customer_id, target_date):
                    LOGGER.warning(
                        "Pending delivery inside an invoiced period; not delivering",
                        extra={"delivery_id": delivery_id, "date": target_date.isoformat()},
                    )
                    result.skipped += 1
                    continue
                if not delivery.items:
                    due = cls._due_subscriptions(db, customer_id, target_date)
                    if not due:
                        result.skipped += 1
                        continue
                    delivery.items.extend(cls._build_items(due))
                delivery.status = models.DeliveryStatus.DELIVERED
                delivery.delivery_time = cls._now()
                db.add(delivery)
                db.commit()
            except (SQLAlchemyError, DeliveryPatternError) as exc:
                db.rollback()
                LOGGER.warning(
                    "Failed to auto-deliver",
                    extra={"delivery_id": delivery_id, "date": target_date.isoformat()},
                    exc_info=exc,
                )
                result.errors.append(BatchError(customer_id, str(exc)))
                continue
            result.delivered += 1

        LOGGER.info("Pending deliveries closed", extra=result.to_dict())
        return result

    @staticmethod
    def list_deliveries(
        db: Session,
        *,
        delivery_date: Optional[date] = None,
        customer_id: Optional[str] = None,
        status: Optional[models.DeliveryStatus] = None,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[Iterable[models.Delivery], int]:
        query = db.query(models.Delivery).options(selectinload(models.Delivery.items))
        if delivery_date:
            query = query.filter(models.Delivery.delivery_date == delivery_date)
        if customer_id:
            query = query.filter(models.Delivery.customer_id == customer_id)
        if status:
            query = query.filter(models.Delivery.status == status)

        total = query.count()
        items = (
            query.order_by(models.Delivery.delivery_date.desc(), models.Delivery.customer_id)
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @classmethod
    def update_status(
        cls, db: Session, delivery_id: str, status: models.DeliveryStatus
    ) -> models.Delivery:
        delivery = db.get(models.Delivery, delivery_id)
        if delivery is None:
            raise RecordNotFoundError("Delivery not found")

        current = models.DeliveryStatus(delivery.status)
        target = models.DeliveryStatus(status)
        crosses_billing = (current == models.DeliveryStatus.DELIVERED) != (
            target == models.DeliveryStatus.DELIVERED
        )
        if crosses_billing and cls._is_invoiced(db, delivery.customer_id, delivery.delivery_date):
            raise BillingConflictError(
                "Delivery belongs to an invoiced period and cannot change billing status"
            )

        delivery.status = target
        if target == models.DeliveryStatus.DELIVERED and delivery.delivery_time is None:
            delivery.delivery_time = cls._now()
        try:
            db.add(delivery)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        db.refresh(delivery)
        return delivery


__all__ = [
    "AutoDeliverResult",
    "BatchError",
    "DeliverySchedulerService",
    "MAX_SCHEDULE_RANGE_DAYS",
    "ScheduleResult",
]

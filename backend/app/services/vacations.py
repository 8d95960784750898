"""Lookups and staff operations for customer vacation pauses."""

from __future__ import annotations

import logging
from datetime import date
from typing import Iterable, Optional, Tuple

from sqlalchemy.orm import Session

from .. import models
from .errors import BillingValidationError, RecordNotFoundError

LOGGER = logging.getLogger(__name__)


class VacationService:
    """Answer whether a customer's deliveries are paused on a date."""

    @staticmethod
    def _active_on(target_date: date):
        return (
            models.VacationWindow.is_active.is_(True),
            models.VacationWindow.start_date <= target_date,
            models.VacationWindow.end_date >= target_date,
        )

    @classmethod
    def is_on_vacation(cls, db: Session, customer_id: str, target_date: date) -> bool:
        return (
            db.query(models.VacationWindow.id)
            .filter(models.VacationWindow.customer_id == customer_id)
            .filter(*cls._active_on(target_date))
            .first()
            is not None
        )

    @classmethod
    def customers_on_vacation(cls, db: Session, target_date: date) -> set[str]:
        """Return the ids of every customer paused on ``target_date``."""

        rows = (
            db.query(models.VacationWindow.customer_id)
            .filter(*cls._active_on(target_date))
            .distinct()
            .all()
        )
        return {customer_id for (customer_id,) in rows}

    @staticmethod
    def create_window(
        db: Session,
        *,
        customer_id: str,
        start_date: date,
        end_date: date,
        reason: Optional[str] = None,
    ) -> models.VacationWindow:
        if end_date < start_date:
            raise BillingValidationError("end_date cannot be before start_date")
        if db.get(models.Customer, customer_id) is None:
            raise RecordNotFoundError("Customer not found")

        window = models.VacationWindow(
            customer_id=customer_id,
            start_date=start_date,
            end_date=end_date,
            reason=reason,
        )
        db.add(window)
        db.commit()
        db.refresh(window)
        LOGGER.info(
            "Vacation window created",
            extra={
                "customer_id": customer_id,
                "start_date": start_date.isoformat(),
                "end_date": end_date.isoformat(),
            },
        )
        return window

    @staticmethod
    def deactivate_window(db: Session, vacation_id: str) -> models.VacationWindow:
        window = db.get(models.VacationWindow, vacation_id)
        if window is None:
            raise RecordNotFoundError("Vacation window not found")
        window.is_active = False
        db.add(window)
        db.commit()
        db.refresh(window)
        return window

    @staticmethod
    def list_windows(
        db: Session,
        *,
        customer_id: Optional[str] = None,
        active_on: Optional[date] = None,
        include_inactive: bool = False,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[Iterable[models.VacationWindow], int]:
        query = db.query(models.VacationWindow)
        if customer_id:
            query = query.filter(models.VacationWindow.customer_id == customer_id)
        if not include_inactive:
            query = query.filter(models.VacationWindow.is_active.is_(True))
        if active_on:
            query = query.filter(
                models.VacationWindow.start_date <= active_on,
                models.VacationWindow.end_date >= active_on,
            )

        total = query.count()
        items = (
            query.order_by(models.VacationWindow.start_date.desc())
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

"""Business logic for customer product subscriptions."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional, Tuple

from sqlalchemy.orm import Session, selectinload

from .. import models, schemas
from ..delivery_patterns import DeliveryPatternError, parse_delivery_pattern
from .errors import BillingValidationError, RecordNotFoundError

LOGGER = logging.getLogger(__name__)


class SubscriptionService:
    """Operations to read and maintain the subscription registry."""

    @staticmethod
    def list_subscriptions(
        db: Session,
        *,
        customer_id: Optional[str] = None,
        product_id: Optional[str] = None,
        active_only: bool = True,
        skip: int = 0,
        limit: int = 100,
    ) -> Tuple[Iterable[models.Subscription], int]:
        query = db.query(models.Subscription).options(
            selectinload(models.Subscription.product)
        )
        if customer_id:
            query = query.filter(models.Subscription.customer_id == customer_id)
        if product_id:
            query = query.filter(models.Subscription.product_id == product_id)
        if active_only:
            query = query.filter(models.Subscription.is_active.is_(True))

        total = query.count()
        items = (
            query.order_by(models.Subscription.created_at.asc(), models.Subscription.id)
            .offset(max(skip, 0))
            .limit(max(limit, 1))
            .all()
        )
        return items, total

    @staticmethod
    def due_on(
        subscriptions: Iterable[models.Subscription], target_date: date
    ) -> list[models.Subscription]:
        """Active subscriptions whose pattern selects ``target_date``."""

        return [subscription for subscription in subscriptions if subscription.is_due_on(target_date)]

    @staticmethod
    def _validate_pattern(raw_pattern):
        try:
            return parse_delivery_pattern(raw_pattern)
        except DeliveryPatternError as exc:
            raise BillingValidationError(str(exc)) from exc

    @classmethod
    def create_subscription(
        cls, db: Session, data: schemas.SubscriptionCreate
    ) -> models.Subscription:
        if db.get(models.Customer, data.customer_id) is None:
            raise RecordNotFoundError("Customer not found")
        product = db.get(models.Product, data.product_id)
        if product is None:
            raise RecordNotFoundError("Product not found")
        if data.quantity <= 0:
            raise BillingValidationError("quantity must be greater than zero")

        subscription = models.Subscription(
            customer_id=data.customer_id,
            product_id=data.product_id,
            quantity=Decimal(data.quantity),
            custom_price=data.custom_price,
            delivery_pattern=cls._validate_pattern(data.delivery_pattern),
            is_active=data.is_active,
        )
        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        LOGGER.info(
            "Subscription created",
            extra={
                "customer_id": subscription.customer_id,
                "product_id": subscription.product_id,
                "pattern": subscription.delivery_pattern.kind,
            },
        )
        return subscription

    @classmethod
    def update_subscription(
        cls, db: Session, subscription_id: str, data: schemas.SubscriptionUpdate
    ) -> models.Subscription:
        subscription = db.get(models.Subscription, subscription_id)
        if subscription is None:
            raise RecordNotFoundError("Subscription not found")

        updates = data.model_dump(exclude_unset=True)
        if "quantity" in updates:
            if updates["quantity"] is None or updates["quantity"] <= 0:
                raise BillingValidationError("quantity must be greater than zero")
            subscription.quantity = Decimal(updates["quantity"])
        if "custom_price" in updates:
            subscription.custom_price = updates["custom_price"]
        if "delivery_pattern" in updates and updates["delivery_pattern"] is not None:
            subscription.delivery_pattern = cls._validate_pattern(data.delivery_pattern)
        if "is_active" in updates and updates["is_active"] is not None:
            subscription.is_active = updates["is_active"]

        db.add(subscription)
        db.commit()
        db.refresh(subscription)
        return subscription

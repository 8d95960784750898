"""Sum delivered items per customer and product for a billing period."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from sqlalchemy import distinct, func
from sqlalchemy.orm import Session

from .. import models
from .money import ZERO, normalize_amount


@dataclass(frozen=True)
class AggregatedLine:
    product_id: str
    quantity: Decimal
    total_amount: Decimal


@dataclass
class CustomerAggregation:
    """Everything billable for one customer in one period."""

    customer_id: str
    period_start: date
    period_end: date
    delivery_count: int = 0
    lines: list[AggregatedLine] = field(default_factory=list)

    @property
    def total_amount(self) -> Decimal:
        return normalize_amount(sum((line.total_amount for line in self.lines), ZERO))


class DeliveryAggregator:
    """Read-only view over delivered items; only ``delivered`` visits count."""

    @staticmethod
    def _delivered_in_period(query, period_start: date, period_end: date):
        return query.filter(models.Delivery.status == models.DeliveryStatus.DELIVERED).filter(
            models.Delivery.delivery_date >= period_start,
            models.Delivery.delivery_date <= period_end,
        )

    @classmethod
    def aggregate_period(
        cls,
        db: Session,
        period_start: date,
        period_end: date,
        customer_ids: Optional[Iterable[str]] = None,
    ) -> dict[str, CustomerAggregation]:
        """Return one aggregation per customer that had delivered items."""

        ids = list(customer_ids) if customer_ids is not None else None
        if ids is not None and not ids:
            return {}

        line_query = cls._delivered_in_period(
            db.query(
                models.Delivery.customer_id,
                models.DeliveryItem.product_id,
                func.sum(models.DeliveryItem.quantity),
                func.sum(models.DeliveryItem.total_amount),
            ).join(models.DeliveryItem, models.DeliveryItem.delivery_id == models.Delivery.id),
            period_start,
            period_end,
        )
        count_query = cls._delivered_in_period(
            db.query(
                models.Delivery.customer_id,
                func.count(distinct(models.Delivery.id)),
            ).join(models.DeliveryItem, models.DeliveryItem.delivery_id == models.Delivery.id),
            period_start,
            period_end,
        )
        if ids is not None:
            line_query = line_query.filter(models.Delivery.customer_id.in_(ids))
            count_query = count_query.filter(models.Delivery.customer_id.in_(ids))

        aggregations: dict[str, CustomerAggregation] = {}
        for customer_id, product_id, quantity, total in (
            line_query.group_by(models.Delivery.customer_id, models.DeliveryItem.product_id)
            .order_by(models.Delivery.customer_id, models.DeliveryItem.product_id)
            .all()
        ):
            aggregation = aggregations.setdefault(
                customer_id,
                CustomerAggregation(
                    customer_id=customer_id,
                    period_start=period_start,
                    period_end=period_end,
                ),
            )
            aggregation.lines.append(
                AggregatedLine(
                    product_id=product_id,
                    quantity=Decimal(str(quantity or 0)),
                    total_amount=normalize_amount(total),
                )
            )

        for customer_id, delivery_count in count_query.group_by(models.Delivery.customer_id).all():
            if customer_id in aggregations:
                aggregations[customer_id].delivery_count = int(delivery_count)

        return aggregations

    @classmethod
    def aggregate_customer(
        cls,
        db: Session,
        customer_id: str,
        period_start: date,
        period_end: date,
    ) -> CustomerAggregation:
        aggregations = cls.aggregate_period(db, period_start, period_end, [customer_id])
        return aggregations.get(
            customer_id,
            CustomerAggregation(
                customer_id=customer_id,
                period_start=period_start,
                period_end=period_end,
            ),
        )

"""Router containing subscription registry operations."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import SubscriptionService

router = APIRouter()


@router.get("", response_model=schemas.SubscriptionListResponse)
def list_subscriptions(
    customer_id: Optional[str] = Query(None, description="Filter by customer"),
    product_id: Optional[str] = Query(None, description="Filter by product"),
    include_inactive: bool = Query(False, description="Include paused subscriptions"),
    skip: int = Query(0, ge=0, description="Number of subscriptions to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of subscriptions to return"),
    db: Session = Depends(get_db),
) -> schemas.SubscriptionListResponse:
    items, total = SubscriptionService.list_subscriptions(
        db,
        customer_id=customer_id,
        product_id=product_id,
        active_only=not include_inactive,
        skip=skip,
        limit=limit,
    )
    return schemas.SubscriptionListResponse(items=items, total=total, limit=limit, skip=skip)


@router.post("", response_model=schemas.SubscriptionRead, status_code=status.HTTP_201_CREATED)
def create_subscription(
    subscription_in: schemas.SubscriptionCreate, db: Session = Depends(get_db)
) -> schemas.SubscriptionRead:
    """Subscribe a customer to a product with a delivery pattern."""
    return SubscriptionService.create_subscription(db, subscription_in)


@router.patch("/{subscription_id}", response_model=schemas.SubscriptionRead)
def update_subscription(
    subscription_id: str,
    subscription_in: schemas.SubscriptionUpdate,
    db: Session = Depends(get_db),
) -> schemas.SubscriptionRead:
    return SubscriptionService.update_subscription(db, subscription_id, subscription_in)

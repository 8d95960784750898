"""Router exposing delivery scheduling and delivery records."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..services import DeliverySchedulerService

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.post("/schedule", response_model=schemas.ScheduleResultRead)
def schedule_deliveries(
    payload: schemas.ScheduleRequest, db: Session = Depends(get_db)
) -> schemas.ScheduleResultRead:
    """Create deliveries for every due subscription on the given date."""

    result = DeliverySchedulerService.schedule_for_date(
        db, payload.target_date, mark_delivered=payload.mark_delivered
    )
    return schemas.ScheduleResultRead.model_validate(result)


@router.post("/schedule-range", response_model=schemas.ScheduleRangeResultRead)
def schedule_delivery_range(
    payload: schemas.ScheduleRangeRequest, db: Session = Depends(get_db)
) -> schemas.ScheduleRangeResultRead:
    results = DeliverySchedulerService.schedule_for_range(
        db,
        payload.start_date,
        payload.days,
        mark_delivered=payload.mark_delivered,
    )
    return schemas.ScheduleRangeResultRead(
        results=[schemas.ScheduleResultRead.model_validate(result) for result in results],
        scheduled=sum(result.scheduled for result in results),
        skipped=sum(result.skipped for result in results),
        errors=sum(len(result.errors) for result in results),
    )


@router.post("/auto-deliver", response_model=schemas.AutoDeliverResultRead)
def auto_deliver(
    payload: schemas.AutoDeliverRequest, db: Session = Depends(get_db)
) -> schemas.AutoDeliverResultRead:
    """Mark the date's pending deliveries as delivered, outside invoiced periods."""

    result = DeliverySchedulerService.auto_deliver_pending(db, payload.target_date)
    return schemas.AutoDeliverResultRead.model_validate(result)


@router.get("", response_model=schemas.DeliveryListResponse)
def list_deliveries(
    db: Session = Depends(get_db),
    delivery_date: Optional[date] = Query(None, description="Filter by delivery date"),
    customer_id: Optional[str] = Query(None, description="Filter by customer"),
    delivery_status: Optional[models.DeliveryStatus] = Query(
        None, alias="status", description="Filter by delivery status"
    ),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of records to return"),
) -> schemas.DeliveryListResponse:
    try:
        items, total = DeliverySchedulerService.list_deliveries(
            db,
            delivery_date=delivery_date,
            customer_id=customer_id,
            status=delivery_status,
            skip=skip,
            limit=limit,
        )
    except SQLAlchemyError as exc:
        LOGGER.exception(
            "Failed to list deliveries",
            exc_info=exc,
            extra={"delivery_date": str(delivery_date) if delivery_date else None},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Could not load deliveries. Try again later."},
        )
    return schemas.DeliveryListResponse(items=items, total=total, limit=limit, skip=skip)


@router.patch("/{delivery_id}/status", response_model=schemas.DeliveryRead)
def update_delivery_status(
    delivery_id: str,
    payload: schemas.DeliveryStatusUpdate,
    db: Session = Depends(get_db),
) -> schemas.DeliveryRead:
    return DeliverySchedulerService.update_status(db, delivery_id, payload.status)

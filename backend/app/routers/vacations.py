"""Router for customer vacation windows."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from .. import schemas
from ..database import get_db
from ..services import VacationService

router = APIRouter()


@router.get("", response_model=schemas.VacationListResponse)
def list_vacations(
    customer_id: Optional[str] = Query(None, description="Filter by customer"),
    active_on: Optional[date] = Query(None, description="Only windows covering this date"),
    include_inactive: bool = Query(False, description="Include deactivated windows"),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> schemas.VacationListResponse:
    items, total = VacationService.list_windows(
        db,
        customer_id=customer_id,
        active_on=active_on,
        include_inactive=include_inactive,
        skip=skip,
        limit=limit,
    )
    return schemas.VacationListResponse(items=items, total=total, limit=limit, skip=skip)


@router.post("", response_model=schemas.VacationRead, status_code=status.HTTP_201_CREATED)
def create_vacation(
    vacation_in: schemas.VacationCreate, db: Session = Depends(get_db)
) -> schemas.VacationRead:
    """Pause deliveries for a customer over an inclusive date range."""
    return VacationService.create_window(
        db,
        customer_id=vacation_in.customer_id,
        start_date=vacation_in.start_date,
        end_date=vacation_in.end_date,
        reason=vacation_in.reason,
    )


@router.post("/{vacation_id}/deactivate", response_model=schemas.VacationRead)
def deactivate_vacation(vacation_id: str, db: Session = Depends(get_db)) -> schemas.VacationRead:
    return VacationService.deactivate_window(db, vacation_id)

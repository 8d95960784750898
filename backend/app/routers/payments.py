"""Router exposing payment related operations."""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..services import PaymentService

LOGGER = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=schemas.PaymentRecordRead, status_code=status.HTTP_201_CREATED)
def record_payment(
    payload: schemas.PaymentCreate, db: Session = Depends(get_db)
) -> schemas.PaymentRecordRead:
    """Record a payment against an invoice or as general credit."""

    result = PaymentService.record_payment(
        db,
        customer_id=payload.customer_id,
        amount=payload.amount,
        mode=payload.mode,
        payment_date=payload.payment_date,
        invoice_id=payload.invoice_id,
        notes=payload.notes,
        reference_number=payload.reference_number,
    )

    invoice_read = None
    if result.invoice is not None:
        invoice_read = schemas.InvoiceRead.model_validate(result.invoice).model_copy(
            update={"effective_status": result.invoice.effective_status()}
        )
    return schemas.PaymentRecordRead(
        payment=schemas.PaymentRead.model_validate(result.payment),
        invoice=invoice_read,
        applied_amount=result.applied_amount,
        excess_amount=result.excess_amount,
        running_balance=result.running_balance,
    )


@router.get("", response_model=schemas.PaymentListResponse)
def list_payments(
    db: Session = Depends(get_db),
    customer_id: Optional[str] = Query(None, description="Filter by customer"),
    invoice_id: Optional[str] = Query(None, description="Filter by invoice"),
    start_date: Optional[date] = Query(None, description="Return payments on or after this date"),
    end_date: Optional[date] = Query(None, description="Return payments on or before this date"),
    mode: Optional[models.PaymentMode] = Query(None, description="Filter by payment mode"),
    min_amount: Optional[Decimal] = Query(None, ge=0, description="Minimum amount threshold"),
    max_amount: Optional[Decimal] = Query(None, ge=0, description="Maximum amount threshold"),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of records to return"),
) -> schemas.PaymentListResponse:
    """Return payments with pagination and filters."""

    if start_date and end_date and start_date > end_date:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="start_date cannot be after end_date",
        )

    if min_amount is not None and max_amount is not None and min_amount > max_amount:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="min_amount cannot be greater than max_amount",
        )

    try:
        items, total = PaymentService.list_payments(
            db,
            customer_id=customer_id,
            invoice_id=invoice_id,
            start_date=start_date,
            end_date=end_date,
            mode=mode,
            min_amount=min_amount,
            max_amount=max_amount,
            skip=skip,
            limit=limit,
        )
    except SQLAlchemyError as exc:
        LOGGER.exception(
            "Failed to list payments",
            exc_info=exc,
            extra={
                "start_date": str(start_date) if start_date else None,
                "end_date": str(end_date) if end_date else None,
                "limit": limit,
                "skip": skip,
            },
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Could not load payments. Try again later."},
        )

    return schemas.PaymentListResponse(items=items, total=total, limit=limit, skip=skip)


@router.get("/{payment_id}", response_model=schemas.PaymentRead)
def get_payment(payment_id: str, db: Session = Depends(get_db)) -> schemas.PaymentRead:
    payment = PaymentService.get_payment(db, payment_id)
    if payment is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Payment not found")
    return payment

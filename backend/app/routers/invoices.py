"""Router exposing invoice generation, listing and documents."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..services import (
    BillingNotifier,
    BillingSettings,
    InvoiceDocumentService,
    InvoiceService,
)

LOGGER = logging.getLogger(__name__)

router = APIRouter()


def _invoice_read(invoice: models.Invoice, today: Optional[date] = None) -> schemas.InvoiceRead:
    read = schemas.InvoiceRead.model_validate(invoice)
    return read.model_copy(update={"effective_status": invoice.effective_status(today)})


@router.post("/generate", response_model=schemas.InvoiceGenerationResultRead)
def generate_monthly_invoices(
    payload: schemas.InvoiceGenerateRequest, db: Session = Depends(get_db)
) -> schemas.InvoiceGenerationResultRead:
    """Invoice every active customer for the delivered items of one month."""

    settings = BillingSettings.from_env()
    result = InvoiceService.generate_monthly_invoices(
        db, payload.year, payload.month, settings=settings
    )
    if result.generated:
        BillingNotifier.from_env(settings.large_transaction_threshold).invoices_generated(result)
    return schemas.InvoiceGenerationResultRead.model_validate(result)


@router.post("", response_model=schemas.InvoiceRead, status_code=status.HTTP_201_CREATED)
def create_invoice(
    payload: schemas.InvoiceCreate, db: Session = Depends(get_db)
) -> schemas.InvoiceRead:
    """Bill a single customer for an explicit period."""

    invoice = InvoiceService.generate_invoice(
        db,
        payload.customer_id,
        payload.period_start,
        payload.period_end,
        notes=payload.notes,
    )
    return _invoice_read(invoice)


@router.get("", response_model=schemas.InvoiceListResponse)
def list_invoices(
    db: Session = Depends(get_db),
    customer_id: Optional[str] = Query(None, description="Filter by customer"),
    payment_status: Optional[models.PaymentStatus] = Query(
        None, alias="status", description="Filter by effective payment status"
    ),
    period_start: Optional[date] = Query(
        None, description="Return invoices whose period starts on or after this date"
    ),
    period_end: Optional[date] = Query(
        None, description="Return invoices whose period ends on or before this date"
    ),
    skip: int = Query(0, ge=0, description="Number of records to skip"),
    limit: int = Query(50, ge=1, le=200, description="Maximum number of records to return"),
) -> schemas.InvoiceListResponse:
    if period_start and period_end and period_start > period_end:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="period_start cannot be after period_end",
        )

    today = date.today()
    try:
        items, total = InvoiceService.list_invoices(
            db,
            customer_id=customer_id,
            status=payment_status,
            period_start=period_start,
            period_end=period_end,
            today=today,
            skip=skip,
            limit=limit,
        )
    except SQLAlchemyError as exc:
        LOGGER.exception(
            "Failed to list invoices",
            exc_info=exc,
            extra={"customer_id": customer_id, "limit": limit, "skip": skip},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": "Could not load invoices. Try again later."},
        )

    items = list(items)
    return schemas.InvoiceListResponse(
        items=[_invoice_read(invoice, today) for invoice in items],
        total=total,
        limit=limit,
        skip=skip,
        outstanding_amount=InvoiceService.outstanding_balance(items),
    )


@router.get("/{invoice_id}", response_model=schemas.InvoiceRead)
def get_invoice(invoice_id: str, db: Session = Depends(get_db)) -> schemas.InvoiceRead:
    invoice = InvoiceService.get_invoice(db, invoice_id)
    if invoice is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Invoice not found")
    return _invoice_read(invoice)


@router.get(
    "/{invoice_id}/pdf",
    response_class=Response,
    responses={200: {"content": {"application/pdf": {}}}},
)
def download_invoice_pdf(invoice_id: str, db: Session = Depends(get_db)) -> Response:
    """Render the invoice as a printable PDF."""

    document = InvoiceDocumentService.build_document(db, invoice_id)
    content = InvoiceDocumentService.render_pdf(document)
    filename = f"{document.invoice_number}.pdf"
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{filename}"'},
    )

"""Router exposing customer ledgers and reconciliation checks."""

from __future__ import annotations

from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from .. import models, schemas
from ..database import get_db
from ..services import LedgerIntegrityService, LedgerService
from ..services.money import normalize_amount

router = APIRouter()


@router.get("/integrity", response_model=schemas.LedgerIntegrityReportRead)
def ledger_integrity(db: Session = Depends(get_db)) -> schemas.LedgerIntegrityReportRead:
    """Compare cached balances, invoices and payments against the ledger."""

    report = LedgerIntegrityService.integrity_report(db)
    return schemas.LedgerIntegrityReportRead.model_validate(report)


@router.get("/customers/{customer_id}", response_model=schemas.LedgerStatementResponse)
def customer_statement(
    customer_id: str,
    db: Session = Depends(get_db),
    start_date: Optional[date] = Query(None, description="Entries on or after this date"),
    end_date: Optional[date] = Query(None, description="Entries on or before this date"),
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=500),
) -> schemas.LedgerStatementResponse:
    customer = db.get(models.Customer, customer_id)
    if customer is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Customer not found")

    balance = LedgerService.current_balance(db, customer_id)
    items, total = LedgerService.list_entries(
        db,
        customer_id,
        start_date=start_date,
        end_date=end_date,
        skip=skip,
        limit=limit,
    )
    return schemas.LedgerStatementResponse(
        items=items,
        total=total,
        limit=limit,
        skip=skip,
        customer_id=customer_id,
        balance=balance,
        advance_balance=normalize_amount(max(-balance, 0)),
    )


@router.post(
    "/customers/{customer_id}/adjustments",
    response_model=schemas.LedgerEntryRead,
    status_code=status.HTTP_201_CREATED,
)
def create_adjustment(
    customer_id: str,
    payload: schemas.LedgerAdjustmentCreate,
    db: Session = Depends(get_db),
) -> schemas.LedgerEntryRead:
    return LedgerService.record_adjustment(
        db,
        customer_id,
        entry_date=payload.entry_date,
        description=payload.description,
        debit=payload.debit,
        credit=payload.credit,
    )


@router.post(
    "/customers/{customer_id}/advances",
    response_model=schemas.LedgerEntryRead,
    status_code=status.HTTP_201_CREATED,
)
def create_advance(
    customer_id: str,
    payload: schemas.LedgerAdvanceCreate,
    db: Session = Depends(get_db),
) -> schemas.LedgerEntryRead:
    return LedgerService.record_advance(
        db,
        customer_id,
        amount=payload.amount,
        entry_date=payload.entry_date,
        description=payload.description,
    )


@router.get(
    "/customers/{customer_id}/verify", response_model=schemas.LedgerVerificationRead
)
def verify_customer_ledger(
    customer_id: str, db: Session = Depends(get_db)
) -> schemas.LedgerVerificationRead:
    verification = LedgerService.verify_customer(db, customer_id)
    return schemas.LedgerVerificationRead.model_validate(verification)


@router.post(
    "/customers/{customer_id}/recalculate", response_model=schemas.LedgerVerificationRead
)
def recalculate_customer_ledger(
    customer_id: str, db: Session = Depends(get_db)
) -> schemas.LedgerVerificationRead:
    """Rewrite running balances from zero and resync the cached balances."""

    verification = LedgerService.recalculate_customer(db, customer_id)
    return schemas.LedgerVerificationRead.model_validate(verification)

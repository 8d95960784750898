from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

from ..models.ledger import LedgerEntryType
from .common import PaginatedResponse


class LedgerEntryRead(BaseModel):
    id: str
    customer_id: str
    entry_number: int
    entry_date: date
    entry_type: LedgerEntryType
    description: Optional[str] = None
    debit_amount: Decimal
    credit_amount: Decimal
    running_balance: Decimal
    reference_id: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerStatementResponse(PaginatedResponse[LedgerEntryRead]):
    """Ledger entries in insertion order plus the customer's current position."""

    customer_id: str
    balance: Decimal = Field(..., description="Amount owed; negative means advance")
    advance_balance: Decimal


class LedgerAdjustmentCreate(BaseModel):
    entry_date: date
    description: str = Field(..., min_length=1)
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)

    @model_validator(mode="after")
    def _require_amount(self):
        if self.debit == 0 and self.credit == 0:
            raise ValueError("Provide a debit or a credit amount")
        return self


class LedgerAdvanceCreate(BaseModel):
    amount: Decimal = Field(..., gt=0)
    entry_date: date
    description: Optional[str] = None


class BalanceDriftRead(BaseModel):
    entry_number: int
    stored_balance: Decimal
    expected_balance: Decimal

    model_config = ConfigDict(from_attributes=True)


class LedgerVerificationRead(BaseModel):
    customer_id: str
    entry_count: int
    ledger_balance: Decimal
    cached_balance: Decimal
    drifted_entries: list[BalanceDriftRead]
    cache_in_sync: bool
    is_consistent: bool

    model_config = ConfigDict(from_attributes=True)


class BalanceMismatchRead(BaseModel):
    customer_id: str
    customer_name: str
    cached_balance: Decimal
    ledger_balance: Decimal
    difference: Decimal

    model_config = ConfigDict(from_attributes=True)


class LedgerIntegrityReportRead(BaseModel):
    customers_checked: int
    balance_mismatches: list[BalanceMismatchRead]
    invoices_without_debit: list[str]
    payments_without_credit: list[str]
    is_clean: bool

    model_config = ConfigDict(from_attributes=True)

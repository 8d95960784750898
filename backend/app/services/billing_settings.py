"""Environment driven settings for invoicing and payment handling."""

from __future__ import annotations

import os
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

TAX_RATE_ENV = "BILLING_TAX_RATE"
FLAT_DISCOUNT_ENV = "BILLING_FLAT_DISCOUNT"
DUE_DAYS_ENV = "BILLING_DUE_DAYS"
LARGE_TRANSACTION_ENV = "BILLING_LARGE_TRANSACTION_THRESHOLD"
INVOICE_PREFIX_ENV = "BILLING_INVOICE_PREFIX"
DAIRY_NAME_ENV = "DAIRY_NAME"
DAIRY_ADDRESS_ENV = "DAIRY_ADDRESS"
DAIRY_PHONE_ENV = "DAIRY_PHONE"

DEFAULT_DUE_DAYS = 15
DEFAULT_LARGE_TRANSACTION_THRESHOLD = Decimal("10000")
DEFAULT_INVOICE_PREFIX = "INV"


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer") from exc
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


def _read_decimal_env(name: str, default: Decimal) -> Decimal:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        value = Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValueError(f"{name} must be a decimal number") from exc
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return value


@dataclass(frozen=True)
class BillingSettings:
    """Flat tax/discount rule plus the knobs around invoices and payments."""

    tax_rate_percent: Decimal = Decimal("0")
    flat_discount: Decimal = Decimal("0")
    due_days: int = DEFAULT_DUE_DAYS
    large_transaction_threshold: Decimal = DEFAULT_LARGE_TRANSACTION_THRESHOLD
    invoice_prefix: str = DEFAULT_INVOICE_PREFIX
    dairy_name: str = "Dairy"
    dairy_address: str = ""
    dairy_phone: str = ""

    @classmethod
    def from_env(cls) -> "BillingSettings":
        prefix = (os.getenv(INVOICE_PREFIX_ENV) or DEFAULT_INVOICE_PREFIX).strip()
        return cls(
            tax_rate_percent=_read_decimal_env(TAX_RATE_ENV, Decimal("0")),
            flat_discount=_read_decimal_env(FLAT_DISCOUNT_ENV, Decimal("0")),
            due_days=_read_int_env(DUE_DAYS_ENV, DEFAULT_DUE_DAYS),
            large_transaction_threshold=_read_decimal_env(
                LARGE_TRANSACTION_ENV, DEFAULT_LARGE_TRANSACTION_THRESHOLD
            ),
            invoice_prefix=prefix or DEFAULT_INVOICE_PREFIX,
            dairy_name=os.getenv(DAIRY_NAME_ENV, "Dairy"),
            dairy_address=os.getenv(DAIRY_ADDRESS_ENV, ""),
            dairy_phone=os.getenv(DAIRY_PHONE_ENV, ""),
        )

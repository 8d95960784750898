"""Routers package."""

from .deliveries import router as deliveries_router
from .invoices import router as invoices_router
from .ledger import router as ledger_router
from .payments import router as payments_router
from .subscriptions import router as subscriptions_router
from .vacations import router as vacations_router

__all__ = [
    "deliveries_router",
    "invoices_router",
    "ledger_router",
    "payments_router",
    "subscriptions_router",
    "vacations_router",
]

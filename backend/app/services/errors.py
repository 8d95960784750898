"""Exception hierarchy shared by the billing services."""

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, OperationalError


class BillingError(RuntimeError):
    """Base class for failures raised by the billing engine."""


class BillingValidationError(BillingError):
    """Input was rejected before anything was written."""


class RecordNotFoundError(BillingValidationError):
    """A referenced customer, invoice or delivery does not exist."""


class BillingConflictError(BillingError):
    """The record being created already exists."""


class LedgerConsistencyError(BillingError):
    """A ledger append failed after a dependent write; both were rolled back."""


class StoreUnavailableError(BillingError):
    """The record store could not be reached. The operation may be retried."""


def is_transient_store_error(exc: BaseException) -> bool:
    if isinstance(exc, OperationalError):
        return True
    return isinstance(exc, DBAPIError) and bool(exc.connection_invalidated)


__all__ = [
    "BillingConflictError",
    "BillingError",
    "BillingValidationError",
    "LedgerConsistencyError",
    "RecordNotFoundError",
    "StoreUnavailableError",
    "is_transient_store_error",
]

"""Custom SQLAlchemy column types for multi-database compatibility."""

from __future__ import annotations

from typing import Any

from sqlalchemy.dialects import postgresql
from sqlalchemy.types import JSON, TypeDecorator

from .delivery_patterns import parse_delivery_pattern


class DeliveryPatternType(TypeDecorator):
    """Structured delivery pattern column.

    Stored as ``JSONB`` in PostgreSQL and as ``JSON`` text elsewhere. Values
    are validated on the way in and on the way out, so application code only
    ever sees one of the pattern models from :mod:`app.delivery_patterns`.
    """

    impl = JSON
    cache_ok = True

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql":
            return dialect.type_descriptor(postgresql.JSONB())
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return parse_delivery_pattern(value).model_dump(mode="json")

    def process_result_value(self, value: Any, dialect):  # type: ignore[override]
        if value is None:
            return value
        return parse_delivery_pattern(value)

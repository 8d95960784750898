"""Create the dairy billing schema.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

PATTERN_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _money(name: str, *, nullable: bool = False, default: bool = True) -> sa.Column:
    return sa.Column(
        name,
        sa.Numeric(12, 2),
        nullable=nullable,
        server_default="0" if default else None,
    )


def _created_at() -> sa.Column:
    return sa.Column(
        "created_at",
        sa.DateTime(timezone=True),
        server_default=sa.func.now(),
        nullable=False,
    )


def upgrade() -> None:
    op.create_table(
        "customers",
        sa.Column("customer_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("area", sa.String(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.Column("auto_deliver", sa.Boolean(), nullable=False, server_default="1"),
        _money("invoice_discount", nullable=True, default=False),
        _money("credit_balance"),
        _money("advance_balance"),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.CheckConstraint("advance_balance >= 0", name="ck_customers_advance_non_negative"),
        sa.CheckConstraint(
            "invoice_discount IS NULL OR invoice_discount >= 0",
            name="ck_customers_invoice_discount_non_negative",
        ),
    )
    op.create_index(
        "customers_active_auto_deliver_idx", "customers", ["is_active", "auto_deliver"]
    )

    op.create_table(
        "products",
        sa.Column("product_id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(), nullable=False, unique=True),
        sa.Column("unit", sa.String(), nullable=False, server_default="litre"),
        _money("base_price"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        sa.CheckConstraint("base_price >= 0", name="ck_products_base_price_non_negative"),
    )

    op.create_table(
        "customer_products",
        sa.Column("subscription_id", sa.String(36), primary_key=True),
        sa.Column(
            "customer_id",
            sa.String(36),
            sa.ForeignKey("customers.customer_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.String(36),
            sa.ForeignKey("products.product_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Numeric(10, 3), nullable=False),
        _money("custom_price", nullable=True, default=False),
        sa.Column("delivery_pattern", PATTERN_TYPE, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        _created_at(),
        sa.CheckConstraint("quantity > 0", name="ck_customer_products_quantity_positive"),
        sa.CheckConstraint(
            "custom_price IS NULL OR custom_price >= 0",
            name="ck_customer_products_custom_price_non_negative",
        ),
    )
    op.create_index(
        "customer_products_customer_active_idx",
        "customer_products",
        ["customer_id", "is_active"],
    )

    op.create_table(
        "customer_vacations",
        sa.Column("vacation_id", sa.String(36), primary_key=True),
        sa.Column(
            "customer_id",
            sa.String(36),
            sa.ForeignKey("customers.customer_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="1"),
        _created_at(),
        sa.CheckConstraint("end_date >= start_date", name="ck_customer_vacations_range"),
    )
    op.create_index(
        "customer_vacations_customer_range_idx",
        "customer_vacations",
        ["customer_id", "start_date", "end_date"],
    )

    op.create_table(
        "deliveries",
        sa.Column("delivery_id", sa.String(36), primary_key=True),
        sa.Column(
            "customer_id",
            sa.String(36),
            sa.ForeignKey("customers.customer_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("delivery_date", sa.Date(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("delivery_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.UniqueConstraint("customer_id", "delivery_date", name="uq_deliveries_customer_date"),
    )
    op.create_index("deliveries_date_status_idx", "deliveries", ["delivery_date", "status"])

    op.create_table(
        "delivery_items",
        sa.Column("delivery_item_id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "delivery_id",
            sa.String(36),
            sa.ForeignKey("deliveries.delivery_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "product_id",
            sa.String(36),
            sa.ForeignKey("products.product_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("quantity", sa.Numeric(10, 3), nullable=False),
        _money("unit_price", default=False),
        _money("total_amount", default=False),
        sa.CheckConstraint("quantity > 0", name="ck_delivery_items_quantity_positive"),
        sa.CheckConstraint("unit_price >= 0", name="ck_delivery_items_unit_price_non_negative"),
    )
    op.create_index("delivery_items_delivery_idx", "delivery_items", ["delivery_id"])

    op.create_table(
        "invoices",
        sa.Column("invoice_id", sa.String(36), primary_key=True),
        sa.Column("invoice_number", sa.String(32), nullable=False, unique=True),
        sa.Column(
            "customer_id",
            sa.String(36),
            sa.ForeignKey("customers.customer_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        _money("total_amount", default=False),
        _money("tax_amount"),
        _money("discount_amount"),
        _money("final_amount", default=False),
        _money("paid_amount"),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("payment_date", sa.Date(), nullable=True),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.UniqueConstraint(
            "customer_id", "period_start", "period_end", name="uq_invoices_customer_period"
        ),
        sa.CheckConstraint("period_end >= period_start", name="ck_invoices_period_range"),
        sa.CheckConstraint("final_amount >= 0", name="ck_invoices_final_non_negative"),
        sa.CheckConstraint("paid_amount >= 0", name="ck_invoices_paid_non_negative"),
    )
    op.create_index(
        "invoices_customer_status_idx", "invoices", ["customer_id", "payment_status"]
    )
    op.create_index("invoices_period_idx", "invoices", ["period_start", "period_end"])

    op.create_table(
        "customer_ledger",
        sa.Column("ledger_entry_id", sa.String(36), primary_key=True),
        sa.Column(
            "customer_id",
            sa.String(36),
            sa.ForeignKey("customers.customer_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("entry_number", sa.Integer(), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("entry_type", sa.String(20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        _money("debit_amount"),
        _money("credit_amount"),
        _money("running_balance", default=False),
        sa.Column("reference_id", sa.String(36), nullable=True),
        _created_at(),
        sa.UniqueConstraint(
            "customer_id", "entry_number", name="uq_customer_ledger_customer_entry"
        ),
        sa.CheckConstraint("debit_amount >= 0", name="ck_customer_ledger_debit_non_negative"),
        sa.CheckConstraint("credit_amount >= 0", name="ck_customer_ledger_credit_non_negative"),
    )
    op.create_index("customer_ledger_reference_idx", "customer_ledger", ["reference_id"])
    op.create_index(
        "customer_ledger_customer_date_idx", "customer_ledger", ["customer_id", "entry_date"]
    )

    op.create_table(
        "payments",
        sa.Column("payment_id", sa.String(36), primary_key=True),
        sa.Column(
            "customer_id",
            sa.String(36),
            sa.ForeignKey("customers.customer_id", ondelete="RESTRICT"),
            nullable=False,
        ),
        sa.Column(
            "invoice_id",
            sa.String(36),
            sa.ForeignKey("invoices.invoice_id", ondelete="SET NULL"),
            nullable=True,
        ),
        _money("amount", default=False),
        _money("applied_amount"),
        sa.Column("mode", sa.String(20), nullable=False),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("reference_number", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        _created_at(),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        sa.CheckConstraint(
            "applied_amount >= 0 AND applied_amount <= amount",
            name="ck_payments_applied_within_amount",
        ),
    )
    op.create_index("payments_customer_date_idx", "payments", ["customer_id", "payment_date"])
    op.create_index("payments_invoice_idx", "payments", ["invoice_id"])


def downgrade() -> None:
    op.drop_index("payments_invoice_idx", table_name="payments")
    op.drop_index("payments_customer_date_idx", table_name="payments")
    op.drop_table("payments")
    op.drop_index("customer_ledger_customer_date_idx", table_name="customer_ledger")
    op.drop_index("customer_ledger_reference_idx", table_name="customer_ledger")
    op.drop_table("customer_ledger")
    op.drop_index("invoices_period_idx", table_name="invoices")
    op.drop_index("invoices_customer_status_idx", table_name="invoices")
    op.drop_table("invoices")
    op.drop_index("delivery_items_delivery_idx", table_name="delivery_items")
    op.drop_table("delivery_items")
    op.drop_index("deliveries_date_status_idx", table_name="deliveries")
    op.drop_table("deliveries")
    op.drop_index("customer_vacations_customer_range_idx", table_name="customer_vacations")
    op.drop_table("customer_vacations")
    op.drop_index("customer_products_customer_active_idx", table_name="customer_products")
    op.drop_table("customer_products")
    op.drop_table("products")
    op.drop_index("customers_active_auto_deliver_idx", table_name="customers")
    op.drop_table("customers")

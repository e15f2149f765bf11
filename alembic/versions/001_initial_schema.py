"""initial schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

from alembic import op

revision: str = "001_initial_schema"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ENUMS: dict[str, tuple[str, ...]] = {
    "listing_category": ("sale", "rent"),
    "vehicle_type": ("car", "bike"),
    "fuel_type": ("petrol", "diesel", "electric", "hybrid"),
    "vehicle_condition": ("excellent", "good", "fair", "needs-repair"),
    "payment_status": ("pending", "paid"),
    "availability": ("available", "rented"),
    "update_request_status": ("in-review", "approved", "rejected"),
    "transaction_status": ("initiated", "success", "failed", "cancelled"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*_ENUMS[name], name=name, create_type=False)


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(
        name, sa.DateTime(timezone=True), nullable=nullable, server_default=None if nullable else sa.text("now()")
    )


def upgrade() -> None:
    bind = op.get_bind()
    for name, values in _ENUMS.items():
        sa.Enum(*values, name=name).create(bind, checkfirst=True)

    op.create_table(
        "listings",
        sa.Column("id", sa.String(24), primary_key=True),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("category", _enum("listing_category"), nullable=False),
        sa.Column("vehicle_type", _enum("vehicle_type"), nullable=False),
        sa.Column("make", sa.String(128), nullable=False, server_default=""),
        sa.Column("model_name", sa.String(256), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("mileage", sa.Integer(), nullable=True),
        sa.Column("fuel_type", _enum("fuel_type"), nullable=True),
        sa.Column("condition", _enum("vehicle_condition"), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(256), nullable=True),
        sa.Column("phone", sa.String(32), nullable=True),
        sa.Column("email", sa.String(256), nullable=True),
        sa.Column("images", JSONB, nullable=False, server_default=sa.text("'[]'")),
        sa.Column("video", sa.String(1024), nullable=True),
        sa.Column("moderation_status", sa.String(16), nullable=False),
        sa.Column("payment_status", _enum("payment_status"), nullable=True),
        sa.Column("availability", _enum("availability"), nullable=True),
        sa.Column("platform_fee", sa.Integer(), nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_listings_owner_id", "listings", ["owner_id"])
    op.create_index("ix_listings_owner_id_id", "listings", ["owner_id", "id"])
    op.create_index("ix_listings_category_status", "listings", ["category", "moderation_status"])

    counter_columns = [
        sa.Column(name, sa.Integer(), nullable=False, server_default="0")
        for name in (
            "bike_post_count",
            "car_post_count",
            "pending_count",
            "active_count",
            "sold_count",
            "rejected_count",
            "paid_count",
            "payment_pending_count",
            "total_listings",
            "rent_listing_count",
        )
    ]
    op.create_table(
        "owner_counters",
        sa.Column("owner_id", sa.String(64), primary_key=True),
        *counter_columns,
        _timestamp("updated_at"),
    )

    op.create_table(
        "update_requests",
        sa.Column("id", sa.String(24), primary_key=True),
        sa.Column("listing_id", sa.String(24), nullable=False),
        sa.Column("requester_id", sa.String(64), nullable=False),
        sa.Column("status", _enum("update_request_status"), nullable=False),
        sa.Column("resolved_by", sa.String(64), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("previous_values", JSONB, nullable=False, server_default=sa.text("'{}'")),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_update_requests_listing_id", "update_requests", ["listing_id"])
    op.create_index("ix_update_requests_status", "update_requests", ["status"])
    op.create_index(
        "uq_update_requests_listing_in_review",
        "update_requests",
        ["listing_id"],
        unique=True,
        postgresql_where=sa.text("status = 'in-review'"),
    )

    op.create_table(
        "payment_transactions",
        sa.Column("id", sa.String(24), primary_key=True),
        sa.Column("token", sa.String(128), nullable=False, unique=True),
        sa.Column("listing_id", sa.String(24), nullable=False),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(8), nullable=False, server_default="BDT"),
        sa.Column("status", _enum("transaction_status"), nullable=False),
        sa.Column("product_name", sa.String(256), nullable=True),
        sa.Column("product_category", sa.String(128), nullable=True),
        sa.Column("customer_name", sa.String(256), nullable=True),
        sa.Column("customer_email", sa.String(256), nullable=True),
        sa.Column("customer_phone", sa.String(32), nullable=True),
        sa.Column("gateway_page_url", sa.String(2048), nullable=True),
        sa.Column("session_key", sa.String(256), nullable=True),
        sa.Column("validation_id", sa.String(256), nullable=True),
        sa.Column("gateway_response", JSONB, nullable=True),
        _timestamp("initiated_at"),
        _timestamp("completed_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("updated_at"),
    )
    op.create_index("ix_payment_transactions_listing_id", "payment_transactions", ["listing_id"])
    op.create_index("ix_payment_transactions_owner_id", "payment_transactions", ["owner_id"])
    op.create_index("ix_payment_transactions_status", "payment_transactions", ["status"])

    op.create_table(
        "system_settings",
        sa.Column("key", sa.String(64), primary_key=True),
        sa.Column("value", sa.String(256), nullable=False),
        _timestamp("updated_at"),
    )
    op.execute("INSERT INTO system_settings (key, value) VALUES ('commission_rate', '0.05')")


def downgrade() -> None:
    op.drop_table("system_settings")
    op.drop_table("payment_transactions")
    op.drop_table("update_requests")
    op.drop_table("owner_counters")
    op.drop_table("listings")
    bind = op.get_bind()
    for name in reversed(list(_ENUMS)):
        sa.Enum(name=name).drop(bind, checkfirst=True)

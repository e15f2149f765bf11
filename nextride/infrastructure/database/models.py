"""
SQLAlchemy ORM models.

Domain entities are mapped to/from these models inside the repository
implementations. Record ids are generated by the domain, never by the
database.
"""
from datetime import datetime, timezone

from sqlalchemy import (
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from nextride.domain.enums.listing_enums import (
    Availability,
    FuelType,
    ListingCategory,
    PaymentStatus,
    TransactionStatus,
    UpdateRequestStatus,
    VehicleCondition,
    VehicleType,
)
from nextride.infrastructure.database.connection import Base


def _pg_enum(enum_cls: type, name: str) -> SAEnum:
    return SAEnum(enum_cls, name=name, values_callable=lambda obj: [e.value for e in obj])


_category_enum = _pg_enum(ListingCategory, "listing_category")
_vehicle_type_enum = _pg_enum(VehicleType, "vehicle_type")
_fuel_type_enum = _pg_enum(FuelType, "fuel_type")
_condition_enum = _pg_enum(VehicleCondition, "vehicle_condition")
_payment_status_enum = _pg_enum(PaymentStatus, "payment_status")
_availability_enum = _pg_enum(Availability, "availability")
_update_request_status_enum = _pg_enum(UpdateRequestStatus, "update_request_status")
_transaction_status_enum = _pg_enum(TransactionStatus, "transaction_status")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ListingModel(Base):
    __tablename__ = "listings"

    id: Mapped[str] = mapped_column(String(24), primary_key=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    category: Mapped[str] = mapped_column(_category_enum, nullable=False)

    # Vehicle details
    vehicle_type: Mapped[str] = mapped_column(_vehicle_type_enum, nullable=False)
    make: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    model_name: Mapped[str] = mapped_column(String(256), nullable=False)
    year: Mapped[int | None] = mapped_column(Integer, nullable=True)
    price: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    mileage: Mapped[int | None] = mapped_column(Integer, nullable=True)
    fuel_type: Mapped[str | None] = mapped_column(_fuel_type_enum, nullable=True)
    condition: Mapped[str | None] = mapped_column(_condition_enum, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    location: Mapped[str | None] = mapped_column(String(256), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True)
    email: Mapped[str | None] = mapped_column(String(256), nullable=True)

    # Media
    images: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)  # type: ignore[type-arg]
    video: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # State axes. Sale and rent use different moderation vocabularies.
    moderation_status: Mapped[str] = mapped_column(String(16), nullable=False)
    payment_status: Mapped[str | None] = mapped_column(_payment_status_enum, nullable=True)
    availability: Mapped[str | None] = mapped_column(_availability_enum, nullable=True)
    platform_fee: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("ix_listings_category_status", "category", "moderation_status"),
        Index("ix_listings_owner_id_id", "owner_id", "id"),
    )


class OwnerCountersModel(Base):
    __tablename__ = "owner_counters"

    owner_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    bike_post_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    car_post_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    pending_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    active_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    sold_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    rejected_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    paid_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    payment_pending_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    total_listings: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")
    rent_listing_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )


class UpdateRequestModel(Base):
    __tablename__ = "update_requests"

    id: Mapped[str] = mapped_column(String(24), primary_key=True)
    listing_id: Mapped[str] = mapped_column(String(24), nullable=False, index=True)
    requester_id: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(_update_request_status_enum, nullable=False, index=True)
    resolved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
    previous_values: Mapped[dict] = mapped_column(  # type: ignore[type-arg]
        JSONB, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        # At most one outstanding review per listing
        Index(
            "uq_update_requests_listing_in_review",
            "listing_id",
            unique=True,
            postgresql_where=text("status = 'in-review'"),
        ),
    )


class PaymentTransactionModel(Base):
    __tablename__ = "payment_transactions"

    id: Mapped[str] = mapped_column(String(24), primary_key=True)
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    listing_id: Mapped[str] = mapped_column(String(24), nullable=False, index=True)
    owner_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    amount: Mapped[float] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(8), nullable=False, default="BDT")
    status: Mapped[str] = mapped_column(_transaction_status_enum, nullable=False, index=True)

    product_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    product_category: Mapped[str | None] = mapped_column(String(128), nullable=True)
    customer_name: Mapped[str | None] = mapped_column(String(256), nullable=True)
    customer_email: Mapped[str | None] = mapped_column(String(256), nullable=True)
    customer_phone: Mapped[str | None] = mapped_column(String(32), nullable=True)

    gateway_page_url: Mapped[str | None] = mapped_column(String(2048), nullable=True)
    session_key: Mapped[str | None] = mapped_column(String(256), nullable=True)
    validation_id: Mapped[str | None] = mapped_column(String(256), nullable=True)
    gateway_response: Mapped[dict | None] = mapped_column(JSONB, nullable=True)  # type: ignore[type-arg]

    initiated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=_utcnow
    )


class SystemSettingModel(Base):
    __tablename__ = "system_settings"

    key: Mapped[str] = mapped_column(String(64), primary_key=True)
    value: Mapped[str] = mapped_column(String(256), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

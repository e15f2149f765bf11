from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from decimal import ROUND_FLOOR, Decimal

from nextride.domain.enums.listing_enums import (
    Availability,
    FuelType,
    ListingCategory,
    PaymentStatus,
    RentStatus,
    SaleStatus,
    VehicleCondition,
    VehicleType,
)
from nextride.domain.identifiers import new_record_id
from nextride.domain.state_machine.moderation_state_machine import (
    ModerationStatus,
    ModerationStateMachine,
)

_state_machine = ModerationStateMachine()

# Fields an owner may change after creation (directly or through an update request)
EDITABLE_FIELDS: tuple[str, ...] = (
    "vehicle_type",
    "make",
    "model_name",
    "year",
    "price",
    "mileage",
    "fuel_type",
    "condition",
    "description",
    "location",
    "phone",
    "email",
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def compute_platform_fee(price: Decimal, commission_rate: Decimal) -> int:
    """floor(price * commission_rate), computed in Decimal to avoid float drift."""
    return int((Decimal(price) * Decimal(commission_rate)).to_integral_value(rounding=ROUND_FLOOR))


@dataclass
class Listing:
    """
    A vehicle offered for sale or for rent.

    Sale and rent listings share this shape. Sale listings carry a
    payment_status and platform_fee; rent listings carry an availability.
    Status fields are only changed through the lifecycle controller or the
    update-request gate.
    """

    # Identity
    id: str = field(default_factory=new_record_id)
    owner_id: str = ""
    category: ListingCategory = ListingCategory.SALE

    # Vehicle details
    vehicle_type: VehicleType = VehicleType.CAR
    make: str = ""
    model_name: str = ""
    year: int | None = None
    price: Decimal = Decimal("0")
    mileage: int | None = None
    fuel_type: FuelType | None = None
    condition: VehicleCondition | None = None
    description: str | None = None
    location: str | None = None
    phone: str | None = None
    email: str | None = None

    # Media
    images: list[str] = field(default_factory=list)
    video: str | None = None

    # State
    moderation_status: ModerationStatus = SaleStatus.PENDING
    payment_status: PaymentStatus | None = PaymentStatus.PENDING
    availability: Availability | None = None
    platform_fee: int | None = None

    # Timestamps
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    # -------------------------------------------------------------------------
    # Factories
    # -------------------------------------------------------------------------

    @classmethod
    def create_for_sale(
        cls,
        *,
        owner_id: str,
        vehicle_type: VehicleType,
        make: str,
        model_name: str,
        year: int | None,
        price: Decimal,
        commission_rate: Decimal,
        mileage: int | None = None,
        fuel_type: FuelType | None = None,
        condition: VehicleCondition | None = None,
        description: str | None = None,
        location: str | None = None,
        phone: str | None = None,
        email: str | None = None,
        images: list[str] | None = None,
        video: str | None = None,
    ) -> "Listing":
        return cls(
            owner_id=owner_id,
            category=ListingCategory.SALE,
            vehicle_type=vehicle_type,
            make=make,
            model_name=model_name,
            year=year,
            price=Decimal(price),
            mileage=mileage,
            fuel_type=fuel_type,
            condition=condition,
            description=description,
            location=location,
            phone=phone,
            email=email,
            images=list(images or []),
            video=video,
            moderation_status=SaleStatus.PENDING,
            payment_status=PaymentStatus.PENDING,
            availability=None,
            platform_fee=compute_platform_fee(Decimal(price), commission_rate),
        )

    @classmethod
    def create_for_rent(
        cls,
        *,
        owner_id: str,
        vehicle_type: VehicleType,
        model_name: str,
        price_per_day: Decimal,
        location: str,
        phone: str,
        email: str | None = None,
        description: str | None = None,
        images: list[str] | None = None,
    ) -> "Listing":
        return cls(
            owner_id=owner_id,
            category=ListingCategory.RENT,
            vehicle_type=vehicle_type,
            model_name=model_name,
            price=Decimal(price_per_day),
            location=location,
            phone=phone,
            email=email,
            description=description,
            images=list(images or []),
            moderation_status=RentStatus.PENDING,
            payment_status=None,
            availability=Availability.AVAILABLE,
            platform_fee=None,
        )

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    @property
    def is_sale(self) -> bool:
        return self.category is ListingCategory.SALE

    @property
    def is_published(self) -> bool:
        return _state_machine.is_published(self.category, self.moderation_status)

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id

    def snapshot(self, names: list[str] | tuple[str, ...]) -> dict[str, object]:
        """Current values of the named fields, JSON friendly."""
        values: dict[str, object] = {}
        for name in names:
            value = getattr(self, name)
            if isinstance(value, Decimal):
                value = str(value)
            elif hasattr(value, "value"):
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            values[name] = value
        return values

    def with_changes(self, **changes: object) -> "Listing":
        known = {f.name for f in fields(self)}
        unknown = set(changes) - known
        if unknown:
            raise AttributeError(f"Listing has no fields {sorted(unknown)}")
        return replace(self, **changes)

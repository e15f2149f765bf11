from dataclasses import dataclass

from nextride.domain.enums.listing_enums import (
    Availability,
    ListingCategory,
    PaymentStatus,
    RentStatus,
    SaleStatus,
)
from nextride.domain.errors import InvalidStateError

ModerationStatus = SaleStatus | RentStatus


# Forward moderation flow per category. Admins may still move a listing
# between any two states; anything outside this table is an override.
FORWARD_TRANSITIONS: dict[ListingCategory, dict[ModerationStatus, frozenset[ModerationStatus]]] = {
    ListingCategory.SALE: {
        SaleStatus.PENDING: frozenset({SaleStatus.ACTIVE, SaleStatus.REJECTED}),
        SaleStatus.ACTIVE: frozenset({SaleStatus.SOLD}),
        SaleStatus.SOLD: frozenset(),
        SaleStatus.REJECTED: frozenset(),
    },
    ListingCategory.RENT: {
        RentStatus.PENDING: frozenset({RentStatus.APPROVED, RentStatus.REJECTED}),
        RentStatus.APPROVED: frozenset(),
        RentStatus.REJECTED: frozenset(),
    },
}

PUBLISHED_STATUS: dict[ListingCategory, ModerationStatus] = {
    ListingCategory.SALE: SaleStatus.ACTIVE,
    ListingCategory.RENT: RentStatus.APPROVED,
}

AVAILABILITY_TRANSITIONS: dict[Availability, Availability] = {
    Availability.AVAILABLE: Availability.RENTED,
    Availability.RENTED: Availability.AVAILABLE,
}


@dataclass(frozen=True)
class ModerationChange:
    """Field values produced by one moderation transition."""

    from_status: ModerationStatus
    to_status: ModerationStatus
    from_payment: PaymentStatus | None
    to_payment: PaymentStatus | None
    is_override: bool

    @property
    def is_noop(self) -> bool:
        return self.from_status == self.to_status and self.from_payment == self.to_payment


def status_enum_for(category: ListingCategory) -> type[SaleStatus] | type[RentStatus]:
    return SaleStatus if category is ListingCategory.SALE else RentStatus


def parse_moderation_status(category: ListingCategory, value: str | ModerationStatus) -> ModerationStatus:
    """Resolve a raw status for the listing's category or raise InvalidStateError."""
    enum_cls = status_enum_for(category)
    raw = value.value if isinstance(value, (SaleStatus, RentStatus)) else str(value)
    try:
        return enum_cls(raw)
    except ValueError:
        allowed = [s.value for s in enum_cls]
        raise InvalidStateError(
            f"Unknown {category.value} listing status '{raw}'. Allowed: {allowed}"
        ) from None


def parse_availability(value: str | Availability) -> Availability:
    try:
        return Availability(value)
    except ValueError:
        raise InvalidStateError(
            f"Unknown availability '{value}'. Allowed: {[a.value for a in Availability]}"
        ) from None


def payment_status_after(
    to_status: ModerationStatus, current: PaymentStatus | None
) -> PaymentStatus | None:
    """Payment side-effect of a sale moderation write."""
    if to_status in (SaleStatus.ACTIVE, SaleStatus.SOLD):
        return PaymentStatus.PAID
    if to_status is SaleStatus.REJECTED:
        return PaymentStatus.PENDING
    return current


class ModerationStateMachine:
    """
    Validates moderation and availability transitions for listings.

    Stateless; plan_transition() takes the current states explicitly.
    """

    def is_forward(
        self, category: ListingCategory, from_status: ModerationStatus, to_status: ModerationStatus
    ) -> bool:
        return to_status in FORWARD_TRANSITIONS[category].get(from_status, frozenset())

    def get_forward_transitions(
        self, category: ListingCategory, from_status: ModerationStatus
    ) -> frozenset[ModerationStatus]:
        return FORWARD_TRANSITIONS[category].get(from_status, frozenset())

    def plan_transition(
        self,
        category: ListingCategory,
        from_status: ModerationStatus,
        target: str | ModerationStatus,
        payment_status: PaymentStatus | None,
    ) -> ModerationChange:
        to_status = parse_moderation_status(category, target)
        if category is ListingCategory.SALE:
            to_payment = payment_status_after(to_status, payment_status)
        else:
            to_payment = payment_status
        return ModerationChange(
            from_status=from_status,
            to_status=to_status,
            from_payment=payment_status,
            to_payment=to_payment,
            is_override=(
                from_status != to_status and not self.is_forward(category, from_status, to_status)
            ),
        )

    def validate_availability(
        self, from_availability: Availability, target: str | Availability
    ) -> Availability:
        to_availability = parse_availability(target)
        if to_availability != from_availability and AVAILABILITY_TRANSITIONS[from_availability] != to_availability:
            raise InvalidStateError(
                f"Invalid availability transition from {from_availability.value} to {to_availability.value}."
            )
        return to_availability

    def is_published(self, category: ListingCategory, status: ModerationStatus) -> bool:
        return PUBLISHED_STATUS[category] == status

from collections import Counter
from dataclasses import asdict, dataclass

from nextride.domain.entities.listing import Listing
from nextride.domain.enums.listing_enums import (
    ListingCategory,
    PaymentStatus,
    SaleStatus,
    VehicleType,
)
from nextride.domain.state_machine.moderation_state_machine import ModerationStatus

COUNTER_FIELDS: tuple[str, ...] = (
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

_CATEGORY_BUCKETS: dict[VehicleType, str] = {
    VehicleType.BIKE: "bike_post_count",
    VehicleType.CAR: "car_post_count",
}

_STATUS_BUCKETS: dict[SaleStatus, str] = {
    SaleStatus.PENDING: "pending_count",
    SaleStatus.ACTIVE: "active_count",
    SaleStatus.SOLD: "sold_count",
    SaleStatus.REJECTED: "rejected_count",
}

_PAYMENT_BUCKETS: dict[PaymentStatus, str] = {
    PaymentStatus.PAID: "paid_count",
    PaymentStatus.PENDING: "payment_pending_count",
}


@dataclass(frozen=True)
class CounterDelta:
    """Signed per-field adjustments to one owner's counters. Zero entries are dropped."""

    changes: tuple[tuple[str, int], ...] = ()

    @classmethod
    def of(cls, values: dict[str, int]) -> "CounterDelta":
        unknown = set(values) - set(COUNTER_FIELDS)
        if unknown:
            raise KeyError(f"Unknown counter fields: {sorted(unknown)}")
        return cls(tuple(sorted((k, v) for k, v in values.items() if v)))

    def as_dict(self) -> dict[str, int]:
        return dict(self.changes)

    @property
    def is_empty(self) -> bool:
        return not self.changes

    def __add__(self, other: "CounterDelta") -> "CounterDelta":
        total: Counter[str] = Counter(self.as_dict())
        total.update(other.as_dict())
        return CounterDelta.of(dict(total))

    def __neg__(self) -> "CounterDelta":
        return CounterDelta.of({k: -v for k, v in self.changes})


@dataclass
class OwnerCounters:
    """Denormalized per-owner totals. Advisory only: never a billing or auth source."""

    owner_id: str
    bike_post_count: int = 0
    car_post_count: int = 0
    pending_count: int = 0
    active_count: int = 0
    sold_count: int = 0
    rejected_count: int = 0
    paid_count: int = 0
    payment_pending_count: int = 0
    total_listings: int = 0
    rent_listing_count: int = 0

    def as_dict(self) -> dict[str, int]:
        values = asdict(self)
        values.pop("owner_id")
        return values

    def applied(self, delta: CounterDelta) -> "OwnerCounters":
        values = self.as_dict()
        for name, amount in delta.changes:
            values[name] += amount
        return OwnerCounters(owner_id=self.owner_id, **values)

    def diff(self, other: "OwnerCounters") -> dict[str, int]:
        """Fields where other differs from self, as other - self."""
        mine, theirs = self.as_dict(), other.as_dict()
        return {name: theirs[name] - mine[name] for name in COUNTER_FIELDS if theirs[name] != mine[name]}

    def invariant_violations(self) -> list[str]:
        problems = []
        status_sum = self.pending_count + self.active_count + self.sold_count + self.rejected_count
        if status_sum != self.total_listings:
            problems.append(f"status counters sum to {status_sum}, total is {self.total_listings}")
        category_sum = self.bike_post_count + self.car_post_count
        if category_sum != self.total_listings:
            problems.append(f"category counters sum to {category_sum}, total is {self.total_listings}")
        payment_sum = self.paid_count + self.payment_pending_count
        if payment_sum != self.total_listings:
            problems.append(f"payment counters sum to {payment_sum}, total is {self.total_listings}")
        return problems


# -----------------------------------------------------------------------------
# Delta builders
# -----------------------------------------------------------------------------


def listing_contribution(listing: Listing) -> CounterDelta:
    """+1 in every bucket the listing currently occupies."""
    if listing.category is ListingCategory.RENT:
        return CounterDelta.of({"rent_listing_count": 1})

    values: Counter[str] = Counter({"total_listings": 1})
    values[_CATEGORY_BUCKETS[listing.vehicle_type]] += 1
    values[_STATUS_BUCKETS[SaleStatus(listing.moderation_status)]] += 1
    if listing.payment_status is not None:
        values[_PAYMENT_BUCKETS[listing.payment_status]] += 1
    return CounterDelta.of(dict(values))


def status_change_delta(
    category: ListingCategory,
    from_status: ModerationStatus,
    to_status: ModerationStatus,
    from_payment: PaymentStatus | None,
    to_payment: PaymentStatus | None,
) -> CounterDelta:
    """Move one listing between buckets. Rent moderation states are not counted."""
    if category is ListingCategory.RENT:
        return CounterDelta()

    values: Counter[str] = Counter()
    if from_status != to_status:
        values[_STATUS_BUCKETS[SaleStatus(from_status)]] -= 1
        values[_STATUS_BUCKETS[SaleStatus(to_status)]] += 1
    if from_payment != to_payment:
        if from_payment is not None:
            values[_PAYMENT_BUCKETS[from_payment]] -= 1
        if to_payment is not None:
            values[_PAYMENT_BUCKETS[to_payment]] += 1
    return CounterDelta.of(dict(values))


def vehicle_type_change_delta(
    category: ListingCategory, from_type: VehicleType, to_type: VehicleType
) -> CounterDelta:
    """Move one sale listing between the car and bike buckets."""
    if category is ListingCategory.RENT or from_type == to_type:
        return CounterDelta()
    return CounterDelta.of({_CATEGORY_BUCKETS[from_type]: -1, _CATEGORY_BUCKETS[to_type]: 1})


def counters_from_listings(owner_id: str, listings: list[Listing]) -> OwnerCounters:
    counters = OwnerCounters(owner_id=owner_id)
    for listing in listings:
        counters = counters.applied(listing_contribution(listing))
    return counters

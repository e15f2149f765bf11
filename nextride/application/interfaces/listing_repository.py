from abc import ABC, abstractmethod
from dataclasses import dataclass

from nextride.domain.entities.listing import Listing
from nextride.domain.enums.listing_enums import Availability, ListingCategory, VehicleType


@dataclass(frozen=True)
class ListingFilter:
    category: ListingCategory | None = None
    vehicle_type: VehicleType | None = None
    owner_id: str | None = None
    moderation_status: str | None = None
    availability: Availability | None = None
    published_only: bool = False


class ListingRepository(ABC):
    """Port for persisting and querying Listing records (sale and rent)."""

    @abstractmethod
    async def add(self, listing: Listing) -> None:
        ...

    @abstractmethod
    async def get_by_id(self, listing_id: str) -> Listing | None:
        """Always reads the current stored state, never a cached copy."""
        ...

    @abstractmethod
    async def scan(
        self,
        listing_filter: ListingFilter,
        *,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[Listing]:
        """Keyset range scan: ids strictly greater than after_id, ascending."""
        ...

    @abstractmethod
    async def update_fields(
        self,
        listing_id: str,
        values: dict[str, object],
        *,
        expected: dict[str, object] | None = None,
    ) -> Listing | None:
        """
        Atomically set values on one listing.

        When expected is given the write only happens if every named field
        still holds the expected value. Returns the updated listing, or None
        if the listing is missing or the condition did not hold.
        """
        ...

    @abstractmethod
    async def delete(self, listing_id: str) -> bool:
        ...

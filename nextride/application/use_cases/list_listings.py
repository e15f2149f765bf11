from dataclasses import dataclass

import structlog

from nextride.application.interfaces.collaborators import Actor
from nextride.application.interfaces.listing_repository import ListingFilter, ListingRepository
from nextride.application.pagination import Page, PageRequest, build_page
from nextride.domain.entities.listing import Listing
from nextride.domain.enums.listing_enums import Availability, ListingCategory, VehicleType
from nextride.domain.errors import ForbiddenError

logger = structlog.get_logger(__name__)


@dataclass
class ListListingsInput:
    actor: Actor | None
    page: PageRequest
    scope: str = "public"
    category: ListingCategory | None = None
    vehicle_type: VehicleType | None = None
    availability: Availability | None = None
    moderation_status: str | None = None
    owner_id: str | None = None


class ListListings:
    """
    Use case: cursor-paginated listing browse.

    Three scopes share one keyset scan: "public" only returns published
    listings, "mine" returns every listing of the caller in any status and
    "admin" returns everything, optionally filtered by status and owner.
    """

    SCOPES = ("public", "mine", "admin")

    def __init__(self, listing_repo: ListingRepository) -> None:
        self._listing_repo = listing_repo

    async def execute(self, input_data: ListListingsInput) -> Page[Listing]:
        listing_filter = self._filter_for(input_data)
        records = await self._listing_repo.scan(
            listing_filter,
            after_id=input_data.page.after_id,
            limit=input_data.page.fetch_size,
        )
        page = build_page(records, input_data.page.limit)
        logger.debug(
            "listings_listed",
            scope=input_data.scope,
            returned=len(page.data),
            has_next_page=page.has_next_page,
        )
        return page

    def _filter_for(self, input_data: ListListingsInput) -> ListingFilter:
        if input_data.scope == "public":
            return ListingFilter(
                category=input_data.category,
                vehicle_type=input_data.vehicle_type,
                availability=input_data.availability,
                published_only=True,
            )

        if input_data.actor is None:
            raise ForbiddenError("Sign in to see these listings.")

        if input_data.scope == "mine":
            return ListingFilter(
                category=input_data.category,
                vehicle_type=input_data.vehicle_type,
                owner_id=input_data.actor.id,
                moderation_status=input_data.moderation_status,
            )

        if input_data.scope == "admin":
            if not input_data.actor.is_admin:
                raise ForbiddenError("Only admins can browse every listing.")
            return ListingFilter(
                category=input_data.category,
                vehicle_type=input_data.vehicle_type,
                owner_id=input_data.owner_id,
                moderation_status=input_data.moderation_status,
                availability=input_data.availability,
            )

        raise ValueError(f"Unknown listing scope {input_data.scope!r}")

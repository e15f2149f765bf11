from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field

from nextride.application.pagination import Page
from nextride.domain.entities.listing import Listing
from nextride.domain.entities.owner_counters import OwnerCounters
from nextride.domain.entities.update_request import UpdateRequest
from nextride.domain.enums.listing_enums import (
    Availability,
    FuelType,
    ListingCategory,
    PaymentStatus,
    UpdateRequestAction,
    UpdateRequestStatus,
    VehicleCondition,
    VehicleType,
)


class PageInfo(BaseModel):
    next_cursor: str | None = None
    has_next_page: bool
    limit: int

    @classmethod
    def from_page(cls, page: Page) -> "PageInfo":  # type: ignore[type-arg]
        return cls(next_cursor=page.next_cursor, has_next_page=page.has_next_page, limit=page.limit)


class ListingResponse(BaseModel):
    id: str
    owner_id: str
    category: ListingCategory
    vehicle_type: VehicleType
    make: str
    model_name: str
    year: int | None = None
    price: Decimal
    mileage: int | None = None
    fuel_type: FuelType | None = None
    condition: VehicleCondition | None = None
    description: str | None = None
    location: str | None = None
    phone: str | None = None
    email: str | None = None
    images: list[str]
    video: str | None = None
    moderation_status: str
    payment_status: PaymentStatus | None = None
    availability: Availability | None = None
    platform_fee: int | None = None
    created_at: datetime
    updated_at: datetime

    # model_name is a vehicle field, not pydantic's namespace
    model_config = {"protected_namespaces": ()}

    @classmethod
    def from_domain(cls, listing: Listing) -> "ListingResponse":
        return cls(
            id=listing.id,
            owner_id=listing.owner_id,
            category=listing.category,
            vehicle_type=listing.vehicle_type,
            make=listing.make,
            model_name=listing.model_name,
            year=listing.year,
            price=listing.price,
            mileage=listing.mileage,
            fuel_type=listing.fuel_type,
            condition=listing.condition,
            description=listing.description,
            location=listing.location,
            phone=listing.phone,
            email=listing.email,
            images=list(listing.images),
            video=listing.video,
            moderation_status=listing.moderation_status.value,
            payment_status=listing.payment_status,
            availability=listing.availability,
            platform_fee=listing.platform_fee,
            created_at=listing.created_at,
            updated_at=listing.updated_at,
        )


class ListingPageResponse(BaseModel):
    data: list[ListingResponse]
    page_info: PageInfo

    @classmethod
    def from_page(cls, page: Page[Listing]) -> "ListingPageResponse":
        return cls(
            data=[ListingResponse.from_domain(listing) for listing in page.data],
            page_info=PageInfo.from_page(page),
        )


class ModerationStatusRequest(BaseModel):
    status: str = Field(min_length=1)


class AvailabilityRequest(BaseModel):
    availability: str = Field(min_length=1)


class UpdateRequestResponse(BaseModel):
    id: str
    listing_id: str
    requester_id: str
    status: UpdateRequestStatus
    resolved_by: str | None = None
    note: str | None = None
    previous_values: dict[str, Any]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, request: UpdateRequest) -> "UpdateRequestResponse":
        return cls(
            id=request.id,
            listing_id=request.listing_id,
            requester_id=request.requester_id,
            status=request.status,
            resolved_by=request.resolved_by,
            note=request.note,
            previous_values=dict(request.previous_values),
            created_at=request.created_at,
            updated_at=request.updated_at,
        )


class UpdateRequestPageResponse(BaseModel):
    data: list[UpdateRequestResponse]
    page_info: PageInfo


class EditListingResponse(BaseModel):
    listing: ListingResponse
    update_request: UpdateRequestResponse | None = None


class ResolveUpdateRequestBody(BaseModel):
    action: UpdateRequestAction
    note: str | None = None


class ResolveUpdateRequestResponse(BaseModel):
    update_request: UpdateRequestResponse
    listing: ListingResponse | None = None


class OwnerCountersResponse(BaseModel):
    owner_id: str
    bike_post_count: int
    car_post_count: int
    pending_count: int
    active_count: int
    sold_count: int
    rejected_count: int
    paid_count: int
    payment_pending_count: int
    total_listings: int
    rent_listing_count: int

    @classmethod
    def from_domain(cls, counters: OwnerCounters) -> "OwnerCountersResponse":
        return cls(owner_id=counters.owner_id, **counters.as_dict())


class CounterDriftResponse(BaseModel):
    owner_id: str
    stored: OwnerCountersResponse
    recomputed: OwnerCountersResponse
    differences: dict[str, int]
    has_drift: bool

from decimal import Decimal

import structlog
from fastapi import APIRouter, Depends, File, Form, Query, Response, UploadFile, status

from nextride.api.dependencies import (
    get_current_actor,
    get_lifecycle_controller,
    get_list_listings_use_case,
    get_optional_actor,
    get_update_request_gate,
)
from nextride.api.schemas.listing_responses import (
    AvailabilityRequest,
    EditListingResponse,
    ListingPageResponse,
    ListingResponse,
    UpdateRequestResponse,
)
from nextride.application.interfaces.collaborators import Actor, MediaUpload
from nextride.application.pagination import PageRequest
from nextride.application.services.lifecycle_controller import (
    ListingLifecycleController,
    RentListingDraft,
    SaleListingDraft,
)
from nextride.application.services.update_request_gate import ListingEdit, UpdateRequestGate
from nextride.application.use_cases.list_listings import ListListings, ListListingsInput
from nextride.domain.enums.listing_enums import (
    Availability,
    FuelType,
    ListingCategory,
    VehicleCondition,
    VehicleType,
)
from nextride.domain.errors import NotFoundError

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/listings", tags=["listings"])


async def _read_uploads(files: list[UploadFile] | None) -> list[MediaUpload]:
    uploads = []
    for upload in files or []:
        # Browsers send an empty part for an untouched file input
        if not upload.filename:
            continue
        uploads.append(
            MediaUpload(
                filename=upload.filename,
                content=await upload.read(),
                content_type=upload.content_type,
            )
        )
    return uploads


@router.post("/sale", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_sale_listing(
    vehicle_type: VehicleType = Form(...),
    make: str = Form(...),
    model_name: str = Form(...),
    year: int = Form(...),
    price: Decimal = Form(..., gt=0),
    mileage: int | None = Form(default=None, ge=0),
    fuel_type: FuelType | None = Form(default=None),
    condition: VehicleCondition | None = Form(default=None),
    description: str | None = Form(default=None),
    location: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    email: str | None = Form(default=None),
    images: list[UploadFile] | None = File(default=None),
    video: UploadFile | None = File(default=None),
    actor: Actor = Depends(get_current_actor),
    controller: ListingLifecycleController = Depends(get_lifecycle_controller),
) -> ListingResponse:
    """Submit a vehicle for sale. It starts pending moderation with the platform fee unpaid."""
    draft = SaleListingDraft(
        vehicle_type=vehicle_type,
        make=make,
        model_name=model_name,
        year=year,
        price=price,
        mileage=mileage,
        fuel_type=fuel_type,
        condition=condition,
        description=description,
        location=location,
        phone=phone,
        email=email,
    )
    videos = await _read_uploads([video] if video else None)
    listing = await controller.create_sale_listing(
        actor, draft, await _read_uploads(images), videos[0] if videos else None
    )
    return ListingResponse.from_domain(listing)


@router.post("/rent", response_model=ListingResponse, status_code=status.HTTP_201_CREATED)
async def create_rent_listing(
    vehicle_type: VehicleType = Form(...),
    model_name: str = Form(...),
    price_per_day: Decimal = Form(..., gt=0),
    location: str = Form(...),
    phone: str = Form(...),
    email: str | None = Form(default=None),
    description: str | None = Form(default=None),
    images: list[UploadFile] | None = File(default=None),
    actor: Actor = Depends(get_current_actor),
    controller: ListingLifecycleController = Depends(get_lifecycle_controller),
) -> ListingResponse:
    draft = RentListingDraft(
        vehicle_type=vehicle_type,
        model_name=model_name,
        price_per_day=price_per_day,
        location=location,
        phone=phone,
        email=email,
        description=description,
    )
    listing = await controller.create_rent_listing(actor, draft, await _read_uploads(images))
    return ListingResponse.from_domain(listing)


@router.get("", response_model=ListingPageResponse)
async def list_published_listings(
    category: ListingCategory | None = Query(default=None),
    vehicle_type: VehicleType | None = Query(default=None),
    availability: Availability | None = Query(default=None),
    limit: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    use_case: ListListings = Depends(get_list_listings_use_case),
) -> ListingPageResponse:
    """Public browse: published listings only, oldest first."""
    page = await use_case.execute(
        ListListingsInput(
            actor=None,
            page=PageRequest.from_query(limit, cursor),
            scope="public",
            category=category,
            vehicle_type=vehicle_type,
            availability=availability,
        )
    )
    return ListingPageResponse.from_page(page)


@router.get("/mine", response_model=ListingPageResponse)
async def list_my_listings(
    category: ListingCategory | None = Query(default=None),
    vehicle_type: VehicleType | None = Query(default=None),
    status_filter: str | None = Query(default=None, alias="status"),
    limit: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    use_case: ListListings = Depends(get_list_listings_use_case),
) -> ListingPageResponse:
    page = await use_case.execute(
        ListListingsInput(
            actor=actor,
            page=PageRequest.from_query(limit, cursor),
            scope="mine",
            category=category,
            vehicle_type=vehicle_type,
            moderation_status=status_filter,
        )
    )
    return ListingPageResponse.from_page(page)


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: str,
    actor: Actor | None = Depends(get_optional_actor),
    controller: ListingLifecycleController = Depends(get_lifecycle_controller),
) -> ListingResponse:
    listing = await controller.get_listing(listing_id)
    can_see_unpublished = actor is not None and (actor.is_admin or listing.is_owned_by(actor.id))
    if not listing.is_published and not can_see_unpublished:
        raise NotFoundError("Listing", listing_id)
    return ListingResponse.from_domain(listing)


@router.put("/{listing_id}", response_model=EditListingResponse)
async def edit_listing(
    listing_id: str,
    vehicle_type: VehicleType | None = Form(default=None),
    make: str | None = Form(default=None),
    model_name: str | None = Form(default=None),
    year: int | None = Form(default=None),
    price: Decimal | None = Form(default=None, gt=0),
    mileage: int | None = Form(default=None, ge=0),
    fuel_type: FuelType | None = Form(default=None),
    condition: VehicleCondition | None = Form(default=None),
    description: str | None = Form(default=None),
    location: str | None = Form(default=None),
    phone: str | None = Form(default=None),
    email: str | None = Form(default=None),
    images: list[UploadFile] | None = File(default=None),
    video: UploadFile | None = File(default=None),
    actor: Actor = Depends(get_current_actor),
    gate: UpdateRequestGate = Depends(get_update_request_gate),
) -> EditListingResponse:
    """
    Edit a sale listing in place.

    A published listing goes back to pending and an update request is
    opened for admin review.
    """
    edit = ListingEdit(
        vehicle_type=vehicle_type,
        make=make,
        model_name=model_name,
        year=year,
        price=price,
        mileage=mileage,
        fuel_type=fuel_type,
        condition=condition,
        description=description,
        location=location,
        phone=phone,
        email=email,
    )
    videos = await _read_uploads([video] if video else None)
    outcome = await gate.submit_edit(
        actor,
        listing_id,
        edit,
        images=await _read_uploads(images) or None,
        video=videos[0] if videos else None,
    )
    return EditListingResponse(
        listing=ListingResponse.from_domain(outcome.listing),
        update_request=(
            UpdateRequestResponse.from_domain(outcome.update_request)
            if outcome.update_request
            else None
        ),
    )


@router.patch("/{listing_id}/availability", response_model=ListingResponse)
async def set_availability(
    listing_id: str,
    body: AvailabilityRequest,
    actor: Actor = Depends(get_current_actor),
    controller: ListingLifecycleController = Depends(get_lifecycle_controller),
) -> ListingResponse:
    listing = await controller.set_availability(actor, listing_id, body.availability)
    return ListingResponse.from_domain(listing)


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_listing(
    listing_id: str,
    actor: Actor = Depends(get_current_actor),
    controller: ListingLifecycleController = Depends(get_lifecycle_controller),
) -> Response:
    await controller.delete_listing(actor, listing_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

from fastapi import APIRouter, Depends, Query

from nextride.api.dependencies import (
    get_current_actor,
    get_lifecycle_controller,
    get_list_listings_use_case,
    get_counter_drift_use_case,
    get_payment_resolver,
    get_recompute_counters_use_case,
    get_settings_use_case,
    get_update_request_gate,
    get_update_settings_use_case,
)
from nextride.api.schemas.listing_responses import (
    CounterDriftResponse,
    ListingPageResponse,
    ListingResponse,
    ModerationStatusRequest,
    OwnerCountersResponse,
    PageInfo,
    ResolveUpdateRequestBody,
    ResolveUpdateRequestResponse,
    UpdateRequestPageResponse,
    UpdateRequestResponse,
)
from nextride.api.schemas.payment_schemas import PaymentPageResponse, PaymentTransactionResponse
from nextride.api.schemas.settings_schemas import SystemSettingsResponse, UpdateSystemSettingsRequest
from nextride.application.interfaces.collaborators import Actor
from nextride.application.pagination import PageRequest
from nextride.application.services.counter_ledger import CounterDrift
from nextride.application.services.lifecycle_controller import ListingLifecycleController
from nextride.application.services.payment_resolver import PaymentCorrelationResolver
from nextride.application.services.update_request_gate import UpdateRequestGate
from nextride.application.use_cases.get_owner_counters import (
    InspectCounterDrift,
    RecomputeOwnerCounters,
)
from nextride.application.use_cases.list_listings import ListListings, ListListingsInput
from nextride.application.use_cases.manage_settings import GetSystemSettings, UpdateSystemSettings
from nextride.domain.enums.listing_enums import (
    Availability,
    ListingCategory,
    TransactionStatus,
    UpdateRequestStatus,
    VehicleType,
)

router = APIRouter(prefix="/admin", tags=["admin"])


def _drift_to_response(drift: CounterDrift) -> CounterDriftResponse:
    return CounterDriftResponse(
        owner_id=drift.owner_id,
        stored=OwnerCountersResponse.from_domain(drift.stored),
        recomputed=OwnerCountersResponse.from_domain(drift.recomputed),
        differences=drift.differences,
        has_drift=drift.has_drift,
    )


@router.get("/listings", response_model=ListingPageResponse)
async def list_all_listings(
    status_filter: str | None = Query(default=None, alias="status"),
    owner_id: str | None = Query(default=None),
    category: ListingCategory | None = Query(default=None),
    vehicle_type: VehicleType | None = Query(default=None),
    availability: Availability | None = Query(default=None),
    limit: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    use_case: ListListings = Depends(get_list_listings_use_case),
) -> ListingPageResponse:
    """Every listing in any status, with optional filters."""
    page = await use_case.execute(
        ListListingsInput(
            actor=actor,
            page=PageRequest.from_query(limit, cursor),
            scope="admin",
            category=category,
            vehicle_type=vehicle_type,
            availability=availability,
            moderation_status=status_filter,
            owner_id=owner_id,
        )
    )
    return ListingPageResponse.from_page(page)


@router.patch("/listings/{listing_id}/status", response_model=ListingResponse)
async def change_listing_status(
    listing_id: str,
    body: ModerationStatusRequest,
    actor: Actor = Depends(get_current_actor),
    controller: ListingLifecycleController = Depends(get_lifecycle_controller),
) -> ListingResponse:
    outcome = await controller.change_moderation_status(actor, listing_id, body.status)
    return ListingResponse.from_domain(outcome.listing)


@router.get("/update-requests", response_model=UpdateRequestPageResponse)
async def list_update_requests(
    status_filter: UpdateRequestStatus | None = Query(default=None, alias="status"),
    limit: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    gate: UpdateRequestGate = Depends(get_update_request_gate),
) -> UpdateRequestPageResponse:
    page = await gate.list_requests(actor, PageRequest.from_query(limit, cursor), status_filter)
    return UpdateRequestPageResponse(
        data=[UpdateRequestResponse.from_domain(r) for r in page.data],
        page_info=PageInfo.from_page(page),
    )


@router.post("/update-requests/{request_id}/resolve", response_model=ResolveUpdateRequestResponse)
async def resolve_update_request(
    request_id: str,
    body: ResolveUpdateRequestBody,
    actor: Actor = Depends(get_current_actor),
    gate: UpdateRequestGate = Depends(get_update_request_gate),
) -> ResolveUpdateRequestResponse:
    outcome = await gate.resolve(actor, request_id, body.action, body.note)
    return ResolveUpdateRequestResponse(
        update_request=UpdateRequestResponse.from_domain(outcome.update_request),
        listing=ListingResponse.from_domain(outcome.listing) if outcome.listing else None,
    )


@router.get("/payments", response_model=PaymentPageResponse)
async def list_payments(
    status_filter: TransactionStatus | None = Query(default=None, alias="status"),
    limit: str | None = Query(default=None),
    cursor: str | None = Query(default=None),
    actor: Actor = Depends(get_current_actor),
    resolver: PaymentCorrelationResolver = Depends(get_payment_resolver),
) -> PaymentPageResponse:
    page = await resolver.payment_history(actor, PageRequest.from_query(limit, cursor), status_filter)
    return PaymentPageResponse(
        data=[PaymentTransactionResponse.from_domain(t) for t in page.data],
        page_info=PageInfo.from_page(page),
    )


@router.get("/owners/{owner_id}/counters", response_model=CounterDriftResponse)
async def get_owner_counters(
    owner_id: str,
    actor: Actor = Depends(get_current_actor),
    use_case: InspectCounterDrift = Depends(get_counter_drift_use_case),
) -> CounterDriftResponse:
    """Stored counters next to a fresh recompute, with the per-field drift."""
    return _drift_to_response(await use_case.execute(actor, owner_id))


@router.post("/owners/{owner_id}/counters/recompute", response_model=CounterDriftResponse)
async def recompute_owner_counters(
    owner_id: str,
    actor: Actor = Depends(get_current_actor),
    use_case: RecomputeOwnerCounters = Depends(get_recompute_counters_use_case),
) -> CounterDriftResponse:
    return _drift_to_response(await use_case.execute(actor, owner_id))


@router.get("/settings", response_model=SystemSettingsResponse)
async def get_system_settings(
    actor: Actor = Depends(get_current_actor),
    use_case: GetSystemSettings = Depends(get_settings_use_case),
) -> SystemSettingsResponse:
    return SystemSettingsResponse.from_domain(await use_case.execute(actor))


@router.patch("/settings", response_model=SystemSettingsResponse)
async def update_system_settings(
    body: UpdateSystemSettingsRequest,
    actor: Actor = Depends(get_current_actor),
    use_case: UpdateSystemSettings = Depends(get_update_settings_use_case),
) -> SystemSettingsResponse:
    """Merge the given fields into the stored settings. A new commission rate applies to later fees."""
    return SystemSettingsResponse.from_domain(await use_case.execute(actor, body.changes()))

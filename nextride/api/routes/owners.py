from fastapi import APIRouter, Depends

from nextride.api.dependencies import get_current_actor, get_owner_counters_use_case
from nextride.api.schemas.listing_responses import OwnerCountersResponse
from nextride.application.interfaces.collaborators import Actor
from nextride.application.use_cases.get_owner_counters import (
    GetOwnerCounters,
    GetOwnerCountersInput,
)

router = APIRouter(prefix="/owners", tags=["owners"])


@router.get("/me/counters", response_model=OwnerCountersResponse)
async def get_my_counters(
    actor: Actor = Depends(get_current_actor),
    use_case: GetOwnerCounters = Depends(get_owner_counters_use_case),
) -> OwnerCountersResponse:
    counters = await use_case.execute(GetOwnerCountersInput(actor=actor))
    return OwnerCountersResponse.from_domain(counters)

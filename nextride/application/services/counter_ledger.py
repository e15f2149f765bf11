"""
Aggregate counter ledger: the single place per-owner counters change.

Every lifecycle mutation reports its delta here after the listing write
has succeeded. Listing and counter writes are separate atomic operations,
so counters can drift; a failed counter write is logged as a
ConsistencyWarning and never undoes the listing write. recompute() derives
exact counters from a full scan of the owner's listings and is the repair
path.
"""
from dataclasses import dataclass

import structlog

from nextride.application.interfaces.listing_repository import ListingFilter, ListingRepository
from nextride.application.interfaces.owner_counters_repository import OwnerCountersRepository
from nextride.domain.entities.listing import Listing
from nextride.domain.entities.owner_counters import (
    CounterDelta,
    OwnerCounters,
    counters_from_listings,
    listing_contribution,
    status_change_delta,
    vehicle_type_change_delta,
)
from nextride.domain.enums.listing_enums import VehicleType
from nextride.domain.errors import ConsistencyWarning
from nextride.domain.state_machine.moderation_state_machine import ModerationChange

logger = structlog.get_logger(__name__)

RECOMPUTE_SCAN_SIZE = 500


@dataclass(frozen=True)
class CounterDrift:
    owner_id: str
    stored: OwnerCounters
    recomputed: OwnerCounters

    @property
    def differences(self) -> dict[str, int]:
        return self.stored.diff(self.recomputed)

    @property
    def has_drift(self) -> bool:
        return bool(self.differences)


class CounterLedger:
    def __init__(
        self,
        counters_repo: OwnerCountersRepository,
        listing_repo: ListingRepository,
    ) -> None:
        self._counters_repo = counters_repo
        self._listing_repo = listing_repo

    # -------------------------------------------------------------------------
    # Writes
    # -------------------------------------------------------------------------

    async def apply(self, owner_id: str, delta: CounterDelta) -> bool:
        """Apply delta to the owner's counters. Returns False if the write failed."""
        if delta.is_empty:
            return True
        try:
            await self._counters_repo.increment(owner_id, delta)
        except Exception as exc:
            warning = ConsistencyWarning(owner_id, delta.as_dict(), exc)
            logger.warning(
                "ledger_consistency_warning",
                owner_id=owner_id,
                delta=delta.as_dict(),
                error=str(warning),
            )
            return False

        logger.debug("ledger_applied", owner_id=owner_id, delta=delta.as_dict())
        return True

    async def record_created(self, listing: Listing) -> bool:
        return await self.apply(listing.owner_id, listing_contribution(listing))

    async def record_removed(self, listing: Listing) -> bool:
        return await self.apply(listing.owner_id, -listing_contribution(listing))

    async def record_transition(self, listing: Listing, change: ModerationChange) -> bool:
        return await self.apply(
            listing.owner_id,
            status_change_delta(
                listing.category,
                change.from_status,
                change.to_status,
                change.from_payment,
                change.to_payment,
            ),
        )

    async def record_reclassified(self, listing: Listing, from_type: VehicleType) -> bool:
        """Move a listing whose vehicle_type was edited away from from_type."""
        return await self.apply(
            listing.owner_id,
            vehicle_type_change_delta(listing.category, from_type, listing.vehicle_type),
        )

    # -------------------------------------------------------------------------
    # Reads and repair
    # -------------------------------------------------------------------------

    async def get(self, owner_id: str) -> OwnerCounters:
        stored = await self._counters_repo.get(owner_id)
        return stored if stored is not None else OwnerCounters(owner_id=owner_id)

    async def recompute(self, owner_id: str, *, persist: bool = False) -> OwnerCounters:
        """Derive exact counters from every listing the owner holds."""
        listings: list[Listing] = []
        after_id: str | None = None
        while True:
            batch = await self._listing_repo.scan(
                ListingFilter(owner_id=owner_id), after_id=after_id, limit=RECOMPUTE_SCAN_SIZE
            )
            listings.extend(batch)
            if len(batch) < RECOMPUTE_SCAN_SIZE:
                break
            after_id = batch[-1].id

        counters = counters_from_listings(owner_id, listings)
        if persist:
            await self._counters_repo.replace(counters)
            logger.info("ledger_recomputed", owner_id=owner_id, listings=len(listings))
        return counters

    async def drift(self, owner_id: str) -> CounterDrift:
        stored = await self.get(owner_id)
        recomputed = await self.recompute(owner_id)
        return CounterDrift(owner_id=owner_id, stored=stored, recomputed=recomputed)

    async def owner_ids(self) -> list[str]:
        return await self._counters_repo.list_owner_ids()

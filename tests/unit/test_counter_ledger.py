"""Unit tests for the counter ledger and the counter read/repair use cases."""
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest

from nextride.application.interfaces.collaborators import Actor
from nextride.application.services.counter_ledger import CounterLedger
from nextride.application.use_cases.get_owner_counters import (
    GetOwnerCounters,
    GetOwnerCountersInput,
    InspectCounterDrift,
    RecomputeOwnerCounters,
)
from nextride.domain.entities.listing import Listing
from nextride.domain.entities.owner_counters import CounterDelta, OwnerCounters
from nextride.domain.enums.listing_enums import Role, VehicleType
from nextride.domain.errors import ForbiddenError
from nextride.infrastructure.memory.repositories import (
    InMemoryListingRepository,
    InMemoryOwnerCountersRepository,
)

ADMIN = Actor(id="admin-1", role=Role.ADMIN)
OWNER = Actor(id="owner-1")


def _make_listing(owner_id: str = "owner-1", vehicle_type: VehicleType = VehicleType.CAR) -> Listing:
    return Listing.create_for_sale(
        owner_id=owner_id,
        vehicle_type=vehicle_type,
        make="Honda",
        model_name="Civic",
        year=2020,
        price=Decimal("20000"),
        commission_rate=Decimal("0.05"),
    )


def _make_ledger() -> tuple[CounterLedger, InMemoryListingRepository, InMemoryOwnerCountersRepository]:
    listing_repo = InMemoryListingRepository()
    counters_repo = InMemoryOwnerCountersRepository()
    return CounterLedger(counters_repo, listing_repo), listing_repo, counters_repo


class TestCounterLedger:
    @pytest.mark.asyncio
    async def test_unknown_owner_reads_as_zeros(self) -> None:
        ledger, _, _ = _make_ledger()
        counters = await ledger.get("nobody")
        assert counters == OwnerCounters(owner_id="nobody")

    @pytest.mark.asyncio
    async def test_record_created_then_removed_returns_to_zero(self) -> None:
        ledger, _, _ = _make_ledger()
        listing = _make_listing()

        await ledger.record_created(listing)
        assert (await ledger.get("owner-1")).total_listings == 1

        await ledger.record_removed(listing)
        assert (await ledger.get("owner-1")).as_dict() == OwnerCounters(owner_id="owner-1").as_dict()

    @pytest.mark.asyncio
    async def test_failed_write_is_reported_not_raised(self) -> None:
        counters_repo = MagicMock()
        counters_repo.increment = AsyncMock(side_effect=RuntimeError("db down"))
        ledger = CounterLedger(counters_repo, InMemoryListingRepository())

        applied = await ledger.apply("owner-1", CounterDelta.of({"total_listings": 1}))

        assert applied is False

    @pytest.mark.asyncio
    async def test_empty_delta_skips_the_write(self) -> None:
        counters_repo = MagicMock()
        counters_repo.increment = AsyncMock()
        ledger = CounterLedger(counters_repo, InMemoryListingRepository())

        assert await ledger.apply("owner-1", CounterDelta()) is True
        counters_repo.increment.assert_not_called()

    @pytest.mark.asyncio
    async def test_recompute_matches_incremental_ledger(self) -> None:
        ledger, listing_repo, _ = _make_ledger()
        for vehicle_type in (VehicleType.CAR, VehicleType.BIKE, VehicleType.CAR):
            listing = _make_listing(vehicle_type=vehicle_type)
            await listing_repo.add(listing)
            await ledger.record_created(listing)

        drift = await ledger.drift("owner-1")

        assert drift.has_drift is False
        assert drift.recomputed.car_post_count == 2
        assert drift.recomputed.bike_post_count == 1

    @pytest.mark.asyncio
    async def test_recompute_persist_repairs_drift(self) -> None:
        ledger, listing_repo, counters_repo = _make_ledger()
        await listing_repo.add(_make_listing())
        await counters_repo.replace(OwnerCounters(owner_id="owner-1", pending_count=7, total_listings=7))

        assert (await ledger.drift("owner-1")).differences["pending_count"] == -6

        await ledger.recompute("owner-1", persist=True)

        assert (await ledger.drift("owner-1")).has_drift is False

    @pytest.mark.asyncio
    async def test_recompute_only_counts_the_owners_listings(self) -> None:
        ledger, listing_repo, _ = _make_ledger()
        await listing_repo.add(_make_listing(owner_id="owner-1"))
        await listing_repo.add(_make_listing(owner_id="owner-2"))

        counters = await ledger.recompute("owner-1")

        assert counters.total_listings == 1


    @pytest.mark.asyncio
    async def test_record_reclassified_moves_the_category_bucket(self) -> None:
        ledger, _, _ = _make_ledger()
        listing = _make_listing()
        await ledger.record_created(listing)

        await ledger.record_reclassified(listing.with_changes(vehicle_type=VehicleType.BIKE), VehicleType.CAR)

        counters = await ledger.get("owner-1")
        assert counters.car_post_count == 0
        assert counters.bike_post_count == 1
        assert counters.invariant_violations() == []

    @pytest.mark.asyncio
    async def test_record_reclassified_ignores_rent_listings(self) -> None:
        ledger, _, counters_repo = _make_ledger()
        counters_repo.increment = AsyncMock()  # type: ignore[method-assign]
        rent = Listing.create_for_rent(
            owner_id="owner-1",
            vehicle_type=VehicleType.BIKE,
            model_name="Yamaha FZ",
            price_per_day=Decimal("900"),
            location="Dhaka",
            phone="01700000000",
        )

        await ledger.record_reclassified(rent, VehicleType.CAR)

        counters_repo.increment.assert_not_awaited()


class TestOwnerCounterUseCases:
    @pytest.mark.asyncio
    async def test_owner_reads_own_counters(self) -> None:
        ledger, _, _ = _make_ledger()
        await ledger.record_created(_make_listing())

        counters = await GetOwnerCounters(ledger).execute(GetOwnerCountersInput(actor=OWNER))

        assert counters.pending_count == 1

    @pytest.mark.asyncio
    async def test_owner_cannot_read_someone_elses_counters(self) -> None:
        ledger, _, _ = _make_ledger()
        with pytest.raises(ForbiddenError):
            await GetOwnerCounters(ledger).execute(
                GetOwnerCountersInput(actor=OWNER, owner_id="owner-2")
            )

    @pytest.mark.asyncio
    async def test_admin_reads_any_counters(self) -> None:
        ledger, _, _ = _make_ledger()
        counters = await GetOwnerCounters(ledger).execute(
            GetOwnerCountersInput(actor=ADMIN, owner_id="owner-2")
        )
        assert counters.owner_id == "owner-2"

    @pytest.mark.asyncio
    async def test_drift_inspection_is_admin_only(self) -> None:
        ledger, _, _ = _make_ledger()
        with pytest.raises(ForbiddenError):
            await InspectCounterDrift(ledger).execute(OWNER, "owner-1")

    @pytest.mark.asyncio
    async def test_recompute_reports_before_and_after(self) -> None:
        ledger, listing_repo, counters_repo = _make_ledger()
        await listing_repo.add(_make_listing())
        await counters_repo.replace(OwnerCounters(owner_id="owner-1"))

        result = await RecomputeOwnerCounters(ledger).execute(ADMIN, "owner-1")

        assert result.stored.total_listings == 0
        assert result.recomputed.total_listings == 1
        assert (await ledger.get("owner-1")).total_listings == 1

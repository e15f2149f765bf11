"""Unit tests for the update-request gate."""
from decimal import Decimal
from unittest.mock import patch

import pytest

from nextride.application.interfaces.collaborators import Actor, MediaUpload
from nextride.application.pagination import PageRequest
from nextride.application.services.counter_ledger import CounterLedger
from nextride.application.services.update_request_gate import ListingEdit, UpdateRequestGate
from nextride.domain.entities.listing import Listing
from nextride.domain.enums.listing_enums import (
    PaymentStatus,
    Role,
    SaleStatus,
    UpdateRequestAction,
    UpdateRequestStatus,
    VehicleType,
)
from nextride.domain.errors import ForbiddenError, InvalidStateError, NotFoundError
from nextride.infrastructure.memory.repositories import (
    InMemoryFileStore,
    InMemoryListingRepository,
    InMemoryOwnerCountersRepository,
    InMemorySettingsStore,
    InMemoryUpdateRequestRepository,
    RecordingNotifier,
)

ADMIN = Actor(id="admin-1", role=Role.ADMIN)
OWNER = Actor(id="owner-1")


class _Harness:
    def __init__(self) -> None:
        self.listing_repo = InMemoryListingRepository()
        self.update_request_repo = InMemoryUpdateRequestRepository()
        self.counters_repo = InMemoryOwnerCountersRepository()
        self.ledger = CounterLedger(self.counters_repo, self.listing_repo)
        self.file_store = InMemoryFileStore()
        self.notifier = RecordingNotifier()
        self.gate = UpdateRequestGate(
            self.listing_repo,
            self.update_request_repo,
            self.ledger,
            self.file_store,
            InMemorySettingsStore("0.05"),
            self.notifier,
        )

    async def add_listing(self, status: SaleStatus = SaleStatus.ACTIVE) -> Listing:
        listing = Listing.create_for_sale(
            owner_id="owner-1",
            vehicle_type=VehicleType.CAR,
            make="Nissan",
            model_name="Sunny",
            year=2015,
            price=Decimal("8000"),
            commission_rate=Decimal("0.05"),
            description="Clean car",
            images=["listings/images/old.jpg"],
        )
        payment = PaymentStatus.PAID if status is SaleStatus.ACTIVE else PaymentStatus.PENDING
        listing = listing.with_changes(moderation_status=status, payment_status=payment)
        await self.listing_repo.add(listing)
        await self.ledger.record_created(listing)
        return listing


class TestSubmitEdit:
    @pytest.mark.asyncio
    async def test_edit_of_published_listing_opens_review(self) -> None:
        h = _Harness()
        listing = await h.add_listing()

        outcome = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(description="New tyres"))

        assert outcome.listing.description == "New tyres"
        assert outcome.listing.moderation_status is SaleStatus.PENDING
        assert outcome.update_request is not None
        assert outcome.update_request.status is UpdateRequestStatus.IN_REVIEW
        assert outcome.update_request.previous_values == {
            "description": "Clean car",
            "moderation_status": "active",
        }

    @pytest.mark.asyncio
    async def test_price_edit_recomputes_fee(self) -> None:
        h = _Harness()
        listing = await h.add_listing()

        outcome = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(price=Decimal("9000")))

        assert outcome.listing.platform_fee == 450
        assert outcome.update_request is not None
        assert outcome.update_request.previous_values["platform_fee"] == 400

    @pytest.mark.asyncio
    async def test_pending_listing_is_edited_without_review(self) -> None:
        h = _Harness()
        listing = await h.add_listing(SaleStatus.PENDING)

        outcome = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(make="Datsun"))

        assert outcome.update_request is None
        assert outcome.listing.make == "Datsun"
        assert outcome.listing.moderation_status is SaleStatus.PENDING

    @pytest.mark.asyncio
    async def test_pending_edit_does_not_snapshot_previous_values(self) -> None:
        h = _Harness()
        listing = await h.add_listing(SaleStatus.PENDING)

        with patch.object(Listing, "snapshot", wraps=listing.snapshot) as snapshot:
            outcome = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(year=2017))

        assert outcome.update_request is None
        snapshot.assert_not_called()
        assert await h.update_request_repo.find_in_review(listing.id) is None

    @pytest.mark.asyncio
    async def test_second_edit_while_in_review_rejected(self) -> None:
        h = _Harness()
        listing = await h.add_listing()
        await h.gate.submit_edit(OWNER, listing.id, ListingEdit(description="One"))
        # Listing is pending now, but the open request still blocks another
        await h.listing_repo.update_fields(listing.id, {"moderation_status": SaleStatus.ACTIVE})

        with pytest.raises(InvalidStateError):
            await h.gate.submit_edit(OWNER, listing.id, ListingEdit(description="Two"))

    @pytest.mark.asyncio
    async def test_edit_with_no_changes_rejected(self) -> None:
        h = _Harness()
        listing = await h.add_listing()

        with pytest.raises(InvalidStateError):
            await h.gate.submit_edit(OWNER, listing.id, ListingEdit(make="Nissan"))

    @pytest.mark.asyncio
    async def test_only_owner_can_edit(self) -> None:
        h = _Harness()
        listing = await h.add_listing()

        with pytest.raises(ForbiddenError):
            await h.gate.submit_edit(Actor(id="owner-2"), listing.id, ListingEdit(make="X"))

    @pytest.mark.asyncio
    async def test_missing_listing(self) -> None:
        h = _Harness()
        with pytest.raises(NotFoundError):
            await h.gate.submit_edit(OWNER, "f" * 24, ListingEdit(make="X"))

    @pytest.mark.asyncio
    async def test_new_images_replace_old_ones(self) -> None:
        h = _Harness()
        listing = await h.add_listing()
        h.file_store.files["listings/images/old.jpg"] = b"old"

        outcome = await h.gate.submit_edit(
            OWNER,
            listing.id,
            ListingEdit(),
            images=[MediaUpload(filename="new.jpg", content=b"new")],
        )

        assert outcome.listing.images != ["listings/images/old.jpg"]
        assert "listings/images/old.jpg" not in h.file_store.files
        assert outcome.listing.images[0] in h.file_store.files


class TestVehicleTypeEdit:
    @pytest.mark.asyncio
    async def test_pending_listing_moves_between_category_counters(self) -> None:
        h = _Harness()
        listing = await h.add_listing(SaleStatus.PENDING)

        outcome = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(vehicle_type=VehicleType.BIKE))

        counters = await h.ledger.get("owner-1")
        assert outcome.listing.vehicle_type is VehicleType.BIKE
        assert counters.bike_post_count == 1
        assert counters.car_post_count == 0
        assert not (await h.ledger.drift("owner-1")).has_drift

        # Removing the reclassified listing must not drive a bucket negative
        await h.listing_repo.delete(listing.id)
        await h.ledger.record_removed(outcome.listing)
        after = await h.ledger.get("owner-1")
        assert after.bike_post_count == 0
        assert after.car_post_count == 0
        assert after.invariant_violations() == []
        assert not (await h.ledger.drift("owner-1")).has_drift

    @pytest.mark.asyncio
    async def test_published_listing_drifts_only_in_status_buckets(self) -> None:
        h = _Harness()
        listing = await h.add_listing(SaleStatus.ACTIVE)

        outcome = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(vehicle_type=VehicleType.BIKE))

        assert outcome.update_request is not None
        assert outcome.update_request.previous_values["vehicle_type"] == "car"
        counters = await h.ledger.get("owner-1")
        assert counters.bike_post_count == 1
        assert counters.car_post_count == 0
        differences = (await h.ledger.drift("owner-1")).differences
        assert "bike_post_count" not in differences
        assert "car_post_count" not in differences

        await h.gate.resolve(ADMIN, outcome.update_request.id, UpdateRequestAction.APPROVE)

        assert not (await h.ledger.drift("owner-1")).has_drift

    @pytest.mark.asyncio
    async def test_other_edits_leave_counters_alone(self) -> None:
        h = _Harness()
        listing = await h.add_listing(SaleStatus.PENDING)
        before = await h.ledger.get("owner-1")

        await h.gate.submit_edit(OWNER, listing.id, ListingEdit(make="Datsun"))

        assert await h.ledger.get("owner-1") == before


class TestResolve:
    @pytest.mark.asyncio
    async def test_reject_keeps_the_edit_and_republishes(self) -> None:
        h = _Harness()
        listing = await h.add_listing()
        submitted = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(description="Mint condition"))
        assert submitted.update_request is not None

        outcome = await h.gate.resolve(
            ADMIN, submitted.update_request.id, UpdateRequestAction.REJECT, note="blurry photo"
        )

        assert outcome.update_request.status is UpdateRequestStatus.REJECTED
        assert outcome.update_request.note == "blurry photo"
        assert outcome.update_request.resolved_by == "admin-1"
        assert outcome.listing is not None
        assert outcome.listing.description == "Mint condition"
        assert outcome.listing.moderation_status is SaleStatus.ACTIVE
        assert outcome.listing.payment_status is PaymentStatus.PAID
        assert h.notifier.sent[-1][1] == "update_request_resolved"

    @pytest.mark.asyncio
    async def test_approve_republishes(self) -> None:
        h = _Harness()
        listing = await h.add_listing()
        submitted = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(year=2016))
        assert submitted.update_request is not None

        outcome = await h.gate.resolve(ADMIN, submitted.update_request.id, UpdateRequestAction.APPROVE)

        assert outcome.update_request.status is UpdateRequestStatus.APPROVED
        assert outcome.listing is not None
        assert outcome.listing.year == 2016
        assert outcome.listing.moderation_status is SaleStatus.ACTIVE

    @pytest.mark.asyncio
    async def test_resolving_twice_rejected(self) -> None:
        h = _Harness()
        listing = await h.add_listing()
        submitted = await h.gate.submit_edit(OWNER, listing.id, ListingEdit(year=2016))
        assert submitted.update_request is not None
        await h.gate.resolve(ADMIN, submitted.update_request.id, UpdateRequestAction.APPROVE)

        with pytest.raises(InvalidStateError):
            await h.gate.resolve(ADMIN, submitted.update_request.id, UpdateRequestAction.REJECT)

    @pytest.mark.asyncio
    async def test_non_admin_cannot_resolve(self) -> None:
        h = _Harness()
        with pytest.raises(ForbiddenError):
            await h.gate.resolve(OWNER, "a" * 24, UpdateRequestAction.APPROVE)

    @pytest.mark.asyncio
    async def test_list_requests_filters_by_status(self) -> None:
        h = _Harness()
        first = await h.add_listing()
        second = await h.add_listing()
        submitted = await h.gate.submit_edit(OWNER, first.id, ListingEdit(year=2016))
        await h.gate.submit_edit(OWNER, second.id, ListingEdit(year=2014))
        assert submitted.update_request is not None
        await h.gate.resolve(ADMIN, submitted.update_request.id, UpdateRequestAction.APPROVE)

        page = await h.gate.list_requests(
            ADMIN, PageRequest.from_query(10), UpdateRequestStatus.IN_REVIEW
        )

        assert [r.listing_id for r in page.data] == [second.id]
        assert page.has_next_page is False

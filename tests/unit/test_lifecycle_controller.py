"""Unit tests for the listing lifecycle controller, backed by in-memory repositories."""
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from nextride.application.interfaces.collaborators import Actor, MediaUpload
from nextride.application.services.counter_ledger import CounterLedger
from nextride.application.services.lifecycle_controller import (
    ListingLifecycleController,
    RentListingDraft,
    SaleListingDraft,
)
from nextride.domain.entities.update_request import UpdateRequest
from nextride.domain.enums.listing_enums import (
    Availability,
    PaymentStatus,
    RentStatus,
    Role,
    SaleStatus,
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
STRANGER = Actor(id="owner-2")


class _Harness:
    def __init__(self) -> None:
        self.listing_repo = InMemoryListingRepository()
        self.counters_repo = InMemoryOwnerCountersRepository()
        self.update_request_repo = InMemoryUpdateRequestRepository()
        self.file_store = InMemoryFileStore()
        self.notifier = RecordingNotifier()
        self.ledger = CounterLedger(self.counters_repo, self.listing_repo)
        self.controller = ListingLifecycleController(
            self.listing_repo,
            self.update_request_repo,
            self.ledger,
            self.file_store,
            InMemorySettingsStore("0.05"),
            self.notifier,
        )


def _sale_draft(price: str = "10000") -> SaleListingDraft:
    return SaleListingDraft(
        vehicle_type=VehicleType.CAR,
        make="Toyota",
        model_name="Axio",
        year=2017,
        price=Decimal(price),
    )


def _rent_draft() -> RentListingDraft:
    return RentListingDraft(
        vehicle_type=VehicleType.BIKE,
        model_name="Suzuki Gixxer",
        price_per_day=Decimal("1200"),
        location="Chattogram",
        phone="01800000000",
    )


def _image(name: str = "front.jpg") -> MediaUpload:
    return MediaUpload(filename=name, content=b"\xff\xd8", content_type="image/jpeg")


class TestCreateListings:
    @pytest.mark.asyncio
    async def test_sale_listing_gets_fee_and_counters(self) -> None:
        h = _Harness()

        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [_image()])

        assert listing.platform_fee == 500
        assert listing.moderation_status is SaleStatus.PENDING
        assert len(listing.images) == 1 and listing.images[0] in h.file_store.files
        counters = await h.ledger.get("owner-1")
        assert counters.total_listings == 1
        assert counters.pending_count == 1
        assert counters.payment_pending_count == 1
        assert counters.car_post_count == 1
        assert h.notifier.sent[0][1] == "listing_submitted"

    @pytest.mark.asyncio
    async def test_rent_listing_counts_only_rent(self) -> None:
        h = _Harness()

        listing = await h.controller.create_rent_listing(OWNER, _rent_draft(), [])

        assert listing.availability is Availability.AVAILABLE
        counters = await h.ledger.get("owner-1")
        assert counters.rent_listing_count == 1
        assert counters.total_listings == 0

    @pytest.mark.asyncio
    async def test_failed_insert_removes_uploaded_media(self) -> None:
        h = _Harness()
        h.listing_repo.add = AsyncMock(side_effect=RuntimeError("insert failed"))  # type: ignore[method-assign]

        with pytest.raises(RuntimeError):
            await h.controller.create_sale_listing(OWNER, _sale_draft(), [_image()])

        assert h.file_store.files == {}
        assert (await h.ledger.get("owner-1")).total_listings == 0


class TestModeration:
    @pytest.mark.asyncio
    async def test_approval_sets_paid_and_moves_counters(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        outcome = await h.controller.change_moderation_status(ADMIN, listing.id, "active")

        assert outcome.changed is True
        assert outcome.listing.moderation_status is SaleStatus.ACTIVE
        assert outcome.listing.payment_status is PaymentStatus.PAID
        counters = await h.ledger.get("owner-1")
        assert counters.active_count == 1
        assert counters.pending_count == 0
        assert counters.paid_count == 1
        assert counters.payment_pending_count == 0
        assert (await h.ledger.drift("owner-1")).has_drift is False

    @pytest.mark.asyncio
    async def test_rejection_resets_payment(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])
        await h.controller.change_moderation_status(ADMIN, listing.id, "active")

        outcome = await h.controller.change_moderation_status(ADMIN, listing.id, "rejected")

        assert outcome.change.is_override is True
        assert outcome.listing.payment_status is PaymentStatus.PENDING
        assert (await h.ledger.drift("owner-1")).has_drift is False

    @pytest.mark.asyncio
    async def test_same_status_changes_nothing(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        outcome = await h.controller.change_moderation_status(ADMIN, listing.id, "pending")

        assert outcome.changed is False
        assert (await h.ledger.get("owner-1")).pending_count == 1

    @pytest.mark.asyncio
    async def test_non_admin_forbidden(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        with pytest.raises(ForbiddenError):
            await h.controller.change_moderation_status(OWNER, listing.id, "active")

    @pytest.mark.asyncio
    async def test_unknown_status_rejected(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        with pytest.raises(InvalidStateError):
            await h.controller.change_moderation_status(ADMIN, listing.id, "approved")

    @pytest.mark.asyncio
    async def test_missing_listing(self) -> None:
        h = _Harness()
        with pytest.raises(NotFoundError):
            await h.controller.change_moderation_status(ADMIN, "0" * 24, "active")

    @pytest.mark.asyncio
    async def test_rent_approval_leaves_counters_alone(self) -> None:
        h = _Harness()
        listing = await h.controller.create_rent_listing(OWNER, _rent_draft(), [])

        outcome = await h.controller.change_moderation_status(ADMIN, listing.id, "approved")

        assert outcome.listing.moderation_status is RentStatus.APPROVED
        assert (await h.ledger.get("owner-1")).rent_listing_count == 1

    @pytest.mark.asyncio
    async def test_conflicting_write_is_retried_against_fresh_state(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])
        real_update = h.listing_repo.update_fields
        calls = []

        async def first_write_loses(listing_id, values, *, expected=None):  # type: ignore[no-untyped-def]
            calls.append(expected)
            if len(calls) == 1:
                return None
            return await real_update(listing_id, values, expected=expected)

        h.listing_repo.update_fields = first_write_loses  # type: ignore[method-assign]

        outcome = await h.controller.change_moderation_status(ADMIN, listing.id, "active")

        assert outcome.changed is True
        assert len(calls) == 2
        assert (await h.ledger.get("owner-1")).active_count == 1

    @pytest.mark.asyncio
    async def test_last_attempt_writes_unconditionally(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])
        real_update = h.listing_repo.update_fields
        seen_expected = []

        async def conditional_writes_lose(listing_id, values, *, expected=None):  # type: ignore[no-untyped-def]
            seen_expected.append(expected)
            if expected is not None:
                return None
            return await real_update(listing_id, values)

        h.listing_repo.update_fields = conditional_writes_lose  # type: ignore[method-assign]

        outcome = await h.controller.change_moderation_status(ADMIN, listing.id, "active")

        assert outcome.changed is True
        assert len(seen_expected) == ListingLifecycleController.MAX_WRITE_ATTEMPTS
        assert seen_expected[-1] is None


class TestPaymentStatus:
    @pytest.mark.asyncio
    async def test_paid_while_pending_moves_payment_counters_only(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        outcome = await h.controller.set_payment_status(listing.id, PaymentStatus.PAID)

        assert outcome.listing.moderation_status is SaleStatus.PENDING
        assert outcome.listing.payment_status is PaymentStatus.PAID
        counters = await h.ledger.get("owner-1")
        assert counters.paid_count == 1
        assert counters.pending_count == 1

    @pytest.mark.asyncio
    async def test_rent_listing_has_no_payment(self) -> None:
        h = _Harness()
        listing = await h.controller.create_rent_listing(OWNER, _rent_draft(), [])

        with pytest.raises(InvalidStateError):
            await h.controller.set_payment_status(listing.id, PaymentStatus.PAID)


class TestAvailability:
    @pytest.mark.asyncio
    async def test_owner_marks_rented(self) -> None:
        h = _Harness()
        listing = await h.controller.create_rent_listing(OWNER, _rent_draft(), [])

        updated = await h.controller.set_availability(OWNER, listing.id, "rented")

        assert updated.availability is Availability.RENTED

    @pytest.mark.asyncio
    async def test_only_owner_may_change_availability(self) -> None:
        h = _Harness()
        listing = await h.controller.create_rent_listing(OWNER, _rent_draft(), [])

        with pytest.raises(ForbiddenError):
            await h.controller.set_availability(STRANGER, listing.id, "rented")

    @pytest.mark.asyncio
    async def test_sale_listing_has_no_availability(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        with pytest.raises(InvalidStateError):
            await h.controller.set_availability(OWNER, listing.id, "rented")


class TestDelete:
    @pytest.mark.asyncio
    async def test_delete_cascades_media_requests_and_counters(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [_image(), _image("rear.jpg")])
        await h.update_request_repo.add(
            UpdateRequest.open(listing_id=listing.id, requester_id="owner-1", previous_values={})
        )

        await h.controller.delete_listing(OWNER, listing.id)

        assert await h.listing_repo.get_by_id(listing.id) is None
        assert h.file_store.files == {}
        assert await h.update_request_repo.find_in_review(listing.id) is None
        counters = await h.ledger.get("owner-1")
        assert counters.total_listings == 0
        assert counters.pending_count == 0

    @pytest.mark.asyncio
    async def test_stranger_cannot_delete(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        with pytest.raises(ForbiddenError):
            await h.controller.delete_listing(STRANGER, listing.id)

    @pytest.mark.asyncio
    async def test_admin_delete_notifies_owner(self) -> None:
        h = _Harness()
        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        await h.controller.delete_listing(ADMIN, listing.id)

        assert ("owner-1", "listing_removed", {"listing_id": listing.id}) in h.notifier.sent

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_fail_the_operation(self) -> None:
        h = _Harness()
        h.notifier.send = AsyncMock(side_effect=RuntimeError("broker down"))  # type: ignore[method-assign]

        listing = await h.controller.create_sale_listing(OWNER, _sale_draft(), [])

        assert await h.listing_repo.get_by_id(listing.id) is not None

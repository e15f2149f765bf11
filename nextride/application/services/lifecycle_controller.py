"""
Listing lifecycle controller.

Owns every status write on a listing outside the update-request gate:
moderation (admin), availability (rent owner) and payment (payment
resolver). Each status write re-reads the listing and is conditioned on
the (moderation_status, payment_status) pair it read, so the counter
delta is always computed from the state the write actually replaced.
"""
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import structlog

from nextride.application.interfaces.collaborators import (
    Actor,
    ConfigProvider,
    FileStore,
    MediaUpload,
    Notifier,
)
from nextride.application.interfaces.listing_repository import ListingRepository
from nextride.application.interfaces.update_request_repository import UpdateRequestRepository
from nextride.application.services.counter_ledger import CounterLedger
from nextride.domain.entities.listing import Listing
from nextride.domain.enums.listing_enums import (
    Availability,
    FuelType,
    ListingCategory,
    PaymentStatus,
    VehicleCondition,
    VehicleType,
)
from nextride.domain.errors import ForbiddenError, InvalidStateError, NotFoundError
from nextride.domain.state_machine.moderation_state_machine import (
    ModerationChange,
    ModerationStateMachine,
)

logger = structlog.get_logger(__name__)

SALE_IMAGE_FOLDER = "listings/images"
SALE_VIDEO_FOLDER = "listings/videos"
RENT_IMAGE_FOLDER = "rentals/images"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SaleListingDraft:
    vehicle_type: VehicleType
    make: str
    model_name: str
    year: int
    price: Decimal
    mileage: int | None = None
    fuel_type: FuelType | None = None
    condition: VehicleCondition | None = None
    description: str | None = None
    location: str | None = None
    phone: str | None = None
    email: str | None = None


@dataclass
class RentListingDraft:
    vehicle_type: VehicleType
    model_name: str
    price_per_day: Decimal
    location: str
    phone: str
    email: str | None = None
    description: str | None = None


@dataclass(frozen=True)
class TransitionOutcome:
    listing: Listing
    change: ModerationChange
    changed: bool


class ListingLifecycleController:
    MAX_WRITE_ATTEMPTS = 3

    def __init__(
        self,
        listing_repo: ListingRepository,
        update_request_repo: UpdateRequestRepository,
        ledger: CounterLedger,
        file_store: FileStore,
        config: ConfigProvider,
        notifier: Notifier,
    ) -> None:
        self._listing_repo = listing_repo
        self._update_request_repo = update_request_repo
        self._ledger = ledger
        self._file_store = file_store
        self._config = config
        self._notifier = notifier
        self._state_machine = ModerationStateMachine()

    # -------------------------------------------------------------------------
    # Creation
    # -------------------------------------------------------------------------

    async def create_sale_listing(
        self,
        actor: Actor,
        draft: SaleListingDraft,
        images: list[MediaUpload],
        video: MediaUpload | None = None,
    ) -> Listing:
        rate = await self._config.commission_rate()
        image_paths = await self._file_store.save(images, SALE_IMAGE_FOLDER) if images else []
        video_paths = await self._file_store.save([video], SALE_VIDEO_FOLDER) if video else []

        listing = Listing.create_for_sale(
            owner_id=actor.id,
            vehicle_type=draft.vehicle_type,
            make=draft.make,
            model_name=draft.model_name,
            year=draft.year,
            price=draft.price,
            commission_rate=rate,
            mileage=draft.mileage,
            fuel_type=draft.fuel_type,
            condition=draft.condition,
            description=draft.description,
            location=draft.location,
            phone=draft.phone,
            email=draft.email,
            images=image_paths,
            video=video_paths[0] if video_paths else None,
        )
        return await self._persist_new(listing, image_paths + video_paths)

    async def create_rent_listing(
        self, actor: Actor, draft: RentListingDraft, images: list[MediaUpload]
    ) -> Listing:
        image_paths = await self._file_store.save(images, RENT_IMAGE_FOLDER) if images else []

        listing = Listing.create_for_rent(
            owner_id=actor.id,
            vehicle_type=draft.vehicle_type,
            model_name=draft.model_name,
            price_per_day=draft.price_per_day,
            location=draft.location,
            phone=draft.phone,
            email=draft.email,
            description=draft.description,
            images=image_paths,
        )
        return await self._persist_new(listing, image_paths)

    async def _persist_new(self, listing: Listing, media_paths: list[str]) -> Listing:
        try:
            await self._listing_repo.add(listing)
        except Exception:
            if media_paths:
                await self._file_store.delete(media_paths)
            raise

        await self._ledger.record_created(listing)
        logger.info(
            "listing_created",
            listing_id=listing.id,
            owner_id=listing.owner_id,
            category=listing.category.value,
            vehicle_type=listing.vehicle_type.value,
            platform_fee=listing.platform_fee,
        )
        await self._notify(
            listing.owner_id,
            "listing_submitted",
            {"listing_id": listing.id, "category": listing.category.value},
        )
        return listing

    # -------------------------------------------------------------------------
    # Reads
    # -------------------------------------------------------------------------

    async def get_listing(self, listing_id: str) -> Listing:
        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise NotFoundError("Listing", listing_id)
        return listing

    # -------------------------------------------------------------------------
    # Status transitions
    # -------------------------------------------------------------------------

    async def change_moderation_status(
        self, actor: Actor, listing_id: str, target: str
    ) -> TransitionOutcome:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can change a listing's moderation status.")

        def plan(listing: Listing) -> ModerationChange:
            return self._state_machine.plan_transition(
                listing.category, listing.moderation_status, target, listing.payment_status
            )

        outcome = await self._write_transition(listing_id, plan)
        if not outcome.changed:
            logger.info("moderation_status_unchanged", listing_id=listing_id, status=str(target))
            return outcome

        change = outcome.change
        log = logger.warning if change.is_override else logger.info
        log(
            "moderation_override" if change.is_override else "moderation_status_changed",
            listing_id=listing_id,
            from_status=change.from_status.value,
            to_status=change.to_status.value,
            payment_status=change.to_payment.value if change.to_payment else None,
            admin_id=actor.id,
        )
        await self._notify(
            outcome.listing.owner_id,
            "listing_status_changed",
            {
                "listing_id": listing_id,
                "from_status": change.from_status.value,
                "to_status": change.to_status.value,
            },
        )
        return outcome

    async def set_payment_status(self, listing_id: str, status: PaymentStatus) -> TransitionOutcome:
        """Payment-axis write used by the payment resolver."""

        def plan(listing: Listing) -> ModerationChange:
            if not listing.is_sale:
                raise InvalidStateError("Rent listings have no payment status.")
            return ModerationChange(
                from_status=listing.moderation_status,
                to_status=listing.moderation_status,
                from_payment=listing.payment_status,
                to_payment=status,
                is_override=False,
            )

        outcome = await self._write_transition(listing_id, plan)
        if outcome.changed:
            logger.info(
                "payment_status_changed",
                listing_id=listing_id,
                from_payment=outcome.change.from_payment.value if outcome.change.from_payment else None,
                to_payment=status.value,
            )
        return outcome

    async def set_availability(self, actor: Actor, listing_id: str, target: str) -> Listing:
        listing = await self.get_listing(listing_id)
        if listing.category is not ListingCategory.RENT:
            raise InvalidStateError("Only rent listings have an availability.")
        if not listing.is_owned_by(actor.id):
            raise ForbiddenError("Only the owner can change a listing's availability.")

        current = listing.availability or Availability.AVAILABLE
        to_availability = self._state_machine.validate_availability(current, target)
        if to_availability == current:
            return listing

        updated = await self._listing_repo.update_fields(
            listing_id,
            {"availability": to_availability, "updated_at": _utcnow()},
        )
        if updated is None:
            raise NotFoundError("Listing", listing_id)
        logger.info(
            "availability_changed",
            listing_id=listing_id,
            from_availability=current.value,
            to_availability=to_availability.value,
        )
        return updated

    async def _write_transition(
        self, listing_id: str, plan: Callable[[Listing], ModerationChange]
    ) -> TransitionOutcome:
        for attempt in range(1, self.MAX_WRITE_ATTEMPTS + 1):
            current = await self.get_listing(listing_id)
            change = plan(current)
            if change.is_noop:
                return TransitionOutcome(listing=current, change=change, changed=False)

            # Last attempt writes unconditionally: last write wins
            expected = None
            if attempt < self.MAX_WRITE_ATTEMPTS:
                expected = {
                    "moderation_status": change.from_status,
                    "payment_status": change.from_payment,
                }
            updated = await self._listing_repo.update_fields(
                listing_id,
                {
                    "moderation_status": change.to_status,
                    "payment_status": change.to_payment,
                    "updated_at": _utcnow(),
                },
                expected=expected,
            )
            if updated is not None:
                await self._ledger.record_transition(updated, change)
                return TransitionOutcome(listing=updated, change=change, changed=True)

            logger.info("listing_write_conflict", listing_id=listing_id, attempt=attempt)

        raise NotFoundError("Listing", listing_id)

    # -------------------------------------------------------------------------
    # Deletion
    # -------------------------------------------------------------------------

    async def delete_listing(self, actor: Actor, listing_id: str) -> None:
        listing = await self.get_listing(listing_id)
        if not (actor.is_admin or listing.is_owned_by(actor.id)):
            raise ForbiddenError("You can only delete your own listings.")

        # Counter contribution goes first so a crash below never leaves it behind
        await self._ledger.record_removed(listing)

        media = list(listing.images) + ([listing.video] if listing.video else [])
        if media:
            await self._file_store.delete(media)

        await self._listing_repo.delete(listing_id)
        removed_requests = await self._update_request_repo.delete_for_listing(listing_id)

        logger.info(
            "listing_deleted",
            listing_id=listing_id,
            owner_id=listing.owner_id,
            deleted_by=actor.id,
            removed_update_requests=removed_requests,
        )
        if actor.id != listing.owner_id:
            await self._notify(listing.owner_id, "listing_removed", {"listing_id": listing_id})

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _notify(self, owner_id: str, template_id: str, data: dict[str, Any]) -> None:
        try:
            await self._notifier.send(owner_id, template_id, data)
        except Exception as exc:
            logger.error("notification_failed", owner_id=owner_id, template_id=template_id, error=str(exc))

"""
Update-request gate: review workflow for edits to published sale listings.

Edits are written to the listing in place the moment they are submitted
and the listing drops back to pending. There is no staged copy, so an
admin "reject" only restores visibility; the overwritten values are kept
on the request (previous_values) for manual correction.

A vehicle_type edit moves the listing between the car and bike counters
right away. The moderation moves made here (back to pending on submit,
forced active on resolve) are not reported to the ledger, so counters for
a listing routed through review can disagree with recompute() until the
next repair run.
"""
from dataclasses import dataclass, fields
from datetime import datetime, timezone
from decimal import Decimal

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
from nextride.application.pagination import Page, PageRequest, build_page
from nextride.application.services.counter_ledger import CounterLedger
from nextride.application.services.lifecycle_controller import (
    SALE_IMAGE_FOLDER,
    SALE_VIDEO_FOLDER,
)
from nextride.domain.entities.listing import Listing, compute_platform_fee
from nextride.domain.entities.update_request import UpdateRequest
from nextride.domain.enums.listing_enums import (
    FuelType,
    PaymentStatus,
    SaleStatus,
    UpdateRequestAction,
    UpdateRequestStatus,
    VehicleCondition,
    VehicleType,
)
from nextride.domain.errors import ForbiddenError, InvalidStateError, NotFoundError

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ListingEdit:
    """New field values; None means keep the current value."""

    vehicle_type: VehicleType | None = None
    make: str | None = None
    model_name: str | None = None
    year: int | None = None
    price: Decimal | None = None
    mileage: int | None = None
    fuel_type: FuelType | None = None
    condition: VehicleCondition | None = None
    description: str | None = None
    location: str | None = None
    phone: str | None = None
    email: str | None = None

    def changes_against(self, listing: Listing) -> dict[str, object]:
        changes: dict[str, object] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is not None and value != getattr(listing, f.name):
                changes[f.name] = value
        return changes


@dataclass(frozen=True)
class EditOutcome:
    listing: Listing
    update_request: UpdateRequest | None


@dataclass(frozen=True)
class ResolutionOutcome:
    update_request: UpdateRequest
    listing: Listing | None


class UpdateRequestGate:
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

    async def submit_edit(
        self,
        actor: Actor,
        listing_id: str,
        edit: ListingEdit,
        images: list[MediaUpload] | None = None,
        video: MediaUpload | None = None,
    ) -> EditOutcome:
        listing = await self._listing_repo.get_by_id(listing_id)
        if listing is None:
            raise NotFoundError("Listing", listing_id)
        if not listing.is_owned_by(actor.id):
            raise ForbiddenError("You can only edit your own listings.")
        if not listing.is_sale:
            raise InvalidStateError("Update requests apply to sale listings only.")

        open_request = await self._update_request_repo.find_in_review(listing_id)
        if open_request is not None:
            raise InvalidStateError(
                f"Update request {open_request.id} for this listing is still in review."
            )

        changes = edit.changes_against(listing)
        if "price" in changes:
            rate = await self._config.commission_rate()
            changes["platform_fee"] = compute_platform_fee(Decimal(changes["price"]), rate)  # type: ignore[arg-type]
        if not changes and not images and not video:
            raise InvalidStateError("The edit does not change anything.")

        new_media: list[str] = []
        replaced_media: list[str] = []
        if images:
            changes["images"] = await self._file_store.save(images, SALE_IMAGE_FOLDER)
            new_media.extend(changes["images"])  # type: ignore[arg-type]
            replaced_media.extend(listing.images)
        if video:
            saved = await self._file_store.save([video], SALE_VIDEO_FOLDER)
            changes["video"] = saved[0]
            new_media.extend(saved)
            if listing.video:
                replaced_media.append(listing.video)

        # A listing still waiting for its first moderation needs no second review
        needs_review = listing.moderation_status != SaleStatus.PENDING
        previous_values: dict[str, object] = {}
        if needs_review:
            previous_values = listing.snapshot(sorted(changes))
            previous_values["moderation_status"] = listing.moderation_status.value
            changes["moderation_status"] = SaleStatus.PENDING
        changes["updated_at"] = _utcnow()

        updated = await self._listing_repo.update_fields(listing_id, changes)
        if updated is None:
            if new_media:
                await self._file_store.delete(new_media)
            raise NotFoundError("Listing", listing_id)

        if "vehicle_type" in changes:
            await self._ledger.record_reclassified(updated, listing.vehicle_type)

        request: UpdateRequest | None = None
        if needs_review:
            request = UpdateRequest.open(
                listing_id=listing_id,
                requester_id=actor.id,
                previous_values=previous_values,
            )
            await self._update_request_repo.add(request)

        if replaced_media:
            await self._file_store.delete(replaced_media)

        logger.info(
            "listing_edited",
            listing_id=listing_id,
            fields=sorted(k for k in changes if k not in ("updated_at", "moderation_status")),
            update_request_id=request.id if request else None,
        )
        return EditOutcome(listing=updated, update_request=request)

    async def resolve(
        self,
        actor: Actor,
        request_id: str,
        action: UpdateRequestAction,
        note: str | None = None,
    ) -> ResolutionOutcome:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can resolve update requests.")

        request = await self.get_request(request_id)
        if request.status.is_terminal:
            raise InvalidStateError(f"Update request {request_id} is already {request.status.value}.")

        resolved = await self._update_request_repo.resolve(
            request_id,
            status=UpdateRequest.status_for(action),
            resolved_by=actor.id,
            note=note,
            resolved_at=_utcnow(),
        )
        if resolved is None:
            raise InvalidStateError(f"Update request {request_id} was resolved concurrently.")

        # Both outcomes republish the listing; edits are not rolled back
        listing = await self._listing_repo.update_fields(
            request.listing_id,
            {
                "moderation_status": SaleStatus.ACTIVE,
                "payment_status": PaymentStatus.PAID,
                "updated_at": _utcnow(),
            },
        )
        if listing is None:
            logger.warning("update_request_listing_missing", request_id=request_id, listing_id=request.listing_id)

        logger.info(
            "update_request_resolved",
            request_id=request_id,
            listing_id=request.listing_id,
            status=resolved.status.value,
            admin_id=actor.id,
        )
        try:
            await self._notifier.send(
                request.requester_id,
                "update_request_resolved",
                {"request_id": request_id, "listing_id": request.listing_id, "status": resolved.status.value, "note": note},
            )
        except Exception as exc:
            logger.error("notification_failed", owner_id=request.requester_id, error=str(exc))

        return ResolutionOutcome(update_request=resolved, listing=listing)

    async def get_request(self, request_id: str) -> UpdateRequest:
        request = await self._update_request_repo.get_by_id(request_id)
        if request is None:
            raise NotFoundError("Update request", request_id)
        return request

    async def list_requests(
        self, actor: Actor, page: PageRequest, status: UpdateRequestStatus | None = None
    ) -> Page[UpdateRequest]:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can browse update requests.")
        records = await self._update_request_repo.scan(
            status=status, after_id=page.after_id, limit=page.fetch_size
        )
        return build_page(records, page.limit)

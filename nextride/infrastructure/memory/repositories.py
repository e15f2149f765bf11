"""
In-memory implementations of the persistence and collaborator ports.

Used by the test-suite and for running the API without PostgreSQL. Each
call copies records in and out so callers never share state with the
store, matching how the SQL repositories return fresh entities.
"""
import asyncio
import copy
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Any

import structlog

from nextride.application.interfaces.collaborators import (
    FileStore,
    MediaUpload,
    Notifier,
    SettingsStore,
)
from nextride.application.interfaces.listing_repository import ListingFilter, ListingRepository
from nextride.application.interfaces.owner_counters_repository import OwnerCountersRepository
from nextride.application.interfaces.payment_transaction_repository import (
    PaymentTransactionRepository,
)
from nextride.application.interfaces.update_request_repository import UpdateRequestRepository
from nextride.domain.entities.listing import Listing
from nextride.domain.entities.owner_counters import CounterDelta, OwnerCounters
from nextride.domain.entities.payment_transaction import PaymentTransaction
from nextride.domain.entities.system_settings import SystemSettings
from nextride.domain.entities.update_request import UpdateRequest
from nextride.domain.enums.listing_enums import TransactionStatus, UpdateRequestStatus
from nextride.domain.errors import InvalidStateError
from nextride.domain.identifiers import new_record_id

logger = structlog.get_logger(__name__)


def _matches(listing: Listing, listing_filter: ListingFilter) -> bool:
    if listing_filter.category is not None and listing.category != listing_filter.category:
        return False
    if listing_filter.vehicle_type is not None and listing.vehicle_type != listing_filter.vehicle_type:
        return False
    if listing_filter.owner_id is not None and listing.owner_id != listing_filter.owner_id:
        return False
    if (
        listing_filter.moderation_status is not None
        and listing.moderation_status.value != listing_filter.moderation_status
    ):
        return False
    if listing_filter.availability is not None and listing.availability != listing_filter.availability:
        return False
    if listing_filter.published_only and not listing.is_published:
        return False
    return True


class InMemoryListingRepository(ListingRepository):
    def __init__(self) -> None:
        self._listings: dict[str, Listing] = {}
        self._lock = asyncio.Lock()

    async def add(self, listing: Listing) -> None:
        async with self._lock:
            if listing.id in self._listings:
                raise InvalidStateError(f"Listing {listing.id} already exists.")
            self._listings[listing.id] = copy.deepcopy(listing)

    async def get_by_id(self, listing_id: str) -> Listing | None:
        listing = self._listings.get(listing_id)
        return copy.deepcopy(listing) if listing is not None else None

    async def scan(
        self,
        listing_filter: ListingFilter,
        *,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[Listing]:
        ordered = sorted(self._listings.values(), key=lambda listing: listing.id)
        selected = [
            copy.deepcopy(listing)
            for listing in ordered
            if (after_id is None or listing.id > after_id) and _matches(listing, listing_filter)
        ]
        return selected[:limit]

    async def update_fields(
        self,
        listing_id: str,
        values: dict[str, object],
        *,
        expected: dict[str, object] | None = None,
    ) -> Listing | None:
        async with self._lock:
            current = self._listings.get(listing_id)
            if current is None:
                return None
            for name, value in (expected or {}).items():
                if getattr(current, name) != value:
                    return None
            updated = current.with_changes(**copy.deepcopy(values))
            self._listings[listing_id] = updated
            return copy.deepcopy(updated)

    async def delete(self, listing_id: str) -> bool:
        async with self._lock:
            return self._listings.pop(listing_id, None) is not None


class InMemoryOwnerCountersRepository(OwnerCountersRepository):
    def __init__(self) -> None:
        self._rows: dict[str, OwnerCounters] = {}
        self._lock = asyncio.Lock()

    async def increment(self, owner_id: str, delta: CounterDelta) -> None:
        async with self._lock:
            current = self._rows.get(owner_id, OwnerCounters(owner_id=owner_id))
            self._rows[owner_id] = current.applied(delta)

    async def get(self, owner_id: str) -> OwnerCounters | None:
        row = self._rows.get(owner_id)
        return replace(row) if row is not None else None

    async def replace(self, counters: OwnerCounters) -> None:
        async with self._lock:
            self._rows[counters.owner_id] = replace(counters)

    async def list_owner_ids(self) -> list[str]:
        return sorted(self._rows)


class InMemoryUpdateRequestRepository(UpdateRequestRepository):
    def __init__(self) -> None:
        self._requests: dict[str, UpdateRequest] = {}
        self._lock = asyncio.Lock()

    async def add(self, request: UpdateRequest) -> None:
        async with self._lock:
            if request.status is UpdateRequestStatus.IN_REVIEW and any(
                r.listing_id == request.listing_id and r.status is UpdateRequestStatus.IN_REVIEW
                for r in self._requests.values()
            ):
                raise InvalidStateError(
                    f"Listing {request.listing_id} already has an update request in review."
                )
            self._requests[request.id] = copy.deepcopy(request)

    async def get_by_id(self, request_id: str) -> UpdateRequest | None:
        request = self._requests.get(request_id)
        return copy.deepcopy(request) if request is not None else None

    async def find_in_review(self, listing_id: str) -> UpdateRequest | None:
        for request in self._requests.values():
            if request.listing_id == listing_id and request.status is UpdateRequestStatus.IN_REVIEW:
                return copy.deepcopy(request)
        return None

    async def resolve(
        self,
        request_id: str,
        *,
        status: UpdateRequestStatus,
        resolved_by: str,
        note: str | None,
        resolved_at: datetime,
    ) -> UpdateRequest | None:
        async with self._lock:
            current = self._requests.get(request_id)
            if current is None or current.status is not UpdateRequestStatus.IN_REVIEW:
                return None
            resolved = replace(
                current, status=status, resolved_by=resolved_by, note=note, updated_at=resolved_at
            )
            self._requests[request_id] = resolved
            return copy.deepcopy(resolved)

    async def scan(
        self,
        *,
        status: UpdateRequestStatus | None = None,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[UpdateRequest]:
        ordered = sorted(self._requests.values(), key=lambda r: r.id)
        selected = [
            copy.deepcopy(r)
            for r in ordered
            if (status is None or r.status is status) and (after_id is None or r.id > after_id)
        ]
        return selected[:limit]

    async def delete_for_listing(self, listing_id: str) -> int:
        async with self._lock:
            doomed = [rid for rid, r in self._requests.items() if r.listing_id == listing_id]
            for rid in doomed:
                del self._requests[rid]
            return len(doomed)


class InMemoryPaymentTransactionRepository(PaymentTransactionRepository):
    def __init__(self) -> None:
        self._by_token: dict[str, PaymentTransaction] = {}
        self._lock = asyncio.Lock()

    async def add(self, transaction: PaymentTransaction) -> None:
        async with self._lock:
            if transaction.token in self._by_token:
                raise InvalidStateError(f"Transaction token {transaction.token} already exists.")
            self._by_token[transaction.token] = copy.deepcopy(transaction)

    async def get_by_token(self, token: str) -> PaymentTransaction | None:
        transaction = self._by_token.get(token)
        return copy.deepcopy(transaction) if transaction is not None else None

    async def record_gateway_session(
        self,
        token: str,
        *,
        gateway_page_url: str | None,
        session_key: str | None,
        gateway_response: dict,  # type: ignore[type-arg]
    ) -> None:
        async with self._lock:
            current = self._by_token.get(token)
            if current is None:
                return
            self._by_token[token] = replace(
                current,
                gateway_page_url=gateway_page_url,
                session_key=session_key,
                gateway_response=copy.deepcopy(gateway_response),
            )

    async def complete(
        self,
        token: str,
        *,
        status: TransactionStatus,
        completed_at: datetime,
        gateway_response: dict | None = None,  # type: ignore[type-arg]
        validation_id: str | None = None,
    ) -> PaymentTransaction | None:
        async with self._lock:
            current = self._by_token.get(token)
            if current is None or current.status is not TransactionStatus.INITIATED:
                return None
            completed = replace(
                current,
                status=status,
                completed_at=completed_at,
                updated_at=completed_at,
                gateway_response=copy.deepcopy(gateway_response)
                if gateway_response is not None
                else current.gateway_response,
                validation_id=validation_id or current.validation_id,
            )
            self._by_token[token] = completed
            return copy.deepcopy(completed)

    async def scan(
        self,
        *,
        status: TransactionStatus | None = None,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[PaymentTransaction]:
        ordered = sorted(self._by_token.values(), key=lambda t: t.id)
        selected = [
            copy.deepcopy(t)
            for t in ordered
            if (status is None or t.status is status) and (after_id is None or t.id > after_id)
        ]
        return selected[:limit]


# -----------------------------------------------------------------------------
# Collaborators
# -----------------------------------------------------------------------------


class InMemorySettingsStore(SettingsStore):
    def __init__(self, commission_rate: Decimal | str = "0.05") -> None:
        self.settings = SystemSettings(commission_rate=Decimal(commission_rate))

    async def commission_rate(self) -> Decimal:
        return self.settings.commission_rate

    async def load(self) -> SystemSettings:
        return self.settings

    async def save(self, values: SystemSettings) -> None:
        self.settings = values


class InMemoryFileStore(FileStore):
    """Keeps uploaded bytes in a dict keyed by the generated path."""

    def __init__(self) -> None:
        self.files: dict[str, bytes] = {}

    async def save(self, files: list[MediaUpload], folder: str) -> list[str]:
        paths = []
        for upload in files:
            path = f"{folder}/{new_record_id()}-{upload.filename}"
            self.files[path] = upload.content
            paths.append(path)
        return paths

    async def delete(self, paths: list[str]) -> None:
        for path in paths:
            self.files.pop(path, None)


class RecordingNotifier(Notifier):
    """Collects notifications instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def send(self, owner_id: str, template_id: str, data: dict[str, Any]) -> None:
        self.sent.append((owner_id, template_id, dict(data)))
        logger.debug("notification_recorded", owner_id=owner_id, template_id=template_id)

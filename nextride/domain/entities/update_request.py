from dataclasses import dataclass, field
from datetime import datetime, timezone

from nextride.domain.enums.listing_enums import UpdateRequestAction, UpdateRequestStatus
from nextride.domain.identifiers import new_record_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class UpdateRequest:
    """
    A pending edit to a published sale listing.

    The edit itself has already been written to the listing; previous_values
    keeps what it overwrote so an admin can correct a rejected edit by hand.
    """

    id: str = field(default_factory=new_record_id)
    listing_id: str = ""
    requester_id: str = ""
    status: UpdateRequestStatus = UpdateRequestStatus.IN_REVIEW
    resolved_by: str | None = None
    note: str | None = None
    previous_values: dict[str, object] = field(default_factory=dict)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def open(
        cls, *, listing_id: str, requester_id: str, previous_values: dict[str, object]
    ) -> "UpdateRequest":
        return cls(
            listing_id=listing_id,
            requester_id=requester_id,
            previous_values=dict(previous_values),
        )

    @staticmethod
    def status_for(action: UpdateRequestAction) -> UpdateRequestStatus:
        if action is UpdateRequestAction.APPROVE:
            return UpdateRequestStatus.APPROVED
        return UpdateRequestStatus.REJECTED

from abc import ABC, abstractmethod
from datetime import datetime

from nextride.domain.entities.update_request import UpdateRequest
from nextride.domain.enums.listing_enums import UpdateRequestStatus


class UpdateRequestRepository(ABC):
    """Port for persisting and querying UpdateRequest records."""

    @abstractmethod
    async def add(self, request: UpdateRequest) -> None:
        ...

    @abstractmethod
    async def get_by_id(self, request_id: str) -> UpdateRequest | None:
        ...

    @abstractmethod
    async def find_in_review(self, listing_id: str) -> UpdateRequest | None:
        ...

    @abstractmethod
    async def resolve(
        self,
        request_id: str,
        *,
        status: UpdateRequestStatus,
        resolved_by: str,
        note: str | None,
        resolved_at: datetime,
    ) -> UpdateRequest | None:
        """Move an in-review request to a terminal status. None if it was not in review."""
        ...

    @abstractmethod
    async def scan(
        self,
        *,
        status: UpdateRequestStatus | None = None,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[UpdateRequest]:
        ...

    @abstractmethod
    async def delete_for_listing(self, listing_id: str) -> int:
        """Delete every request referencing the listing, returning how many went."""
        ...

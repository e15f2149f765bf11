from datetime import datetime

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.application.interfaces.update_request_repository import UpdateRequestRepository
from nextride.domain.entities.update_request import UpdateRequest
from nextride.domain.enums.listing_enums import UpdateRequestStatus
from nextride.domain.errors import InvalidStateError
from nextride.infrastructure.database.models import UpdateRequestModel


def _to_domain(model: UpdateRequestModel) -> UpdateRequest:
    return UpdateRequest(
        id=model.id,
        listing_id=model.listing_id,
        requester_id=model.requester_id,
        status=UpdateRequestStatus(model.status),
        resolved_by=model.resolved_by,
        note=model.note,
        previous_values=dict(model.previous_values or {}),
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class SqlAlchemyUpdateRequestRepository(UpdateRequestRepository):
    """SQLAlchemy-backed implementation of UpdateRequestRepository."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, request: UpdateRequest) -> None:
        model = UpdateRequestModel(
            id=request.id,
            listing_id=request.listing_id,
            requester_id=request.requester_id,
            status=request.status.value,
            resolved_by=request.resolved_by,
            note=request.note,
            previous_values=request.previous_values,
            created_at=request.created_at,
            updated_at=request.updated_at,
        )
        try:
            async with self._session.begin_nested():
                self._session.add(model)
                await self._session.flush()
        except IntegrityError as exc:
            # Partial unique index on (listing_id) WHERE status = 'in-review'
            raise InvalidStateError(
                f"Listing {request.listing_id} already has an update request in review."
            ) from exc

    async def get_by_id(self, request_id: str) -> UpdateRequest | None:
        model = await self._session.get(UpdateRequestModel, request_id, populate_existing=True)
        return _to_domain(model) if model is not None else None

    async def find_in_review(self, listing_id: str) -> UpdateRequest | None:
        result = await self._session.execute(
            select(UpdateRequestModel)
            .where(UpdateRequestModel.listing_id == listing_id)
            .where(UpdateRequestModel.status == UpdateRequestStatus.IN_REVIEW.value)
            .limit(1)
        )
        model = result.scalars().first()
        return _to_domain(model) if model is not None else None

    async def resolve(
        self,
        request_id: str,
        *,
        status: UpdateRequestStatus,
        resolved_by: str,
        note: str | None,
        resolved_at: datetime,
    ) -> UpdateRequest | None:
        result = await self._session.execute(
            update(UpdateRequestModel)
            .where(UpdateRequestModel.id == request_id)
            .where(UpdateRequestModel.status == UpdateRequestStatus.IN_REVIEW.value)
            .values(status=status.value, resolved_by=resolved_by, note=note, updated_at=resolved_at)
            .returning(UpdateRequestModel)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        model = result.scalars().one_or_none()
        return _to_domain(model) if model is not None else None

    async def scan(
        self,
        *,
        status: UpdateRequestStatus | None = None,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[UpdateRequest]:
        query = select(UpdateRequestModel)
        if status is not None:
            query = query.where(UpdateRequestModel.status == status.value)
        if after_id is not None:
            query = query.where(UpdateRequestModel.id > after_id)
        result = await self._session.execute(
            query.order_by(UpdateRequestModel.id.asc()).limit(limit)
        )
        return [_to_domain(m) for m in result.scalars().all()]

    async def delete_for_listing(self, listing_id: str) -> int:
        result = await self._session.execute(
            delete(UpdateRequestModel)
            .where(UpdateRequestModel.listing_id == listing_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

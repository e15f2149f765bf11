from decimal import Decimal
from enum import Enum

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.application.interfaces.listing_repository import ListingFilter, ListingRepository
from nextride.domain.entities.listing import Listing
from nextride.domain.enums.listing_enums import (
    Availability,
    FuelType,
    ListingCategory,
    PaymentStatus,
    VehicleCondition,
    VehicleType,
)
from nextride.domain.state_machine.moderation_state_machine import (
    PUBLISHED_STATUS,
    parse_moderation_status,
)
from nextride.infrastructure.database.models import ListingModel


def _column_value(value: object) -> object:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, list):
        return list(value)
    return value


def _to_domain(model: ListingModel) -> Listing:
    category = ListingCategory(model.category)
    return Listing(
        id=model.id,
        owner_id=model.owner_id,
        category=category,
        vehicle_type=VehicleType(model.vehicle_type),
        make=model.make,
        model_name=model.model_name,
        year=model.year,
        price=Decimal(str(model.price)),
        mileage=model.mileage,
        fuel_type=FuelType(model.fuel_type) if model.fuel_type else None,
        condition=VehicleCondition(model.condition) if model.condition else None,
        description=model.description,
        location=model.location,
        phone=model.phone,
        email=model.email,
        images=list(model.images or []),
        video=model.video,
        moderation_status=parse_moderation_status(category, model.moderation_status),
        payment_status=PaymentStatus(model.payment_status) if model.payment_status else None,
        availability=Availability(model.availability) if model.availability else None,
        platform_fee=model.platform_fee,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


def _to_model(listing: Listing) -> ListingModel:
    return ListingModel(
        id=listing.id,
        owner_id=listing.owner_id,
        category=listing.category.value,
        vehicle_type=listing.vehicle_type.value,
        make=listing.make,
        model_name=listing.model_name,
        year=listing.year,
        price=listing.price,
        mileage=listing.mileage,
        fuel_type=_column_value(listing.fuel_type),
        condition=_column_value(listing.condition),
        description=listing.description,
        location=listing.location,
        phone=listing.phone,
        email=listing.email,
        images=list(listing.images),
        video=listing.video,
        moderation_status=listing.moderation_status.value,
        payment_status=_column_value(listing.payment_status),
        availability=_column_value(listing.availability),
        platform_fee=listing.platform_fee,
        created_at=listing.created_at,
        updated_at=listing.updated_at,
    )


class SqlAlchemyListingRepository(ListingRepository):
    """SQLAlchemy implementation for listing persistence."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, listing: Listing) -> None:
        self._session.add(_to_model(listing))
        await self._session.flush()

    async def get_by_id(self, listing_id: str) -> Listing | None:
        model = await self._session.get(ListingModel, listing_id, populate_existing=True)
        return _to_domain(model) if model is not None else None

    async def scan(
        self,
        listing_filter: ListingFilter,
        *,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[Listing]:
        query = select(ListingModel)

        if listing_filter.category is not None:
            query = query.where(ListingModel.category == listing_filter.category.value)
        if listing_filter.vehicle_type is not None:
            query = query.where(ListingModel.vehicle_type == listing_filter.vehicle_type.value)
        if listing_filter.owner_id is not None:
            query = query.where(ListingModel.owner_id == listing_filter.owner_id)
        if listing_filter.moderation_status is not None:
            query = query.where(
                ListingModel.moderation_status == str(_column_value(listing_filter.moderation_status))
            )
        if listing_filter.availability is not None:
            query = query.where(ListingModel.availability == listing_filter.availability.value)
        if listing_filter.published_only:
            query = query.where(
                or_(
                    *(
                        and_(
                            ListingModel.category == category.value,
                            ListingModel.moderation_status == status.value,
                        )
                        for category, status in PUBLISHED_STATUS.items()
                    )
                )
            )
        if after_id is not None:
            query = query.where(ListingModel.id > after_id)

        query = query.order_by(ListingModel.id.asc()).limit(limit)
        result = await self._session.execute(query)
        return [_to_domain(m) for m in result.scalars().all()]

    async def update_fields(
        self,
        listing_id: str,
        values: dict[str, object],
        *,
        expected: dict[str, object] | None = None,
    ) -> Listing | None:
        stmt = update(ListingModel).where(ListingModel.id == listing_id)
        for name, value in (expected or {}).items():
            column = getattr(ListingModel, name)
            stmt = stmt.where(column.is_(None) if value is None else column == _column_value(value))

        stmt = (
            stmt.values({name: _column_value(value) for name, value in values.items()})
            .returning(ListingModel)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        result = await self._session.execute(stmt)
        model = result.scalars().one_or_none()
        return _to_domain(model) if model is not None else None

    async def delete(self, listing_id: str) -> bool:
        result = await self._session.execute(
            delete(ListingModel)
            .where(ListingModel.id == listing_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount > 0

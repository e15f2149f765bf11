"""
Owner counter rows.

increment() is a single INSERT ... ON CONFLICT DO UPDATE adding the delta
to the stored columns, so concurrent increments for one owner never lose
updates. It runs inside a SAVEPOINT: if it fails only the counter write is
rolled back and the listing write in the same session still commits.
"""
from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.application.interfaces.owner_counters_repository import OwnerCountersRepository
from nextride.domain.entities.owner_counters import COUNTER_FIELDS, CounterDelta, OwnerCounters
from nextride.infrastructure.database.models import OwnerCountersModel


def _to_domain(model: OwnerCountersModel) -> OwnerCounters:
    return OwnerCounters(
        owner_id=model.owner_id,
        **{name: getattr(model, name) for name in COUNTER_FIELDS},
    )


class SqlAlchemyOwnerCountersRepository(OwnerCountersRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def increment(self, owner_id: str, delta: CounterDelta) -> None:
        values = delta.as_dict()
        if not values:
            return

        stmt = pg_insert(OwnerCountersModel).values(owner_id=owner_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[OwnerCountersModel.owner_id],
            set_={
                **{
                    name: getattr(OwnerCountersModel, name) + getattr(stmt.excluded, name)
                    for name in values
                },
                "updated_at": func.now(),
            },
        )
        async with self._session.begin_nested():
            await self._session.execute(stmt)

    async def get(self, owner_id: str) -> OwnerCounters | None:
        model = await self._session.get(OwnerCountersModel, owner_id, populate_existing=True)
        return _to_domain(model) if model is not None else None

    async def replace(self, counters: OwnerCounters) -> None:
        values = counters.as_dict()
        stmt = pg_insert(OwnerCountersModel).values(owner_id=counters.owner_id, **values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[OwnerCountersModel.owner_id],
            set_={**{name: getattr(stmt.excluded, name) for name in values}, "updated_at": func.now()},
        )
        await self._session.execute(stmt)

    async def list_owner_ids(self) -> list[str]:
        result = await self._session.execute(
            select(OwnerCountersModel.owner_id).order_by(OwnerCountersModel.owner_id.asc())
        )
        return list(result.scalars().all())

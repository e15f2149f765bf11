from dataclasses import dataclass

from nextride.application.interfaces.collaborators import Actor
from nextride.application.services.counter_ledger import CounterDrift, CounterLedger
from nextride.domain.entities.owner_counters import OwnerCounters
from nextride.domain.errors import ForbiddenError


@dataclass
class GetOwnerCountersInput:
    actor: Actor
    owner_id: str | None = None


class GetOwnerCounters:
    """Use case: read an owner's stored aggregate counters (zeros before the first listing)."""

    def __init__(self, ledger: CounterLedger) -> None:
        self._ledger = ledger

    async def execute(self, input_data: GetOwnerCountersInput) -> OwnerCounters:
        owner_id = input_data.owner_id or input_data.actor.id
        if owner_id != input_data.actor.id and not input_data.actor.is_admin:
            raise ForbiddenError("You can only read your own counters.")
        return await self._ledger.get(owner_id)


class InspectCounterDrift:
    """Use case: compare an owner's stored counters with a fresh recompute."""

    def __init__(self, ledger: CounterLedger) -> None:
        self._ledger = ledger

    async def execute(self, actor: Actor, owner_id: str) -> CounterDrift:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can inspect counter drift.")
        return await self._ledger.drift(owner_id)


class RecomputeOwnerCounters:
    """Use case: rebuild one owner's stored counters from their listings."""

    def __init__(self, ledger: CounterLedger) -> None:
        self._ledger = ledger

    async def execute(self, actor: Actor, owner_id: str) -> CounterDrift:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can repair counters.")
        before = await self._ledger.get(owner_id)
        recomputed = await self._ledger.recompute(owner_id, persist=True)
        return CounterDrift(owner_id=owner_id, stored=before, recomputed=recomputed)

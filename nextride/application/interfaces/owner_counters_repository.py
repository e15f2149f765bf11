from abc import ABC, abstractmethod

from nextride.domain.entities.owner_counters import CounterDelta, OwnerCounters


class OwnerCountersRepository(ABC):
    """Port for the per-owner counter rows. Increments must be atomic per owner."""

    @abstractmethod
    async def increment(self, owner_id: str, delta: CounterDelta) -> None:
        """Apply delta, creating the row on first use."""
        ...

    @abstractmethod
    async def get(self, owner_id: str) -> OwnerCounters | None:
        ...

    @abstractmethod
    async def replace(self, counters: OwnerCounters) -> None:
        ...

    @abstractmethod
    async def list_owner_ids(self) -> list[str]:
        ...

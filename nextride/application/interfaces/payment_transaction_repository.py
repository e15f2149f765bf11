from abc import ABC, abstractmethod
from datetime import datetime

from nextride.domain.entities.payment_transaction import PaymentTransaction
from nextride.domain.enums.listing_enums import TransactionStatus


class PaymentTransactionRepository(ABC):
    """Port for persisting PaymentTransaction records."""

    @abstractmethod
    async def add(self, transaction: PaymentTransaction) -> None:
        ...

    @abstractmethod
    async def get_by_token(self, token: str) -> PaymentTransaction | None:
        ...

    @abstractmethod
    async def record_gateway_session(
        self,
        token: str,
        *,
        gateway_page_url: str | None,
        session_key: str | None,
        gateway_response: dict,  # type: ignore[type-arg]
    ) -> None:
        ...

    @abstractmethod
    async def complete(
        self,
        token: str,
        *,
        status: TransactionStatus,
        completed_at: datetime,
        gateway_response: dict | None = None,  # type: ignore[type-arg]
        validation_id: str | None = None,
    ) -> PaymentTransaction | None:
        """Move an INITIATED transaction to a terminal status. None if it was already terminal."""
        ...

    @abstractmethod
    async def scan(
        self,
        *,
        status: TransactionStatus | None = None,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[PaymentTransaction]:
        ...

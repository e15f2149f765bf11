from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.application.interfaces.payment_transaction_repository import (
    PaymentTransactionRepository,
)
from nextride.domain.entities.payment_transaction import PaymentTransaction
from nextride.domain.enums.listing_enums import TransactionStatus
from nextride.infrastructure.database.models import PaymentTransactionModel


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _to_domain(model: PaymentTransactionModel) -> PaymentTransaction:
    return PaymentTransaction(
        id=model.id,
        token=model.token,
        listing_id=model.listing_id,
        owner_id=model.owner_id,
        amount=Decimal(str(model.amount)),
        currency=model.currency,
        status=TransactionStatus(model.status),
        product_name=model.product_name,
        product_category=model.product_category,
        customer_name=model.customer_name,
        customer_email=model.customer_email,
        customer_phone=model.customer_phone,
        gateway_page_url=model.gateway_page_url,
        session_key=model.session_key,
        validation_id=model.validation_id,
        gateway_response=model.gateway_response,
        initiated_at=model.initiated_at,
        completed_at=model.completed_at,
        created_at=model.created_at,
        updated_at=model.updated_at,
    )


class SqlAlchemyPaymentTransactionRepository(PaymentTransactionRepository):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, transaction: PaymentTransaction) -> None:
        self._session.add(
            PaymentTransactionModel(
                id=transaction.id,
                token=transaction.token,
                listing_id=transaction.listing_id,
                owner_id=transaction.owner_id,
                amount=transaction.amount,
                currency=transaction.currency,
                status=transaction.status.value,
                product_name=transaction.product_name,
                product_category=transaction.product_category,
                customer_name=transaction.customer_name,
                customer_email=transaction.customer_email,
                customer_phone=transaction.customer_phone,
                gateway_page_url=transaction.gateway_page_url,
                session_key=transaction.session_key,
                validation_id=transaction.validation_id,
                gateway_response=transaction.gateway_response,
                initiated_at=transaction.initiated_at,
                completed_at=transaction.completed_at,
                created_at=transaction.created_at,
                updated_at=transaction.updated_at,
            )
        )
        await self._session.flush()

    async def get_by_token(self, token: str) -> PaymentTransaction | None:
        result = await self._session.execute(
            select(PaymentTransactionModel)
            .where(PaymentTransactionModel.token == token)
            .execution_options(populate_existing=True)
        )
        model = result.scalars().first()
        return _to_domain(model) if model is not None else None

    async def record_gateway_session(
        self,
        token: str,
        *,
        gateway_page_url: str | None,
        session_key: str | None,
        gateway_response: dict,  # type: ignore[type-arg]
    ) -> None:
        await self._session.execute(
            update(PaymentTransactionModel)
            .where(PaymentTransactionModel.token == token)
            .values(
                gateway_page_url=gateway_page_url,
                session_key=session_key,
                gateway_response=gateway_response,
                updated_at=_utcnow(),
            )
            .execution_options(synchronize_session=False)
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
        values: dict[str, object] = {
            "status": status.value,
            "completed_at": completed_at,
            "updated_at": completed_at,
        }
        if gateway_response is not None:
            values["gateway_response"] = gateway_response
        if validation_id is not None:
            values["validation_id"] = validation_id

        result = await self._session.execute(
            update(PaymentTransactionModel)
            .where(PaymentTransactionModel.token == token)
            .where(PaymentTransactionModel.status == TransactionStatus.INITIATED.value)
            .values(values)
            .returning(PaymentTransactionModel)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        model = result.scalars().one_or_none()
        return _to_domain(model) if model is not None else None

    async def scan(
        self,
        *,
        status: TransactionStatus | None = None,
        after_id: str | None = None,
        limit: int = 21,
    ) -> list[PaymentTransaction]:
        query = select(PaymentTransactionModel)
        if status is not None:
            query = query.where(PaymentTransactionModel.status == status.value)
        if after_id is not None:
            query = query.where(PaymentTransactionModel.id > after_id)
        result = await self._session.execute(
            query.order_by(PaymentTransactionModel.id.asc()).limit(limit)
        )
        return [_to_domain(m) for m in result.scalars().all()]

"""
Payment correlation resolver.

Maps gateway callbacks, which only carry the opaque transaction token,
back to the listing that started the payment, and drives the one-shot
PaymentTransaction state machine (initiated -> success | failed |
cancelled). Transactions store their listing id explicitly; parsing the
id out of the token is the fallback for tokens minted before that.

Gateways retry callbacks, so a callback for a transaction that already
reached a terminal state is a no-op.
"""
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

import structlog

from nextride.application.interfaces.collaborators import Actor, Notifier, PaymentGateway
from nextride.application.interfaces.listing_repository import ListingRepository
from nextride.application.interfaces.payment_transaction_repository import (
    PaymentTransactionRepository,
)
from nextride.application.pagination import Page, PageRequest, build_page
from nextride.application.services.lifecycle_controller import ListingLifecycleController
from nextride.domain.entities.payment_transaction import (
    PaymentTransaction,
    listing_id_from_token,
    mint_transaction_token,
)
from nextride.domain.enums.listing_enums import PaymentStatus, TransactionStatus
from nextride.domain.errors import (
    ForbiddenError,
    GatewayError,
    InvalidStateError,
    NotFoundError,
)

logger = structlog.get_logger(__name__)

_LISTING_PAYMENT_AFTER: dict[TransactionStatus, PaymentStatus] = {
    TransactionStatus.SUCCESS: PaymentStatus.PAID,
    TransactionStatus.FAILED: PaymentStatus.PENDING,
    TransactionStatus.CANCELLED: PaymentStatus.PENDING,
}

_NOTIFICATION_TEMPLATES: dict[TransactionStatus, str] = {
    TransactionStatus.SUCCESS: "payment_succeeded",
    TransactionStatus.FAILED: "payment_failed",
    TransactionStatus.CANCELLED: "payment_cancelled",
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _unix_millis() -> int:
    return int(time.time() * 1000)


@dataclass
class PaymentInitiation:
    reference_id: str
    customer_name: str
    customer_email: str
    customer_phone: str
    amount: Decimal | None = None
    currency: str | None = None
    product_name: str | None = None
    product_category: str | None = None
    customer_address: str | None = None
    customer_city: str | None = None
    customer_country: str | None = None


@dataclass(frozen=True)
class InitiationResult:
    token: str
    redirect_url: str | None
    gateway_response: dict[str, Any]
    transaction: PaymentTransaction | None


@dataclass(frozen=True)
class CallbackOutcome:
    token: str
    listing_id: str
    transaction_status: TransactionStatus | None
    payment_status: PaymentStatus | None
    applied: bool


class PaymentCorrelationResolver:
    def __init__(
        self,
        listing_repo: ListingRepository,
        transaction_repo: PaymentTransactionRepository,
        lifecycle: ListingLifecycleController,
        gateway: PaymentGateway,
        notifier: Notifier,
        *,
        backend_base_url: str,
        default_currency: str = "BDT",
        clock: Callable[[], int] = _unix_millis,
    ) -> None:
        self._listing_repo = listing_repo
        self._transaction_repo = transaction_repo
        self._lifecycle = lifecycle
        self._gateway = gateway
        self._notifier = notifier
        self._backend_base_url = backend_base_url.rstrip("/")
        self._default_currency = default_currency
        self._clock = clock

    # -------------------------------------------------------------------------
    # Initiation
    # -------------------------------------------------------------------------

    async def initiate(self, actor: Actor, request: PaymentInitiation) -> InitiationResult:
        listing = await self._listing_repo.get_by_id(request.reference_id)
        if listing is not None:
            if not (actor.is_admin or listing.is_owned_by(actor.id)):
                raise ForbiddenError("You can only pay for your own listings.")
            if not listing.is_sale:
                raise InvalidStateError("Rent listings carry no platform fee.")

        amount = request.amount
        if amount is None and listing is not None and listing.platform_fee is not None:
            amount = Decimal(listing.platform_fee)
        if amount is None or amount <= 0:
            raise InvalidStateError("A positive payment amount is required.")

        try:
            token = mint_transaction_token(request.reference_id, self._clock())
        except ValueError as exc:
            raise InvalidStateError(str(exc)) from exc

        currency = request.currency or self._default_currency
        payload = self._gateway_payload(token, amount, currency, request)

        transaction: PaymentTransaction | None = None
        if listing is not None:
            transaction = PaymentTransaction(
                token=token,
                listing_id=listing.id,
                owner_id=listing.owner_id,
                amount=amount,
                currency=currency,
                product_name=request.product_name,
                product_category=request.product_category,
                customer_name=request.customer_name,
                customer_email=request.customer_email,
                customer_phone=request.customer_phone,
            )
            await self._transaction_repo.add(transaction)
        else:
            logger.warning("payment_initiated_without_listing", reference_id=request.reference_id)

        try:
            session = await self._gateway.initiate(payload)
        except GatewayError:
            logger.error("payment_gateway_failed", token=token, listing_id=request.reference_id)
            raise

        if transaction is not None:
            await self._transaction_repo.record_gateway_session(
                token,
                gateway_page_url=session.redirect_url,
                session_key=session.raw_response.get("sessionkey"),
                gateway_response=session.raw_response,
            )
            transaction.gateway_page_url = session.redirect_url
            transaction.gateway_response = session.raw_response

        logger.info(
            "payment_initiated",
            token=token,
            listing_id=request.reference_id,
            amount=str(amount),
            currency=currency,
        )
        return InitiationResult(
            token=token,
            redirect_url=session.redirect_url,
            gateway_response=session.raw_response,
            transaction=transaction,
        )

    def _gateway_payload(
        self, token: str, amount: Decimal, currency: str, request: PaymentInitiation
    ) -> dict[str, Any]:
        base = self._backend_base_url
        payload: dict[str, Any] = {
            "total_amount": str(amount),
            "currency": currency,
            "tran_id": token,
            "success_url": f"{base}/payment/success",
            "fail_url": f"{base}/payment/fail",
            "cancel_url": f"{base}/payment/cancel",
            "shipping_method": "NO",
            "product_name": request.product_name,
            "product_category": request.product_category,
            "product_profile": "general",
            "cus_name": request.customer_name,
            "cus_email": request.customer_email,
            "cus_phone": request.customer_phone,
            "cus_add1": request.customer_address,
            "cus_city": request.customer_city,
            "cus_country": request.customer_country,
        }
        return {key: value for key, value in payload.items() if value is not None}

    # -------------------------------------------------------------------------
    # Callbacks
    # -------------------------------------------------------------------------

    async def handle_success(self, token: str, payload: dict[str, Any]) -> CallbackOutcome:
        return await self._settle(token, TransactionStatus.SUCCESS, payload)

    async def handle_failure(self, token: str, payload: dict[str, Any]) -> CallbackOutcome:
        return await self._settle(token, TransactionStatus.FAILED, payload)

    async def handle_cancel(self, token: str, payload: dict[str, Any]) -> CallbackOutcome:
        return await self._settle(token, TransactionStatus.CANCELLED, payload)

    async def _settle(
        self, token: str, outcome: TransactionStatus, payload: dict[str, Any]
    ) -> CallbackOutcome:
        transaction = await self._transaction_repo.get_by_token(token)
        listing_id = transaction.listing_id if transaction else listing_id_from_token(token)

        if transaction is not None and transaction.status.is_terminal:
            logger.info(
                "payment_callback_replayed",
                token=token,
                status=transaction.status.value,
                callback=outcome.value,
            )
            return CallbackOutcome(
                token=token,
                listing_id=listing_id,
                transaction_status=transaction.status,
                payment_status=None,
                applied=False,
            )

        if transaction is not None:
            self._check_amount(transaction, payload)

        listing_changed = False
        payment_status: PaymentStatus | None = None
        owner_id = transaction.owner_id if transaction else None
        try:
            result = await self._lifecycle.set_payment_status(listing_id, _LISTING_PAYMENT_AFTER[outcome])
        except NotFoundError:
            if transaction is None and outcome is not TransactionStatus.CANCELLED:
                raise
            logger.warning("payment_listing_missing", token=token, listing_id=listing_id)
        else:
            listing_changed = result.changed
            payment_status = result.listing.payment_status
            owner_id = result.listing.owner_id

        if transaction is None:
            logger.warning("payment_transaction_missing", token=token, listing_id=listing_id)
            return CallbackOutcome(
                token=token,
                listing_id=listing_id,
                transaction_status=None,
                payment_status=payment_status,
                applied=listing_changed,
            )

        completed = await self._transaction_repo.complete(
            token,
            status=outcome,
            completed_at=_utcnow(),
            gateway_response=dict(payload),
            validation_id=payload.get("val_id"),
        )
        if completed is None:
            logger.info("payment_callback_raced", token=token, callback=outcome.value)
            return CallbackOutcome(
                token=token,
                listing_id=listing_id,
                transaction_status=None,
                payment_status=payment_status,
                applied=listing_changed,
            )

        logger.info(
            "payment_settled",
            token=token,
            listing_id=listing_id,
            status=outcome.value,
            listing_changed=listing_changed,
        )
        if owner_id:
            try:
                await self._notifier.send(
                    owner_id,
                    _NOTIFICATION_TEMPLATES[outcome],
                    {"listing_id": listing_id, "token": token, "amount": str(completed.amount)},
                )
            except Exception as exc:
                logger.error("notification_failed", owner_id=owner_id, error=str(exc))

        return CallbackOutcome(
            token=token,
            listing_id=listing_id,
            transaction_status=completed.status,
            payment_status=payment_status,
            applied=True,
        )

    def _check_amount(self, transaction: PaymentTransaction, payload: dict[str, Any]) -> None:
        raw = payload.get("amount")
        if raw in (None, ""):
            return
        try:
            paid = Decimal(str(raw))
        except InvalidOperation:
            logger.warning("payment_amount_unparseable", token=transaction.token, amount=raw)
            return
        if paid != transaction.amount:
            logger.warning(
                "payment_amount_mismatch",
                token=transaction.token,
                expected=str(transaction.amount),
                received=str(paid),
            )

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    async def payment_history(
        self, actor: Actor, page: PageRequest, status: TransactionStatus | None = None
    ) -> Page[PaymentTransaction]:
        if not actor.is_admin:
            raise ForbiddenError("Only admins can browse payment history.")
        records = await self._transaction_repo.scan(
            status=status, after_id=page.after_id, limit=page.fetch_size
        )
        return build_page(records, page.limit)

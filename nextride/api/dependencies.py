"""
FastAPI dependency injection wiring.

Each dependency function returns a fully-constructed object with its
collaborators injected, keeping the route handlers thin. FastAPI caches a
dependency per request, so the controller, gate, ledger and resolver of
one request share a single session and repository set.

Caller identity is read from the X-User-Id and X-User-Role headers as
set by the upstream auth gateway, which must strip any client-supplied
copies of them. This service does not verify the role itself.
"""
from collections.abc import AsyncGenerator
from decimal import Decimal

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from nextride.application.interfaces.collaborators import (
    Actor,
    ConfigProvider,
    FileStore,
    Notifier,
    PaymentGateway,
    SettingsStore,
)
from nextride.application.interfaces.listing_repository import ListingRepository
from nextride.application.interfaces.owner_counters_repository import OwnerCountersRepository
from nextride.application.interfaces.payment_transaction_repository import (
    PaymentTransactionRepository,
)
from nextride.application.interfaces.update_request_repository import UpdateRequestRepository
from nextride.application.services.counter_ledger import CounterLedger
from nextride.application.services.lifecycle_controller import ListingLifecycleController
from nextride.application.services.payment_resolver import PaymentCorrelationResolver
from nextride.application.services.update_request_gate import UpdateRequestGate
from nextride.application.use_cases.get_owner_counters import (
    GetOwnerCounters,
    InspectCounterDrift,
    RecomputeOwnerCounters,
)
from nextride.application.use_cases.list_listings import ListListings
from nextride.application.use_cases.manage_settings import GetSystemSettings, UpdateSystemSettings
from nextride.config import settings
from nextride.domain.enums.listing_enums import Role
from nextride.infrastructure.database.connection import get_db_session
from nextride.infrastructure.database.repositories.listing_repository import (
    SqlAlchemyListingRepository,
)
from nextride.infrastructure.database.repositories.owner_counters_repository import (
    SqlAlchemyOwnerCountersRepository,
)
from nextride.infrastructure.database.repositories.payment_transaction_repository import (
    SqlAlchemyPaymentTransactionRepository,
)
from nextride.infrastructure.database.repositories.settings_provider import SystemSettingsProvider
from nextride.infrastructure.database.repositories.update_request_repository import (
    SqlAlchemyUpdateRequestRepository,
)
from nextride.infrastructure.external_services.sslcommerz_client import SslCommerzClient
from nextride.infrastructure.messaging.noop_notifier import NoOpNotifier
from nextride.infrastructure.messaging.post_commit_notifier import PostCommitNotifier
from nextride.infrastructure.messaging.rabbitmq_notifier import RabbitMQNotifier
from nextride.infrastructure.storage.local_file_store import LocalFileStore


# ---- Caller identity -------------------------------------------------------

def _actor_from_headers(user_id: str | None, role: str | None) -> Actor | None:
    # Trusted as-is; the gateway in front owns authentication
    if not user_id or not user_id.strip():
        return None
    try:
        parsed_role = Role((role or Role.USER.value).strip().lower())
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail=f"Unknown role '{role}'."
        ) from None
    return Actor(id=user_id.strip(), role=parsed_role)


def get_optional_actor(
    x_user_id: str | None = Header(default=None),
    x_user_role: str | None = Header(default=None),
) -> Actor | None:
    return _actor_from_headers(x_user_id, x_user_role)


def get_current_actor(actor: Actor | None = Depends(get_optional_actor)) -> Actor:
    if actor is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required.")
    return actor


# ---- Low-level dependencies ------------------------------------------------

async def get_session() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_db_session():
        yield session


def get_listing_repo(session: AsyncSession = Depends(get_session)) -> ListingRepository:
    return SqlAlchemyListingRepository(session)


def get_counters_repo(session: AsyncSession = Depends(get_session)) -> OwnerCountersRepository:
    return SqlAlchemyOwnerCountersRepository(session)


def get_update_request_repo(session: AsyncSession = Depends(get_session)) -> UpdateRequestRepository:
    return SqlAlchemyUpdateRequestRepository(session)


def get_transaction_repo(
    session: AsyncSession = Depends(get_session),
) -> PaymentTransactionRepository:
    return SqlAlchemyPaymentTransactionRepository(session)


def get_config_provider(session: AsyncSession = Depends(get_session)) -> SettingsStore:
    return SystemSettingsProvider(session, Decimal(str(settings.default_commission_rate)))


def get_file_store() -> FileStore:
    return LocalFileStore()


def get_notification_transport() -> Notifier:
    if settings.notifications_enabled:
        return RabbitMQNotifier()
    return NoOpNotifier()


async def get_notifier(
    session: AsyncSession = Depends(get_session),
    transport: Notifier = Depends(get_notification_transport),
) -> AsyncGenerator[Notifier, None]:
    """Notifications raised by the route go out only once its writes are committed."""
    notifier = PostCommitNotifier(transport)
    try:
        yield notifier
    except Exception:
        notifier.discard()
        raise
    await session.commit()
    await notifier.flush()


def get_payment_gateway() -> PaymentGateway:
    return SslCommerzClient()


# ---- Service dependencies --------------------------------------------------

def get_ledger(
    counters_repo: OwnerCountersRepository = Depends(get_counters_repo),
    listing_repo: ListingRepository = Depends(get_listing_repo),
) -> CounterLedger:
    return CounterLedger(counters_repo, listing_repo)


def get_lifecycle_controller(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    update_request_repo: UpdateRequestRepository = Depends(get_update_request_repo),
    ledger: CounterLedger = Depends(get_ledger),
    file_store: FileStore = Depends(get_file_store),
    config: ConfigProvider = Depends(get_config_provider),
    notifier: Notifier = Depends(get_notifier),
) -> ListingLifecycleController:
    return ListingLifecycleController(
        listing_repo, update_request_repo, ledger, file_store, config, notifier
    )


def get_update_request_gate(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    update_request_repo: UpdateRequestRepository = Depends(get_update_request_repo),
    ledger: CounterLedger = Depends(get_ledger),
    file_store: FileStore = Depends(get_file_store),
    config: ConfigProvider = Depends(get_config_provider),
    notifier: Notifier = Depends(get_notifier),
) -> UpdateRequestGate:
    return UpdateRequestGate(
        listing_repo, update_request_repo, ledger, file_store, config, notifier
    )


def get_payment_resolver(
    listing_repo: ListingRepository = Depends(get_listing_repo),
    transaction_repo: PaymentTransactionRepository = Depends(get_transaction_repo),
    lifecycle: ListingLifecycleController = Depends(get_lifecycle_controller),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    notifier: Notifier = Depends(get_notifier),
) -> PaymentCorrelationResolver:
    return PaymentCorrelationResolver(
        listing_repo,
        transaction_repo,
        lifecycle,
        gateway,
        notifier,
        backend_base_url=settings.backend_base_url,
        default_currency=settings.payment_currency,
    )


# ---- Use-case dependencies -------------------------------------------------

def get_list_listings_use_case(
    listing_repo: ListingRepository = Depends(get_listing_repo),
) -> ListListings:
    return ListListings(listing_repo)


def get_owner_counters_use_case(ledger: CounterLedger = Depends(get_ledger)) -> GetOwnerCounters:
    return GetOwnerCounters(ledger)


def get_counter_drift_use_case(ledger: CounterLedger = Depends(get_ledger)) -> InspectCounterDrift:
    return InspectCounterDrift(ledger)


def get_recompute_counters_use_case(
    ledger: CounterLedger = Depends(get_ledger),
) -> RecomputeOwnerCounters:
    return RecomputeOwnerCounters(ledger)


def get_settings_use_case(store: SettingsStore = Depends(get_config_provider)) -> GetSystemSettings:
    return GetSystemSettings(store)


def get_update_settings_use_case(
    store: SettingsStore = Depends(get_config_provider),
) -> UpdateSystemSettings:
    return UpdateSystemSettings(store)

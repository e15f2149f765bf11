from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal

from nextride.domain.enums.listing_enums import TransactionStatus
from nextride.domain.identifiers import new_record_id

TOKEN_MARKER = "TXN_"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def mint_transaction_token(listing_id: str, unix_millis: int) -> str:
    """Build `<listingId>TXN_<unixMillis>`."""
    if not listing_id or TOKEN_MARKER in listing_id:
        raise ValueError(f"Listing id {listing_id!r} cannot be embedded in a transaction token.")
    return f"{listing_id}{TOKEN_MARKER}{unix_millis}"


def listing_id_from_token(token: str) -> str:
    """
    Recover the listing id embedded in a transaction token.

    Tokens minted without the marker carried the bare listing id, so they
    are returned unchanged.
    """
    idx = token.find(TOKEN_MARKER)
    if idx > 0:
        return token[:idx]
    return token


@dataclass
class PaymentTransaction:
    """One payment attempt against one listing."""

    id: str = field(default_factory=new_record_id)
    token: str = ""
    listing_id: str = ""
    owner_id: str = ""
    amount: Decimal = Decimal("0")
    currency: str = "BDT"
    status: TransactionStatus = TransactionStatus.INITIATED

    product_name: str | None = None
    product_category: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    customer_phone: str | None = None

    # Gateway snapshot
    gateway_page_url: str | None = None
    session_key: str | None = None
    validation_id: str | None = None
    gateway_response: dict | None = None  # type: ignore[type-arg]

    initiated_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

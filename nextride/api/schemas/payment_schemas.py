from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from nextride.api.schemas.listing_responses import PageInfo
from nextride.domain.entities.payment_transaction import PaymentTransaction
from nextride.domain.enums.listing_enums import TransactionStatus


class InitiatePaymentRequest(BaseModel):
    """Field names follow the SSLCommerz form the frontend already posts."""

    reference_id: str = Field(min_length=1)
    amount: Decimal | None = Field(default=None, gt=0)
    currency: str | None = None
    product_name: str | None = None
    product_category: str | None = None
    cus_name: str
    cus_email: str
    cus_phone: str
    cus_add1: str | None = None
    cus_city: str | None = None
    cus_country: str | None = None


class InitiatePaymentResponse(BaseModel):
    token: str
    gateway_url: str | None = None
    status: TransactionStatus | None = None


class PaymentTransactionResponse(BaseModel):
    id: str
    token: str
    listing_id: str
    owner_id: str
    amount: Decimal
    currency: str
    status: TransactionStatus
    product_name: str | None = None
    customer_name: str | None = None
    customer_email: str | None = None
    gateway_page_url: str | None = None
    validation_id: str | None = None
    initiated_at: datetime
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_domain(cls, transaction: PaymentTransaction) -> "PaymentTransactionResponse":
        return cls.model_validate(transaction)


class PaymentPageResponse(BaseModel):
    data: list[PaymentTransactionResponse]
    page_info: PageInfo

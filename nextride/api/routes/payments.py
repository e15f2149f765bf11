"""
Payment initiation and the SSLCommerz browser callbacks.

The gateway posts the callbacks form-encoded from the customer's browser,
so each one settles the transaction and then redirects to the frontend.
"""
from urllib.parse import urlencode

import structlog
from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse, RedirectResponse

from nextride.api.dependencies import get_current_actor, get_payment_resolver
from nextride.api.schemas.payment_schemas import InitiatePaymentRequest, InitiatePaymentResponse
from nextride.application.interfaces.collaborators import Actor
from nextride.application.services.payment_resolver import (
    CallbackOutcome,
    PaymentCorrelationResolver,
    PaymentInitiation,
)
from nextride.config import settings
from nextride.domain.errors import GatewayError, InvalidStateError

logger = structlog.get_logger(__name__)
router = APIRouter(prefix="/payment", tags=["payment"])


async def _callback_fields(request: Request) -> tuple[str, dict[str, str]]:
    form = await request.form()
    fields = {key: str(value) for key, value in form.items()}
    token = fields.get("tran_id", "").strip()
    if not token:
        raise InvalidStateError("Callback is missing tran_id.")
    return token, fields


def _frontend_redirect(page: str, outcome: CallbackOutcome) -> RedirectResponse:
    query = urlencode({"tran_id": outcome.token, "listing_id": outcome.listing_id})
    base = settings.frontend_base_url.rstrip("/")
    return RedirectResponse(url=f"{base}/payment/{page}?{query}", status_code=status.HTTP_303_SEE_OTHER)


@router.post(
    "/initiate",
    response_model=InitiatePaymentResponse,
    responses={status.HTTP_502_BAD_GATEWAY: {"description": "Gateway unavailable, safe to retry"}},
)
async def initiate_payment(
    body: InitiatePaymentRequest,
    actor: Actor = Depends(get_current_actor),
    resolver: PaymentCorrelationResolver = Depends(get_payment_resolver),
) -> InitiatePaymentResponse | JSONResponse:
    """
    Open a gateway session; the client redirects the customer to gateway_url.

    A gateway failure is answered here rather than raised so the request
    still commits and the initiated transaction stays on record.
    """
    try:
        result = await resolver.initiate(
            actor,
            PaymentInitiation(
                reference_id=body.reference_id,
                customer_name=body.cus_name,
                customer_email=body.cus_email,
                customer_phone=body.cus_phone,
                amount=body.amount,
                currency=body.currency,
                product_name=body.product_name,
                product_category=body.product_category,
                customer_address=body.cus_add1,
                customer_city=body.cus_city,
                customer_country=body.cus_country,
            ),
        )
    except GatewayError as exc:
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})
    return InitiatePaymentResponse(
        token=result.token,
        gateway_url=result.redirect_url,
        status=result.transaction.status if result.transaction else None,
    )


@router.post("/success")
async def payment_success(
    request: Request,
    resolver: PaymentCorrelationResolver = Depends(get_payment_resolver),
) -> RedirectResponse:
    token, fields = await _callback_fields(request)
    outcome = await resolver.handle_success(token, fields)
    return _frontend_redirect("success", outcome)


@router.post("/fail")
async def payment_fail(
    request: Request,
    resolver: PaymentCorrelationResolver = Depends(get_payment_resolver),
) -> RedirectResponse:
    token, fields = await _callback_fields(request)
    outcome = await resolver.handle_failure(token, fields)
    return _frontend_redirect("fail", outcome)


@router.post("/cancel")
async def payment_cancel(
    request: Request,
    resolver: PaymentCorrelationResolver = Depends(get_payment_resolver),
) -> RedirectResponse:
    token, fields = await _callback_fields(request)
    outcome = await resolver.handle_cancel(token, fields)
    return _frontend_redirect("cancel", outcome)

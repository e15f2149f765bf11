"""HTTP client for the SSLCommerz hosted payment session API."""
from typing import Any

import httpx
import structlog

from nextride.application.interfaces.collaborators import GatewaySession, PaymentGateway
from nextride.config import settings
from nextride.domain.errors import GatewayError

logger = structlog.get_logger(__name__)


class SslCommerzClient(PaymentGateway):
    """Thin wrapper around the SSLCommerz v4 session endpoint."""

    def __init__(
        self,
        api_url: str = settings.sslcommerz_api_url,
        store_id: str = settings.sslcommerz_store_id,
        store_password: str = settings.sslcommerz_store_password,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._api_url = api_url
        self._store_id = store_id
        self._store_password = store_password
        self._timeout = timeout
        self._transport = transport

    async def initiate(self, payload: dict[str, Any]) -> GatewaySession:
        """
        POST form fields -> {"status": "SUCCESS", "GatewayPageURL": "...", "sessionkey": "..."}

        Anything other than status SUCCESS is treated as a rejected session.
        """
        form = {"store_id": self._store_id, "store_passwd": self._store_password, **payload}
        token = str(payload.get("tran_id", ""))

        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = await client.post(self._api_url, data=form)
                response.raise_for_status()
                data = response.json()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "sslcommerz_request_failed",
                    tran_id=token,
                    status_code=exc.response.status_code,
                    response=exc.response.text,
                )
                raise GatewayError(
                    f"SSLCommerz returned {exc.response.status_code}: {exc.response.text}"
                ) from exc
            except httpx.RequestError as exc:
                logger.error("sslcommerz_connection_failed", tran_id=token, error=str(exc))
                raise GatewayError(f"Failed to reach SSLCommerz: {exc}") from exc
            except ValueError as exc:
                logger.error("sslcommerz_invalid_response", tran_id=token, error=str(exc))
                raise GatewayError("SSLCommerz returned a non-JSON response.") from exc

        if str(data.get("status", "")).upper() != "SUCCESS":
            reason = data.get("failedreason") or "unknown reason"
            logger.error("sslcommerz_session_rejected", tran_id=token, reason=reason)
            raise GatewayError(f"SSLCommerz rejected the payment session: {reason}")

        logger.info("sslcommerz_session_created", tran_id=token, sessionkey=data.get("sessionkey"))
        return GatewaySession(
            redirect_url=data.get("GatewayPageURL"),
            token=token,
            raw_response=data,
        )

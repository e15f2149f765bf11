"""Unit tests for the SSLCommerz client against an httpx mock transport."""
from urllib.parse import parse_qs

import httpx
import pytest

from nextride.domain.errors import GatewayError
from nextride.infrastructure.external_services.sslcommerz_client import SslCommerzClient

API_URL = "https://sandbox.sslcommerz.com/gwprocess/v4/api.php"


def _make_client(handler) -> SslCommerzClient:  # type: ignore[no-untyped-def]
    return SslCommerzClient(
        api_url=API_URL,
        store_id="teststore",
        store_password="secret",
        transport=httpx.MockTransport(handler),
    )


class TestInitiate:
    @pytest.mark.asyncio
    async def test_returns_gateway_session(self) -> None:
        captured: dict[str, list[str]] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(parse_qs(request.content.decode()))
            return httpx.Response(
                200,
                json={
                    "status": "SUCCESS",
                    "GatewayPageURL": "https://sandbox.sslcommerz.com/EasyCheckOut/xyz",
                    "sessionkey": "xyz",
                },
            )

        session = await _make_client(handler).initiate({"tran_id": "abcTXN_1", "total_amount": "500"})

        assert session.redirect_url == "https://sandbox.sslcommerz.com/EasyCheckOut/xyz"
        assert session.token == "abcTXN_1"
        assert session.raw_response["sessionkey"] == "xyz"
        assert captured["store_id"] == ["teststore"]
        assert captured["store_passwd"] == ["secret"]
        assert captured["tran_id"] == ["abcTXN_1"]

    @pytest.mark.asyncio
    async def test_rejected_session_raises_gateway_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"status": "FAILED", "failedreason": "Store Credential Error"})

        with pytest.raises(GatewayError, match="Store Credential Error"):
            await _make_client(handler).initiate({"tran_id": "abcTXN_1"})

    @pytest.mark.asyncio
    async def test_http_error_raises_gateway_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="maintenance")

        with pytest.raises(GatewayError, match="503"):
            await _make_client(handler).initiate({"tran_id": "abcTXN_1"})

    @pytest.mark.asyncio
    async def test_connection_error_raises_gateway_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GatewayError):
            await _make_client(handler).initiate({"tran_id": "abcTXN_1"})

    @pytest.mark.asyncio
    async def test_non_json_body_raises_gateway_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, text="<html>oops</html>")

        with pytest.raises(GatewayError):
            await _make_client(handler).initiate({"tran_id": "abcTXN_1"})

from __future__ import annotations

import json
from decimal import Decimal

import httpx
import pytest

from checkout.clients import (
    AuthenticationFailed,
    GatewaySubmissionFailed,
    PesapalClient,
    TransactionStatusFailed,
)
from checkout.schemas import BillingAddress, OrderSubmission


def _order() -> OrderSubmission:
    return OrderSubmission(
        id="order-1",
        currency="KES",
        amount=Decimal("10.01"),
        description="Movie Ticket Payment",
        callback_url="https://shop.example.com/payment-callback",
        notification_id="notify-1",
        billing_address=BillingAddress(
            email_address="jane@example.com",
            phone_number="0712345678",
            country_code="KE",
            first_name="Jane",
            last_name="Doe",
        ),
    )


def _client(settings, handler) -> tuple[PesapalClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    return PesapalClient(settings, transport=httpx.MockTransport(_record)), seen


@pytest.mark.asyncio
async def test_authenticate_posts_consumer_credentials(pesapal_settings) -> None:
    client, seen = _client(
        pesapal_settings,
        lambda request: httpx.Response(
            200,
            json={
                "token": "bearer-abc",
                "expiryDate": "2025-03-01T13:00:00Z",
                "error": None,
                "status": "200",
            },
        ),
    )

    token = await client.authenticate()

    assert token == "bearer-abc"
    assert str(seen[0].url) == "https://pesapal.test/v3/api/Auth/RequestToken"
    assert json.loads(seen[0].content) == {
        "consumer_key": "key-123",
        "consumer_secret": "secret-456",
    }


@pytest.mark.asyncio
async def test_authenticate_requires_token_field(pesapal_settings) -> None:
    client, _ = _client(
        pesapal_settings,
        lambda request: httpx.Response(
            200,
            json={
                "token": None,
                "error": {
                    "error_type": "api_error",
                    "code": "invalid_consumer_key_or_secret_provided",
                    "message": "",
                },
                "status": "500",
            },
        ),
    )

    with pytest.raises(AuthenticationFailed) as exc_info:
        await client.authenticate()

    assert exc_info.value.details["code"] == "invalid_consumer_key_or_secret_provided"


@pytest.mark.asyncio
async def test_authenticate_rejects_error_status(pesapal_settings) -> None:
    client, _ = _client(
        pesapal_settings, lambda request: httpx.Response(401, text="Unauthorized")
    )

    with pytest.raises(AuthenticationFailed) as exc_info:
        await client.authenticate()

    assert exc_info.value.status_code == 401
    assert exc_info.value.details == "Unauthorized"


@pytest.mark.asyncio
async def test_authenticate_wraps_transport_errors(pesapal_settings) -> None:
    def _timeout(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectTimeout("timed out", request=request)

    client, _ = _client(pesapal_settings, _timeout)

    with pytest.raises(AuthenticationFailed) as exc_info:
        await client.authenticate()

    assert isinstance(exc_info.value.__cause__, httpx.ConnectTimeout)


@pytest.mark.asyncio
async def test_submit_order_sends_bearer_token_and_payload(pesapal_settings) -> None:
    client, seen = _client(
        pesapal_settings,
        lambda request: httpx.Response(
            200,
            json={
                "order_tracking_id": "track-1",
                "merchant_reference": "order-1",
                "redirect_url": "https://pay.pesapal.test/iframe?OrderTrackingId=track-1",
                "error": None,
                "status": "200",
            },
        ),
    )

    result = await client.submit_order(_order(), access_token="bearer-abc")

    assert result.order_tracking_id == "track-1"
    assert result.redirect_url.endswith("OrderTrackingId=track-1")
    request = seen[0]
    assert request.headers["Authorization"] == "Bearer bearer-abc"
    assert str(request.url).endswith("/Transactions/SubmitOrderRequest")
    body = json.loads(request.content)
    assert body["amount"] == 10.01
    assert body["currency"] == "KES"
    assert body["notification_id"] == "notify-1"
    assert body["billing_address"]["country_code"] == "KE"


@pytest.mark.asyncio
async def test_submit_order_carries_gateway_error_body(pesapal_settings) -> None:
    error_body = {
        "error": {
            "error_type": "api_error",
            "code": "invalid_ipn_id",
            "message": "Invalid notification id",
        },
        "status": "500",
    }
    client, _ = _client(
        pesapal_settings, lambda request: httpx.Response(200, json=error_body)
    )

    with pytest.raises(GatewaySubmissionFailed) as exc_info:
        await client.submit_order(_order(), access_token="bearer-abc")

    assert exc_info.value.details == error_body


@pytest.mark.asyncio
async def test_submit_order_rejects_error_status(pesapal_settings) -> None:
    client, _ = _client(
        pesapal_settings,
        lambda request: httpx.Response(500, json={"message": "Server error"}),
    )

    with pytest.raises(GatewaySubmissionFailed) as exc_info:
        await client.submit_order(_order(), access_token="bearer-abc")

    assert exc_info.value.status_code == 500
    assert exc_info.value.details == {"message": "Server error"}


@pytest.mark.asyncio
async def test_transaction_status_is_parsed(pesapal_settings) -> None:
    client, seen = _client(
        pesapal_settings,
        lambda request: httpx.Response(
            200,
            json={
                "payment_method": "MpesaKE",
                "amount": 10.01,
                "created_date": "2025-03-01T12:10:00.000",
                "confirmation_code": "QWE123",
                "payment_status_description": "Completed",
                "description": None,
                "message": "Request processed successfully",
                "payment_account": "2547xxxxx678",
                "call_back_url": "https://shop.example.com/payment-callback",
                "status_code": 1,
                "merchant_reference": "order-1",
                "currency": "KES",
                "error": {
                    "error_type": None,
                    "code": None,
                    "message": None,
                    "call_back_url": None,
                },
                "status": "200",
            },
        ),
    )

    status = await client.get_transaction_status("track-1", access_token="bearer-abc")

    assert status.order_tracking_id == "track-1"
    assert status.payment_status_description == "Completed"
    assert status.status_code == 1
    assert status.amount == Decimal("10.01")
    assert seen[0].url.params["orderTrackingId"] == "track-1"


@pytest.mark.asyncio
async def test_transaction_status_failure(pesapal_settings) -> None:
    client, _ = _client(
        pesapal_settings, lambda request: httpx.Response(503, text="unavailable")
    )

    with pytest.raises(TransactionStatusFailed):
        await client.get_transaction_status("track-1", access_token="bearer-abc")

"""
Pesapal v3 API client.

Thin, stateless transport for the token, order submission and transaction
status endpoints. Gateway failures are translated into the exception types
below; nothing is retried here.
"""

from __future__ import annotations

from typing import Any, Optional

import httpx
from pydantic import ValidationError

from checkout.core.config import PesapalSettings
from checkout.schemas import OrderSubmission, SubmitOrderResult, TransactionStatus


class PesapalAPIError(Exception):
    """Base error for failed Pesapal calls; ``details`` holds the raw body."""

    def __init__(
        self,
        message: str,
        *,
        details: Any = None,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details
        self.status_code = status_code


class AuthenticationFailed(PesapalAPIError):
    """Raised when ``Auth/RequestToken`` does not yield a token."""


class GatewaySubmissionFailed(PesapalAPIError):
    """Raised when ``Transactions/SubmitOrderRequest`` is rejected."""


class TransactionStatusFailed(PesapalAPIError):
    """Raised when ``Transactions/GetTransactionStatus`` cannot be read."""


def _decode_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text


def _gateway_error(payload: Any) -> Any:
    """Return the ``error`` object Pesapal embeds in otherwise-200 bodies."""
    if not isinstance(payload, dict):
        return None
    error = payload.get("error")
    # Successful responses still carry an error object with every field null.
    if isinstance(error, dict) and not any(error.values()):
        return None
    return error or None


class PesapalClient:
    """Call the Pesapal API with consumer credentials or a bearer token."""

    TOKEN_PATH = "/Auth/RequestToken"
    SUBMIT_ORDER_PATH = "/Transactions/SubmitOrderRequest"
    TRANSACTION_STATUS_PATH = "/Transactions/GetTransactionStatus"

    def __init__(
        self,
        settings: PesapalSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._settings = settings
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=str(self._settings.base_url),
            timeout=self._settings.request_timeout_seconds,
            transport=self._transport,
            headers={"Accept": "application/json"},
        )

    async def authenticate(self) -> str:
        """Exchange the consumer key/secret for a bearer token."""
        payload = {
            "consumer_key": self._settings.consumer_key,
            "consumer_secret": self._settings.consumer_secret,
        }
        try:
            async with self._client() as client:
                response = await client.post(self.TOKEN_PATH, json=payload)
        except httpx.HTTPError as exc:
            raise AuthenticationFailed(f"Token request failed: {exc}") from exc

        body = _decode_body(response)
        if not response.is_success:
            raise AuthenticationFailed(
                "Pesapal rejected the token request.",
                details=body,
                status_code=response.status_code,
            )

        error = _gateway_error(body)
        token = body.get("token") if isinstance(body, dict) else None
        if error or not token:
            raise AuthenticationFailed(
                "No token returned from Pesapal.",
                details=error or body,
                status_code=response.status_code,
            )
        return token

    async def submit_order(
        self, order: OrderSubmission, *, access_token: str
    ) -> SubmitOrderResult:
        """Register an order and return the hosted payment page URL."""
        try:
            async with self._client() as client:
                response = await client.post(
                    self.SUBMIT_ORDER_PATH,
                    json=order.to_payload(),
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise GatewaySubmissionFailed(
                f"Order submission failed: {exc}", details=str(exc)
            ) from exc

        body = _decode_body(response)
        error = _gateway_error(body)
        if not response.is_success or error:
            raise GatewaySubmissionFailed(
                "Pesapal rejected the order.",
                details=body,
                status_code=response.status_code,
            )

        try:
            return SubmitOrderResult.model_validate(body)
        except ValidationError as exc:
            raise GatewaySubmissionFailed(
                "Pesapal response is missing the redirect details.",
                details=body,
                status_code=response.status_code,
            ) from exc

    async def get_transaction_status(
        self, order_tracking_id: str, *, access_token: str
    ) -> TransactionStatus:
        """Fetch the current payment state of a submitted order."""
        try:
            async with self._client() as client:
                response = await client.get(
                    self.TRANSACTION_STATUS_PATH,
                    params={"orderTrackingId": order_tracking_id},
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.HTTPError as exc:
            raise TransactionStatusFailed(
                f"Transaction status request failed: {exc}", details=str(exc)
            ) from exc

        body = _decode_body(response)
        error = _gateway_error(body)
        if not response.is_success or error or not isinstance(body, dict):
            raise TransactionStatusFailed(
                "Pesapal could not report the transaction status.",
                details=body,
                status_code=response.status_code,
            )

        try:
            return TransactionStatus.model_validate(
                {**body, "order_tracking_id": order_tracking_id}
            )
        except ValidationError as exc:
            raise TransactionStatusFailed(
                "Pesapal returned an unreadable transaction status.",
                details=body,
                status_code=response.status_code,
            ) from exc


__all__ = [
    "AuthenticationFailed",
    "GatewaySubmissionFailed",
    "PesapalAPIError",
    "PesapalClient",
    "TransactionStatusFailed",
]

"""
Order submission workflow: validate, authenticate, forward to Pesapal.
"""

from __future__ import annotations

import logging
import uuid
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Callable, Optional

from checkout.clients import PesapalClient, StorageUnavailable
from checkout.clients.pesapal import PesapalAPIError
from checkout.core.config import PesapalSettings
from checkout.schemas import (
    BillingAddress,
    OrderRequest,
    OrderSubmission,
    SubmitOrderResult,
    TransactionStatus,
)
from checkout.services.token_manager import TokenLifecycleManager

logger = logging.getLogger(__name__)

MINIMUM_AMOUNT = Decimal("0.01")
_CENTS = Decimal("0.01")


class OrderValidationError(ValueError):
    """Client input that can never be submitted as-is."""


class InvalidRequestBody(OrderValidationError):
    def __init__(self) -> None:
        super().__init__("Invalid request body. Expected a JSON object.")


class InvalidAmount(OrderValidationError):
    def __init__(self) -> None:
        super().__init__("Invalid payment amount. Must be 0.01 or higher.")


class MissingCustomerDetails(OrderValidationError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__("Missing customer details")
        self.missing = missing


class _DownstreamFailure(Exception):
    def __init__(self, message: str, *, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details


class PaymentInitiationFailed(_DownstreamFailure):
    """Token acquisition or order submission failed; see ``__cause__``."""


class PaymentStatusUnavailable(_DownstreamFailure):
    """The transaction status of an order could not be fetched."""


def normalize_amount(raw: Any) -> Decimal:
    """Parse an amount and round it half-up to two decimal places.

    The value's decimal text is used rather than its binary float so that
    ``10.005`` becomes ``10.01`` as written.
    """
    if raw is None or isinstance(raw, bool):
        raise InvalidAmount()
    text = str(raw).strip()
    if not text:
        raise InvalidAmount()
    try:
        value = Decimal(text)
    except InvalidOperation as exc:
        raise InvalidAmount() from exc
    if not value.is_finite() or value < MINIMUM_AMOUNT:
        raise InvalidAmount()
    try:
        return value.quantize(_CENTS, rounding=ROUND_HALF_UP)
    except InvalidOperation as exc:
        raise InvalidAmount() from exc


def _detail_text(value: Any) -> Optional[str]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def _customer_details(request: OrderRequest) -> dict[str, str]:
    """Return stripped customer fields keyed by their wire names.

    Objects, lists, booleans and blank strings all count as missing.
    """
    fields = {
        "email": request.email,
        "phone": request.phone,
        "firstName": request.first_name,
        "lastName": request.last_name,
    }
    details = {name: _detail_text(value) for name, value in fields.items()}
    missing = [name for name, text in details.items() if text is None]
    if missing:
        raise MissingCustomerDetails(missing)
    return details


def _failure_message(exc: Exception, default: str) -> str:
    details = getattr(exc, "details", None)
    if isinstance(details, dict):
        message = details.get("message")
        error = details.get("error")
        if not message and isinstance(error, dict):
            message = error.get("message")
        if message:
            return str(message)
    return default


class OrderSubmissionService:
    """Turn a checkout request into a Pesapal order."""

    def __init__(
        self,
        *,
        token_manager: TokenLifecycleManager,
        gateway: PesapalClient,
        settings: PesapalSettings,
        id_factory: Callable[[], str] = lambda: str(uuid.uuid4()),
    ) -> None:
        self._tokens = token_manager
        self._gateway = gateway
        self._settings = settings
        self._new_id = id_factory

    def build_submission(self, request: OrderRequest) -> OrderSubmission:
        """Validate ``request`` and assemble the gateway payload.

        Raises :class:`OrderValidationError` subclasses; performs no I/O.
        """
        amount = normalize_amount(request.amount)
        customer = _customer_details(request)
        return OrderSubmission(
            id=self._new_id(),
            currency=self._settings.currency,
            amount=amount,
            description=self._settings.order_description,
            callback_url=str(self._settings.callback_url),
            notification_id=self._new_id(),
            billing_address=BillingAddress(
                email_address=customer["email"],
                phone_number=customer["phone"],
                country_code=self._settings.country_code,
                first_name=customer["firstName"],
                last_name=customer["lastName"],
            ),
        )

    async def submit(self, request: OrderRequest) -> SubmitOrderResult:
        order = self.build_submission(request)
        try:
            access_token = await self._tokens.get_valid_token()
            logger.info(
                "Submitting order %s for %s %s", order.id, order.amount, order.currency
            )
            result = await self._gateway.submit_order(order, access_token=access_token)
        except (PesapalAPIError, StorageUnavailable) as exc:
            logger.error(
                "Payment error for order %s: %s",
                order.id,
                getattr(exc, "details", None) or exc,
            )
            raise PaymentInitiationFailed(
                _failure_message(exc, "Payment initiation failed"),
                details=getattr(exc, "details", None) or str(exc),
            ) from exc

        logger.info(
            "Pesapal order created: %s -> tracking id %s",
            order.id,
            result.order_tracking_id,
        )
        return result

    async def get_transaction_status(self, order_tracking_id: str) -> TransactionStatus:
        try:
            access_token = await self._tokens.get_valid_token()
            return await self._gateway.get_transaction_status(
                order_tracking_id, access_token=access_token
            )
        except (PesapalAPIError, StorageUnavailable) as exc:
            logger.error(
                "Status lookup failed for %s: %s",
                order_tracking_id,
                getattr(exc, "details", None) or exc,
            )
            raise PaymentStatusUnavailable(
                _failure_message(exc, "Transaction status unavailable"),
                details=getattr(exc, "details", None) or str(exc),
            ) from exc


__all__ = [
    "InvalidAmount",
    "InvalidRequestBody",
    "MINIMUM_AMOUNT",
    "MissingCustomerDetails",
    "OrderSubmissionService",
    "OrderValidationError",
    "PaymentInitiationFailed",
    "PaymentStatusUnavailable",
    "normalize_amount",
]

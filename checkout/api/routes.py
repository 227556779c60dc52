"""
FastAPI routes for the Pesapal checkout service.
"""

from __future__ import annotations

import json
import logging
from http import HTTPStatus
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse

from checkout.dependencies import get_app_settings, get_order_submission_service
from checkout.schemas import (
    FailureResponse,
    IPNAcknowledgement,
    OrderRequest,
    OrderSubmissionResponse,
    TransactionStatusResponse,
)
from checkout.services import (
    InvalidRequestBody,
    OrderValidationError,
    PaymentInitiationFailed,
    PaymentStatusUnavailable,
)

router = APIRouter()
logger = logging.getLogger(__name__)


def _failure(status: HTTPStatus, body: FailureResponse, **dump: Any) -> JSONResponse:
    return JSONResponse(status_code=status, content=body.model_dump(mode="json", **dump))


@router.get("/health", status_code=HTTPStatus.OK)
async def healthcheck(
    settings: Annotated[Any, Depends(get_app_settings)],
) -> dict:
    """Simple health endpoint for monitoring."""
    return {"status": "ok", "environment": settings.environment}


async def _read_order_request(request: Request) -> OrderRequest:
    """Parse the order body by hand so malformed input maps to a 400."""
    raw = await request.body()
    if not raw.strip():
        return OrderRequest()
    try:
        data = json.loads(raw)
    except ValueError as exc:
        raise InvalidRequestBody() from exc
    if not isinstance(data, dict):
        raise InvalidRequestBody()
    return OrderRequest.model_validate(data)


@router.post(
    "/pesapal/order",
    response_model=OrderSubmissionResponse,
    responses={
        HTTPStatus.BAD_REQUEST: {"model": FailureResponse},
        HTTPStatus.INTERNAL_SERVER_ERROR: {"model": FailureResponse},
    },
    openapi_extra={
        "requestBody": {
            "content": {
                "application/json": {"schema": OrderRequest.model_json_schema()}
            },
        }
    },
)
async def submit_order(
    request: Request,
    service: Annotated[Any, Depends(get_order_submission_service)],
) -> Any:
    """Create a Pesapal order and return the hosted payment page."""
    try:
        result = await service.submit(await _read_order_request(request))
    except OrderValidationError as exc:
        return _failure(
            HTTPStatus.BAD_REQUEST,
            FailureResponse(message=str(exc)),
            exclude={"details"},
        )
    except PaymentInitiationFailed as exc:
        return _failure(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            FailureResponse(message=exc.message, details=exc.details),
        )

    return OrderSubmissionResponse(
        redirect_url=result.redirect_url,
        order_tracking_id=result.order_tracking_id,
    )


@router.get(
    "/pesapal/order/status",
    response_model=TransactionStatusResponse,
    responses={HTTPStatus.INTERNAL_SERVER_ERROR: {"model": FailureResponse}},
)
async def get_order_status(
    service: Annotated[Any, Depends(get_order_submission_service)],
    order_tracking_id: str = Query(
        ...,
        min_length=1,
        alias="orderTrackingId",
        description="Tracking id returned when the order was submitted.",
    ),
) -> Any:
    """Poll Pesapal for the payment state of an order."""
    try:
        status = await service.get_transaction_status(order_tracking_id)
    except PaymentStatusUnavailable as exc:
        return _failure(
            HTTPStatus.INTERNAL_SERVER_ERROR,
            FailureResponse(message=exc.message, details=exc.details),
        )
    return TransactionStatusResponse(**status.model_dump())


@router.post("/pesapal/ipn", response_model=IPNAcknowledgement)
async def receive_ipn(request: Request) -> IPNAcknowledgement:
    """Acknowledge a Pesapal notification whatever its shape."""
    raw = await request.body()
    try:
        payload: Any = json.loads(raw) if raw else None
    except ValueError:
        payload = raw.decode("utf-8", errors="replace")
    logger.info("IPN received: %s", payload)
    return IPNAcknowledgement()


@router.get("/pesapal/ipn", response_model=IPNAcknowledgement)
async def receive_ipn_query(request: Request) -> IPNAcknowledgement:
    """Acknowledge a notification delivered as query parameters."""
    logger.info("IPN received: %s", dict(request.query_params))
    return IPNAcknowledgement()


__all__ = ["router"]

"""
Pydantic models for checkout requests and Pesapal order payloads.
"""

from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, HttpUrl, field_serializer


class OrderRequest(BaseModel):
    """Inbound checkout request posted by the front-end.

    Every field accepts any JSON value; :mod:`checkout.services.order_submission`
    decides what counts as a valid order so it can answer with a 400 instead
    of FastAPI's generic 422.
    """

    model_config = ConfigDict(populate_by_name=True)

    amount: Any = None
    email: Any = None
    phone: Any = None
    first_name: Any = Field(None, alias="firstName")
    last_name: Any = Field(None, alias="lastName")


class BillingAddress(BaseModel):
    """Customer details forwarded to Pesapal."""

    email_address: str
    phone_number: str
    country_code: str = Field(..., min_length=2, max_length=2)
    first_name: str
    last_name: str


class OrderSubmission(BaseModel):
    """Body of ``Transactions/SubmitOrderRequest``."""

    id: str = Field(..., description="Merchant reference, unique per order.")
    currency: str = Field(..., min_length=3, max_length=3)
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    description: str = Field(..., max_length=100)
    callback_url: HttpUrl
    notification_id: str
    billing_address: BillingAddress

    @field_serializer("amount")
    def _amount_as_number(self, value: Decimal) -> float:
        return float(value)

    def to_payload(self) -> dict[str, Any]:
        """Render the JSON body Pesapal expects."""
        return self.model_dump(mode="json")


class SubmitOrderResult(BaseModel):
    """Where to send the customer and how to follow the order up."""

    redirect_url: str = Field(..., min_length=1)
    order_tracking_id: str = Field(..., min_length=1)


class OrderSubmissionResponse(BaseModel):
    """Response returned to the front-end after a successful submission."""

    success: bool = True
    redirect_url: str
    order_tracking_id: str


class TransactionStatus(BaseModel):
    """Subset of ``Transactions/GetTransactionStatus`` relevant to callers."""

    model_config = ConfigDict(extra="ignore")

    order_tracking_id: str = Field(..., min_length=1)
    payment_status_description: Optional[str] = None
    status_code: Optional[int] = None
    payment_method: Optional[str] = None
    amount: Optional[Decimal] = None
    currency: Optional[str] = None
    confirmation_code: Optional[str] = None
    merchant_reference: Optional[str] = None
    created_date: Optional[str] = None
    description: Optional[str] = None
    message: Optional[str] = None

    @field_serializer("amount")
    def _amount_as_number(self, value: Optional[Decimal]) -> Optional[float]:
        return float(value) if value is not None else None


class TransactionStatusResponse(TransactionStatus):
    """Response returned when the front-end polls an order."""

    success: bool = True


class FailureResponse(BaseModel):
    """Error body shared by every checkout endpoint."""

    success: bool = False
    message: str
    details: Any = None


class IPNAcknowledgement(BaseModel):
    """Fixed acknowledgement returned to Pesapal notifications."""

    message: str = "IPN received successfully"


__all__ = [
    "BillingAddress",
    "FailureResponse",
    "IPNAcknowledgement",
    "OrderRequest",
    "OrderSubmission",
    "OrderSubmissionResponse",
    "SubmitOrderResult",
    "TransactionStatus",
    "TransactionStatusResponse",
]

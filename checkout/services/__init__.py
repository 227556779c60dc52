"""Service layer exports."""

from .order_submission import (
    InvalidAmount,
    InvalidRequestBody,
    MissingCustomerDetails,
    OrderSubmissionService,
    OrderValidationError,
    PaymentInitiationFailed,
    PaymentStatusUnavailable,
)
from .token_manager import TokenLifecycleManager

__all__ = [
    "InvalidAmount",
    "InvalidRequestBody",
    "MissingCustomerDetails",
    "OrderSubmissionService",
    "OrderValidationError",
    "PaymentInitiationFailed",
    "PaymentStatusUnavailable",
    "TokenLifecycleManager",
]

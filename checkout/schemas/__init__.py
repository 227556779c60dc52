"""Public schema exports."""

from .order import (
    BillingAddress,
    FailureResponse,
    IPNAcknowledgement,
    OrderRequest,
    OrderSubmission,
    OrderSubmissionResponse,
    SubmitOrderResult,
    TransactionStatus,
    TransactionStatusResponse,
)

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

"""Unified exception hierarchy for TrustPay.

All TrustPay-specific exceptions inherit from TrustPayError, enabling:
- Consistent error handling across the engine and its collaborators
- HTTP status code mapping in whatever transport wraps the engine
- Structured error responses with error codes

Usage:
    from trustpay_core.exceptions import (
        TrustPayError,
        InvalidInputError,
        RequestNotFoundError,
    )

    try:
        status = await engine.record_decision(request_id, approver, decision)
    except TrustPayError as e:
        return e.http_status, e.to_dict()

A failed mutual-trust check is not an exception: it is a terminal request
status reported through CreationResult.
"""
from __future__ import annotations

from typing import Any, Optional


class TrustPayError(Exception):
    """Base exception for all TrustPay errors.

    Attributes:
        message: Human-readable error message
        error_code: Machine-readable error code (e.g., "INVALID_INPUT")
        details: Optional additional context
    """

    error_code: str = "TRUSTPAY_ERROR"
    http_status: int = 500

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        if error_code:
            self.error_code = error_code
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert exception to API response format."""
        result = {
            "error": self.error_code,
            "message": self.message,
        }
        if self.details:
            result["details"] = self.details
        return result


# =============================================================================
# Caller errors (4xx)
# =============================================================================

class InvalidInputError(TrustPayError):
    """Missing or malformed input; the caller must retry with corrected input."""

    error_code = "INVALID_INPUT"
    http_status = 400

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if field:
            details["field"] = field
        self.field = field
        super().__init__(message, details=details)


class RequestNotFoundError(TrustPayError):
    """Unknown approval request id."""

    error_code = "NOT_FOUND"
    http_status = 404

    def __init__(
        self,
        request_id: str,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        details["request_id"] = request_id
        self.request_id = request_id
        super().__init__(f"Request '{request_id}' not found", details=details)


class RequestConflictError(TrustPayError):
    """A request with the same id already exists."""

    error_code = "CONFLICT"
    http_status = 409


class RequestFinalizedError(TrustPayError):
    """Attempt to move a request that already left the pending state."""

    error_code = "REQUEST_FINALIZED"
    http_status = 409

    def __init__(self, request_id: str, status: str) -> None:
        self.request_id = request_id
        self.status = status
        super().__init__(
            f"Request '{request_id}' is already {status}",
            details={"request_id": request_id, "status": status},
        )


# =============================================================================
# Delivery errors
# =============================================================================

class DeliveryError(TrustPayError):
    """Push delivery failed.

    Raised only inside notifier implementations. The notification dispatcher
    logs and swallows it; it never fails the operation that triggered it.
    """

    error_code = "DELIVERY_FAILURE"
    http_status = 502

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[dict[str, Any]] = None,
    ) -> None:
        details = details or {}
        if status_code is not None:
            details["status_code"] = status_code
        self.status_code = status_code
        super().__init__(message, details=details)


__all__ = [
    "TrustPayError",
    "InvalidInputError",
    "RequestNotFoundError",
    "RequestConflictError",
    "RequestFinalizedError",
    "DeliveryError",
]

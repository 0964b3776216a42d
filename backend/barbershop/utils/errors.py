from typing import Dict, Optional
from fastapi import HTTPException, status
import logging

logger = logging.getLogger(__name__)


def error_response(
    message: str,
    field_errors: Dict[str, str],
    code: int = status.HTTP_422_UNPROCESSABLE_ENTITY,
    error_code: Optional[str] = None,
) -> HTTPException:
    """Return an HTTPException with a consistent structure and log details."""
    logger.error("%s %s", message, field_errors)
    detail = {"message": message, "field_errors": field_errors}
    if error_code:
        detail["code"] = error_code
    return HTTPException(status_code=code, detail=detail)


class BookingEngineError(Exception):
    """Base class for domain errors raised by the scheduling engine."""

    code = "booking_engine_error"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field_errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.field_errors = field_errors or {}


class InvalidTransition(BookingEngineError):
    code = "invalid_transition"
    http_status = status.HTTP_409_CONFLICT

    def __init__(self, current, requested, role, reason: Optional[str] = None):
        self.current = getattr(current, "value", current)
        self.requested = getattr(requested, "value", requested)
        self.role = getattr(role, "value", role)
        self.reason = reason
        message = f"Cannot move booking from {self.current} to {self.requested} as {self.role}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message, {"status": self.requested})


class MissingPaymentMethod(BookingEngineError):
    code = "missing_payment_method"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str = "Payment method is required to complete a booking"):
        super().__init__(message, {"payment_method": "required"})


class MissingCancellationReason(BookingEngineError):
    code = "missing_cancellation_reason"
    http_status = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, message: str = "A cancellation reason is required"):
        super().__init__(message, {"reason": "required"})


class SlotConflict(BookingEngineError):
    code = "slot_conflict"
    http_status = status.HTTP_409_CONFLICT


class InvalidSlot(BookingEngineError):
    code = "invalid_slot"
    http_status = status.HTTP_400_BAD_REQUEST


class QuotaExceeded(BookingEngineError):
    code = "quota_exceeded"
    http_status = status.HTTP_409_CONFLICT


class NotFound(BookingEngineError):
    code = "not_found"
    http_status = status.HTTP_404_NOT_FOUND


class Forbidden(BookingEngineError):
    code = "forbidden"
    http_status = status.HTTP_403_FORBIDDEN


class Unavailable(BookingEngineError):
    code = "unavailable"
    http_status = status.HTTP_503_SERVICE_UNAVAILABLE


class AlreadyReviewed(BookingEngineError):
    code = "already_reviewed"
    http_status = status.HTTP_409_CONFLICT

"""Domain errors raised by the lifecycle services.

Each error is an ``HTTPException`` carrying a stable ``error`` kind so the
request boundary can translate it into ``{"detail": ..., "error": ...}``
without knowing which service raised it.
"""
from fastapi import HTTPException, status


class DomainError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    error = "bad_request"
    message = "Request could not be processed"

    def __init__(self, detail: str | None = None, headers: dict[str, str] | None = None):
        super().__init__(
            status_code=self.status_code,
            detail=detail or self.message,
            headers=headers,
        )


class InvalidInput(DomainError):
    error = "validation_error"
    message = "Invalid input"


class NotFound(DomainError):
    status_code = status.HTTP_404_NOT_FOUND
    error = "not_found"
    message = "Resource not found"


class BookingNotFound(NotFound):
    message = "Booking not found"


class PaymentNotFound(NotFound):
    message = "Payment not found"


class DriverNotFound(NotFound):
    message = "Driver not found"


class NotificationNotFound(NotFound):
    message = "Notification not found"


class Unauthenticated(DomainError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error = "unauthenticated"
    message = "Invalid authentication token"

    def __init__(self, detail: str | None = None):
        super().__init__(detail, headers={"WWW-Authenticate": "Bearer"})


class Forbidden(DomainError):
    status_code = status.HTTP_403_FORBIDDEN
    error = "forbidden"
    message = "You do not have access to this resource"


class Unauthorized(Forbidden):
    """The actor is authenticated but lacks rights for the requested action."""

    message = "You are not allowed to perform this action"


class Conflict(DomainError):
    status_code = status.HTTP_409_CONFLICT
    error = "conflict"
    message = "Request conflicts with the current state"


class DriverUnavailable(Conflict):
    error = "driver_unavailable"
    message = "Driver is not available for booking"


class ScheduleConflict(Conflict):
    error = "schedule_conflict"
    message = "Driver already has a booking on the selected dates"


class InvalidTransition(Conflict):
    error = "invalid_transition"
    message = "Status transition not allowed"


class NotCancellable(Conflict):
    error = "not_cancellable"
    message = "Booking can only be cancelled while pending or confirmed"


class AlreadyDecided(Conflict):
    error = "already_decided"
    message = "Payment has already been verified or rejected"


class BookingNotEligible(Conflict):
    error = "booking_not_eligible"
    message = "Booking is not eligible for this action"


class AlreadyReviewed(Conflict):
    error = "already_reviewed"
    message = "This booking has already been reviewed"


class InsufficientAmount(DomainError):
    error = "insufficient_amount"
    message = "Payment amount is below the required minimum"


class PaymentExceedsBalance(DomainError):
    error = "payment_exceeds_balance"
    message = "Payment amount exceeds the outstanding balance"

"""Application errors and the HTTP status each one maps to."""

from enum import Enum


class ErrorCode(str, Enum):
    VALIDATION_ERROR = "VALIDATION_ERROR"
    NOT_AUTHENTICATED = "NOT_AUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    BUSY = "BUSY"


class AppError(Exception):
    """Base error with a user-safe message, an HTTP status and optional extra payload."""

    status_code = 500
    code = ErrorCode.CONFLICT
    default_message = "Internal server error"

    def __init__(self, message: str | None = None, *, details=None, **extra) -> None:
        self.message = message or self.default_message
        self.details = details
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message, "code": self.code.value}
        if self.details is not None:
            body["details"] = self.details
        body.update(self.extra)
        return body


class ValidationError(AppError):
    status_code = 400
    code = ErrorCode.VALIDATION_ERROR
    default_message = "Validation error"


class AuthenticationError(AppError):
    status_code = 401
    code = ErrorCode.NOT_AUTHENTICATED
    default_message = "Not authenticated"


class AuthorizationError(AppError):
    status_code = 403
    code = ErrorCode.FORBIDDEN
    default_message = "Access denied"


class NotFoundError(AppError):
    status_code = 404
    code = ErrorCode.NOT_FOUND
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = 400
    code = ErrorCode.CONFLICT
    default_message = "Conflicting data"


class BusyError(AppError):
    status_code = 409
    code = ErrorCode.BUSY
    default_message = "Resource is busy, please try again."


# ---------- Events / attendance ----------
class EventNotFoundError(NotFoundError):
    default_message = "Event not found"

    def __init__(self, event_id: int) -> None:
        super().__init__()
        self.event_id = event_id


class EventNotActiveError(ConflictError):
    default_message = "Tickets cannot be purchased for this event"


class SelfAttendanceError(ConflictError):
    default_message = "You cannot buy tickets for your own event"


class CapacityExceededError(ConflictError):
    default_message = "Not enough tickets available"

    def __init__(self, available: int) -> None:
        super().__init__(available=available)
        self.available = available


class AttendanceBusyError(BusyError):
    default_message = "Could not acquire lock, please try again."


class NotEventOwnerError(AuthorizationError):
    default_message = "You do not have permission to modify this event"


class EventHasPaymentsError(ConflictError):
    default_message = "Events with recorded payments cannot be deleted; cancel them instead"


# ---------- Reviews ----------
class ReviewNotFoundError(NotFoundError):
    default_message = "Review not found"


class DuplicateReviewError(ConflictError):
    default_message = "You have already reviewed this event"


class NotAttendedError(AuthorizationError):
    default_message = "You can only review events you attended"


# ---------- Users / notifications ----------
class UserNotFoundError(NotFoundError):
    default_message = "User not found"


class NotificationNotFoundError(NotFoundError):
    default_message = "Notification not found"


# ---------- Payments / tickets ----------
class PaymentNotFoundError(NotFoundError):
    default_message = "Payment not found"


class RefundNotFoundError(NotFoundError):
    default_message = "Refund not found"


class RefundNotAllowedError(ValidationError):
    default_message = "This payment cannot be refunded"


class TicketNotFoundError(NotFoundError):
    default_message = "Ticket not found"


class TicketTransferError(ValidationError):
    default_message = "This ticket cannot be transferred"


class InvalidTicketError(ValidationError):
    default_message = "Invalid ticket"

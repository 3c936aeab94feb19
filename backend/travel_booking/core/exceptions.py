"""
Domain errors raised by the service layer.

Every error is an HTTPException so routes can let them propagate untouched,
but each one carries a stable ``code`` in its detail payload so clients (and
tests) can tell a capacity conflict from a skipped step or a gateway outage.
"""

from typing import Any, Optional

from fastapi import HTTPException, status

PACKAGE_LISTING_PATH = "/api/v1/packages/"


class BookingError(HTTPException):
    status_code = status.HTTP_400_BAD_REQUEST
    code = "booking_error"

    def __init__(self, message: str, headers: Optional[dict] = None, **extra: Any):
        detail = {"code": self.code, "message": message, **extra}
        super().__init__(status_code=self.status_code, detail=detail, headers=headers)
        self.message = message


class PackageNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "package_not_found"

    def __init__(self, package_id: int):
        super().__init__(f"Package {package_id} not found", package_id=package_id)


class BookingNotFound(BookingError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "booking_not_found"

    def __init__(self, booking_id: int):
        super().__init__(f"Booking {booking_id} not found", booking_id=booking_id)


class StepOutOfOrder(BookingError):
    """The flow was entered at a step whose prerequisites are missing."""

    status_code = status.HTTP_409_CONFLICT
    code = "step_out_of_order"

    def __init__(self, message: str):
        super().__init__(message, redirect_to=PACKAGE_LISTING_PATH)


class DraftNotFound(StepOutOfOrder):
    def __init__(self, draft_id: str):
        super().__init__(f"No booking in progress for draft {draft_id}")


class DraftAlreadyCommitted(StepOutOfOrder):
    def __init__(self, draft_id: str):
        super().__init__(f"Draft {draft_id} has already been booked")


class InsufficientCapacity(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "insufficient_capacity"

    def __init__(self, package_id: int, requested: int, available: int):
        super().__init__(
            f"Not enough slots. Requested: {requested}, Available: {available}",
            package_id=package_id,
            requested=requested,
            available=available,
        )


class BookingValidationError(BookingError):
    status_code = 422
    code = "validation_error"

    def __init__(self, errors: list[str]):
        super().__init__("; ".join(errors), errors=errors)
        self.errors = errors


class InvalidStatusTransition(BookingError):
    code = "invalid_status_transition"

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Invalid booking transition: {current} -> {target}",
            current=current,
            target=target,
        )


class DuplicateFeedback(BookingError):
    status_code = status.HTTP_409_CONFLICT
    code = "duplicate_feedback"

    def __init__(self, booking_id: int):
        super().__init__("This booking has already been reviewed", booking_id=booking_id)


class PaymentGatewayError(BookingError):
    status_code = status.HTTP_502_BAD_GATEWAY
    code = "payment_gateway_error"


class PersistenceFailure(BookingError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "persistence_failure"

    def __init__(self):
        super().__init__("Booking could not be saved. Nothing was charged or reserved.")


class BookingConflict(BookingError):
    """Slot reservation kept losing version races; the client may retry."""

    status_code = status.HTTP_409_CONFLICT
    code = "booking_conflict"

    def __init__(self):
        super().__init__("Booking failed due to high demand. Please try again.")


class FeedbackNotAllowed(BookingError):
    code = "feedback_not_allowed"

    def __init__(self, booking_id: int, current: str):
        super().__init__(
            "Only completed trips can be reviewed",
            booking_id=booking_id,
            current=current,
        )

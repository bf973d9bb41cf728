class BookingError(Exception):
    """Base for errors the HTTP layer turns into an error envelope."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message=None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class ValidationError(BookingError):
    status_code = 400
    default_message = "Invalid request"


class NotFoundError(BookingError):
    status_code = 404
    default_message = "Not found"


class ConflictError(BookingError):
    status_code = 409
    default_message = "This time slot is already booked"


class ForbiddenError(BookingError):
    status_code = 403
    default_message = "Forbidden"


class InvalidStateError(BookingError):
    status_code = 400
    default_message = "Operation not allowed in the current state"


class InternalError(BookingError):
    status_code = 500

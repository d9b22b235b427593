"""
Domain errors raised by the attempt engine.
The application maps them to HTTP responses; the message is client-facing.
"""


class ExamError(Exception):
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(ExamError):
    """Unknown exam or attempt, or an attempt the caller does not own."""
    status_code = 404


class InvalidStateError(ExamError):
    """Operation not allowed in the attempt's current status."""
    status_code = 400


class InvalidInputError(ExamError):
    """Out-of-range index or malformed answer letter."""
    status_code = 400


class ForbiddenError(ExamError):
    """Caller lacks the entitlement the exam requires."""
    status_code = 403

"""
API error types

Every failure the booking and payment services can report is one of these.
The application error handler turns them into ``{"error", "message"}``
responses with the matching status code.
"""


class ApiError(Exception):
    """Base class for errors that are safe to show to the client"""

    status_code = 500
    title = 'Internal Server Error'

    def __init__(self, message=None, status_code=None):
        super().__init__(message or self.title)
        self.message = message or self.title
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self):
        return {'error': self.title, 'message': self.message}


class ValidationError(ApiError):
    status_code = 400
    title = 'Validation Error'


class InvalidState(ApiError):
    status_code = 400
    title = 'Invalid State'


class Unauthorized(ApiError):
    status_code = 401
    title = 'Unauthorized'


class Forbidden(ApiError):
    status_code = 403
    title = 'Forbidden'


class NotFound(ApiError):
    status_code = 404
    title = 'Not Found'


class Conflict(ApiError):
    status_code = 409
    title = 'Conflict'


class GatewayError(ApiError):
    """The payment provider failed or timed out. Retryable in principle."""

    status_code = 502
    title = 'Payment Gateway Error'

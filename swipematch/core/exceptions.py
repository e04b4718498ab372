"""
Domain errors raised by the matching core.
Each carries the HTTP status and error code the API layer answers with.
"""

from fastapi import status


class SwipeMatchError(Exception):
    """Base class for recoverable domain errors."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(SwipeMatchError):
    """Referenced user, match, message or preference is absent."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "not_found"


class InvalidOperationError(SwipeMatchError):
    """Self-swipe, bad message content, or acting on an inactive match."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "invalid_operation"


class ConflictError(SwipeMatchError):
    """The pair is already actively matched."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "conflict"


class NotConfiguredError(SwipeMatchError):
    """Ranking requested for a user without preferences."""

    status_code = status.HTTP_412_PRECONDITION_FAILED
    error_code = "not_configured"

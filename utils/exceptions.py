"""
utils/exceptions.py  –  Domain error taxonomy

Services raise these; app.py turns every AppError into
{"success": false, "error": <message>} with the error's status code.
"""

from fastapi import status


class AppError(Exception):
    """Base class for expected, user-facing failures (never a 500)."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "Request could not be processed"):
        self.message = message
        super().__init__(message)


class ValidationError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AuthorizationError(AppError):
    """Caller's role is wrong for the operation."""
    status_code = status.HTTP_403_FORBIDDEN


class ForbiddenError(AppError):
    """Caller's role is right but they are not the party on the order."""
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    status_code = status.HTTP_404_NOT_FOUND


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT


class InvalidTransitionError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidStateError(InvalidTransitionError):
    pass


class ExpiredError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidCodeError(AppError):
    status_code = status.HTTP_400_BAD_REQUEST


class AlreadyPaidError(AppError):
    status_code = status.HTTP_409_CONFLICT

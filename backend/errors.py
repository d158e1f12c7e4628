"""
errors.py — Error taxonomy shared by services, views and routes.
Routes translate these into HTTPException; the chat view turns them into notices.
"""
from fastapi import HTTPException


class ChatError(Exception):
    """Base class for every failure the chat layer reports to the user."""

    status_code = 500
    redirect_to: str | None = None

    def __init__(self, message: str = ""):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__


class AccessDenied(ChatError):
    """The requesting user is not a participant of the conversation."""

    status_code = 403
    redirect_to = "/chat"


class NotFound(ChatError):
    status_code = 404
    redirect_to = "/chat"


class ValidationError(ChatError):
    """Input rejected before any store or upload call was attempted."""

    status_code = 422


class UploadError(ChatError):
    status_code = 502


class NetworkError(ChatError):
    """A store call failed (timeout, HTTP error, connection reset...)."""

    status_code = 502


class MissingSender(ValidationError):
    pass


class MissingRecipient(ValidationError):
    pass


def http_error(exc: ChatError) -> HTTPException:
    """Map a ChatError onto the HTTP response the routes return."""
    headers = {"X-Redirect-To": exc.redirect_to} if exc.redirect_to else None
    return HTTPException(status_code=exc.status_code, detail=exc.message, headers=headers)

"""
Error taxonomy for django-portfolio-cms.

Validation failures use Django's own ValidationError, always raised with a
dict of field -> messages so callers can surface every problem at once:

    try:
        upsert_post(payload, user=request.user)
    except ValidationError as exc:
        exc.message_dict  # {"hero_image_url": ["Hero image is required to publish"]}
"""
from django.core.exceptions import PermissionDenied, ValidationError

__all__ = [
    "ValidationError",
    "PortfolioCMSError",
    "ConflictError",
    "NotFoundError",
    "PersistenceError",
    "RateLimitExceeded",
    "AuthorizationError",
]


class PortfolioCMSError(Exception):
    """Base class for errors raised by the service layer."""

    default_message = "Something went wrong"

    def __init__(self, message=None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ConflictError(PortfolioCMSError):
    """A structural precondition failed (e.g. deleting a referenced row)."""

    default_message = "Conflict"


class NotFoundError(PortfolioCMSError):
    """The requested row does not exist."""

    default_message = "Not found"


class PersistenceError(PortfolioCMSError):
    """The database rejected a write."""

    default_message = "Could not save changes"


class RateLimitExceeded(PortfolioCMSError):
    """The actor exceeded its operation quota for the current window."""

    default_message = "Too many requests"

    def __init__(self, retry_after, message=None):
        self.retry_after = retry_after
        super().__init__(message)


class AuthorizationError(PermissionDenied):
    """The caller lacks the role required for the operation."""

    def __init__(self, message="Unauthorized"):
        self.message = message
        super().__init__(message)

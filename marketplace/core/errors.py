"""
Error taxonomy for store-facing operations.

Services raise these; the API layer renders every one of them as
``{"detail": <message>, "error": <code>}`` with the class's status code,
so callers can branch on ``error`` instead of parsing messages.
"""

from typing import Optional


class MarketplaceError(Exception):
    """Base class for all domain errors."""

    code = "error"
    status_code = 500
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"detail": self.message, "error": self.code}


class ValidationError(MarketplaceError):
    """Malformed input caught before any store call."""
    code = "validation_error"
    status_code = 400
    default_message = "Invalid request"


class RateLimitExceeded(MarketplaceError):
    code = "rate_limit_exceeded"
    status_code = 429
    default_message = "Daily application limit reached. Please try again tomorrow."


class DuplicateApplication(MarketplaceError):
    code = "duplicate_application"
    status_code = 409
    default_message = "You have already applied to this opportunity"


class CapacityReached(MarketplaceError):
    code = "capacity_reached"
    status_code = 409
    default_message = (
        "This opportunity has reached its applicant cap and is no longer accepting applications"
    )


class LookupFailed(MarketplaceError):
    """Store read error."""
    code = "lookup_failed"
    status_code = 503
    default_message = "Could not read from the data store"


class WriteFailed(MarketplaceError):
    """Store write error."""
    code = "write_failed"
    status_code = 503
    default_message = "Could not write to the data store"


class NotFound(MarketplaceError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"

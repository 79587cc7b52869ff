# Overview: Error taxonomy shared by services and routes.

"""
Every failure the API reports maps to exactly one category and HTTP status.

NotFound is used both for "does not exist" and "exists in another tenant";
callers cannot tell the two apart. Conflicts raised inside the atomic commit
(InsufficientStock, DuplicateIdentifier) always arrive after a full rollback.
"""

from __future__ import annotations


class PosError(Exception):
    """Base class for errors rendered as JSON responses."""

    status_code = 500
    category = "INTERNAL"

    default_message = "Internal server error"

    def __init__(self, message: str | None = None, details: dict | None = None):
        super().__init__(message or self.default_message)
        self.details = details or {}

    @property
    def message(self) -> str:
        return str(self)

    def to_dict(self) -> dict:
        body = {"error": self.message, "category": self.category}
        if self.details:
            body["details"] = self.details
        return body


class Unauthenticated(PosError):
    status_code = 401
    category = "UNAUTHENTICATED"
    default_message = "Authentication required"


class Forbidden(PosError):
    status_code = 403
    category = "FORBIDDEN"
    default_message = "You do not have permission to perform this operation"


class NotFound(PosError):
    status_code = 404
    category = "NOT_FOUND"
    default_message = "Resource not found"


class ValidationError(PosError, ValueError):
    """400-level input problem the caller can fix."""
    status_code = 400
    category = "VALIDATION_ERROR"
    default_message = "Invalid request"


class InsufficientStock(PosError):
    """Stock would go negative. Re-fetch current stock and retry."""
    status_code = 409
    category = "INSUFFICIENT_STOCK"
    default_message = "Insufficient stock"


class DuplicateIdentifier(PosError):
    status_code = 409
    category = "DUPLICATE_IDENTIFIER"
    default_message = "A record with this identifier already exists"


class TooManyAttempts(PosError):
    """Login or registration throttled. details carries retry_after_seconds."""
    status_code = 429
    category = "TOO_MANY_ATTEMPTS"
    default_message = "Too many attempts, please try again later"


class Internal(PosError):
    pass

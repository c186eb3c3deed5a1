"""Error taxonomy shared by services and the HTTP layer.

Services raise these; the application-level exception handlers render them
as ``{"error": {"message": ..., "status": ...}}`` responses.
"""

from typing import Any


class BillingError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str, conflicting_id: str | None = None):
        super().__init__(message)
        self.message = message
        self.conflicting_id = conflicting_id

    def to_dict(self) -> dict[str, Any]:
        error: dict[str, Any] = {"message": self.message, "status": self.status_code}
        if self.conflicting_id:
            error["conflicting_id"] = self.conflicting_id
        return {"error": error}


class ValidationError(BillingError):
    """A required field is missing or malformed."""

    status_code = 400


class AuthenticationError(BillingError):
    """A webhook signature is missing or does not match."""

    status_code = 401


class NotFoundError(BillingError):
    status_code = 404


class ConflictError(BillingError):
    """The request collides with existing state (e.g. a used uniqueness key)."""

    status_code = 409


class InternalError(BillingError):
    status_code = 500

# Overview: Domain error types shared by services and mapped to HTTP responses in create_app.

from __future__ import annotations


class ServiceError(Exception):
    """Base class for business-rule failures raised by the service layer."""
    http_status = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}

    def to_dict(self) -> dict:
        payload = {"error": str(self)}
        if self.details:
            payload["details"] = self.details
        return payload


class NotFoundError(ServiceError):
    """Entity does not exist (or belongs to another tenant)."""
    http_status = 404


class InvalidTransitionError(ServiceError):
    """Requested sale status change is not permitted from the current status."""
    http_status = 409


class ConfirmationRequiredError(ServiceError):
    """
    Operation is legal but risky; the caller must resubmit with the named
    confirmation flag set.
    """
    http_status = 409

    def __init__(self, message: str, confirmation: str, details: dict | None = None):
        details = dict(details or {})
        details["confirmation"] = confirmation
        super().__init__(message, details=details)
        self.confirmation = confirmation


class ConcurrencyConflictError(ServiceError):
    """
    Optimistic lock or row lock failure. The caller should re-fetch and
    resubmit the whole operation.
    """
    http_status = 409


def error_response(exc: Exception) -> tuple[dict, int]:
    """JSON body and HTTP status for a domain or validation error."""
    from .validation import ConflictError

    if isinstance(exc, ServiceError):
        return exc.to_dict(), exc.http_status
    if isinstance(exc, ConflictError):
        return {"error": str(exc)}, 409
    if isinstance(exc, ValueError):
        return {"error": str(exc)}, 400
    raise TypeError(f"Not a domain error: {exc!r}")


# Everything routes translate with error_response
DOMAIN_ERRORS = (ServiceError, ValueError)

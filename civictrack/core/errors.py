"""
Error taxonomy for the issue lifecycle engine.

Every error carries a stable ``kind`` and a human-readable message.
Routes never build error payloads by hand: the exception handler in
``civictrack.main`` renders ``to_dict()`` with ``status_code``.
"""

from typing import Any, Dict, Optional


class CivicTrackError(Exception):
    """Base class for all engine errors."""

    kind = "Error"
    status_code = 500

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = {k: v for k, v in context.items() if v is not None}

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"kind": self.kind, "message": self.message}
        payload.update(self.context)
        return payload


class NotFound(CivicTrackError):
    kind = "NotFound"
    status_code = 404

    def __init__(self, resource: str, resource_id: Optional[str] = None):
        message = f"{resource} not found" if resource_id is None else f"{resource} {resource_id} not found"
        super().__init__(message, resource=resource, id=resource_id)


class ValidationError(CivicTrackError):
    kind = "ValidationError"
    status_code = 422

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, field=field)
        self.field = field


class InvalidTransition(CivicTrackError):
    kind = "InvalidTransition"
    status_code = 409

    def __init__(self, current_status: str, requested_status: str, allowed: Optional[list] = None):
        super().__init__(
            f"Invalid status transition from {current_status} to {requested_status}",
            currentStatus=current_status,
            requestedStatus=requested_status,
            allowedTransitions=allowed,
        )
        self.current_status = current_status
        self.requested_status = requested_status


class Conflict(CivicTrackError):
    kind = "Conflict"
    status_code = 409


class Unauthenticated(CivicTrackError):
    kind = "Unauthenticated"
    status_code = 401


class AuthorizationError(CivicTrackError):
    kind = "AuthorizationError"
    status_code = 403


class ExternalServiceError(CivicTrackError):
    kind = "ExternalServiceError"
    status_code = 502

    def __init__(self, service: str, message: str):
        super().__init__(message, service=service)
        self.service = service


class RateLimited(CivicTrackError):
    kind = "RateLimited"
    status_code = 429

    def __init__(self, message: str = "Too many requests", retry_after: Optional[int] = None):
        super().__init__(message, retryAfter=retry_after)
        self.retry_after = retry_after

"""
Shared error handling for the parcel routing service.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error response format."""

    code: str
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)


class RoutingException(Exception):
    """Base exception for parcel routing."""

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(RoutingException):
    """Malformed input record."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class DuplicateKeyError(RoutingException):
    """Tracking ID collision with an already stored parcel."""

    def __init__(self, tracking_id: str, existing_id: Optional[str] = None):
        self.tracking_id = tracking_id
        self.existing_id = existing_id
        super().__init__(
            "DUPLICATE_KEY",
            "Parcel with this tracking ID already exists",
            {"tracking_id": tracking_id, "existing_id": existing_id}
        )


class UnresolvableReferenceError(RoutingException):
    """Department reference that matches no department."""

    def __init__(self, reference: Any, message: Optional[str] = None):
        self.reference = reference
        super().__init__(
            "UNRESOLVABLE_REFERENCE",
            message or f"Department not found: {reference}",
            {"reference": reference}
        )


class NotFoundError(RoutingException):
    """Requested entity does not exist."""

    def __init__(self, entity: str, entity_id: str):
        super().__init__("NOT_FOUND", f"{entity} not found", {"entity": entity, "id": entity_id})


class InvalidTransitionError(RoutingException):
    """Insurance approval state change that is not allowed."""

    def __init__(self, current: str, target: str):
        super().__init__(
            "INVALID_TRANSITION",
            f"Cannot move insurance approval from '{current}' to '{target}'",
            {"current": current, "target": target}
        )


class ConfigurationError(RoutingException):
    """Invalid configuration or unreadable rule/department store."""

    def __init__(self, message: str = "Configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__("CONFIGURATION_ERROR", message, details)

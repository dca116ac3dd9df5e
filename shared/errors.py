"""
Shared error handling for the Trade-In Pricing Layer.
"""

from typing import Dict, Any, Optional
from pydantic import BaseModel
from opentelemetry import trace


class ErrorResponse(BaseModel):
    """Standard error response format."""

    trace_id: Optional[str] = None
    code: str
    message: str
    details: Dict[str, Any] = {}


class PricingLayerException(Exception):
    """Base exception for Pricing Layer services."""

    status_code = 400

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        # Get trace ID from current span
        trace_id = None
        current_span = trace.get_current_span()
        if current_span and current_span.is_recording():
            span_context = current_span.get_span_context()
            if span_context.trace_id != 0:
                trace_id = f"{span_context.trace_id:032x}"

        return ErrorResponse(
            trace_id=trace_id,
            code=self.code,
            message=self.message,
            details=self.details
        )


class ValidationError(PricingLayerException):
    """Validation-related errors."""

    def __init__(self, message: str = "Validation failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("VALIDATION_ERROR", message, details)


class NotFoundError(PricingLayerException):
    """Resource absent: unknown record id, type alias or rule."""

    status_code = 404

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None,
                 code: str = "NOT_FOUND"):
        super().__init__(code, message, details)


class RuleNotFoundError(NotFoundError):
    """No active or fallback rule exists for a (type, kind) pair."""

    def __init__(self, message: str = "No active pricing rule", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details, code="RULE_NOT_FOUND")


class InvalidRuleError(PricingLayerException):
    """Rule exists but has no usable numeric basePrice.

    Reported with the same status as a missing rule: the caller cannot act
    on it any differently.
    """

    status_code = 404

    def __init__(self, message: str = "No active pricing rule (missing basePrice)",
                 details: Optional[Dict[str, Any]] = None):
        super().__init__("INVALID_RULE", message, details)


class UpstreamUnavailableError(PricingLayerException):
    """Rule store or registry unreachable or timed out. Safe to retry."""

    status_code = 503

    def __init__(self, service: str, message: str = "Upstream unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("UPSTREAM_UNAVAILABLE", f"{service}: {message}", details)

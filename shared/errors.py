"""
Shared error handling for the Catalog Gateway.

Error codes are part of the public contract: clients match on ``code``,
so never rename an existing one.
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


class GatewayException(Exception):
    """Base exception for the Catalog Gateway."""

    status_code = 500

    def __init__(self, code: str, message: str, details: Optional[Dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
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


class AuthenticationError(GatewayException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, message: str = "Authentication failed", details: Optional[Dict[str, Any]] = None):
        super().__init__("InvalidCredentials", message, details)


class AuthorizationError(GatewayException):
    """The caller may not act on the addressed account."""

    status_code = 403

    def __init__(self, message: str = "Not authorized", details: Optional[Dict[str, Any]] = None):
        super().__init__("NotAuthorized", message, details)


class NotFoundError(GatewayException):
    """A requested identifier or name resolved to zero entities."""

    status_code = 404

    def __init__(self, message: str = "Resource not found", details: Optional[Dict[str, Any]] = None):
        super().__init__("ResourceNotFound", message, details)


class FeatureGatedError(NotFoundError):
    """Endpoint hidden behind a bleeding-edge flag.

    Rendered exactly like :class:`NotFoundError` so the feature's existence
    does not leak to tenants that are not whitelisted.
    """

    def __init__(self, path: str):
        super().__init__(f"{path} does not exist")


class BackendError(GatewayException):
    """Failure reported by a backend catalog or orchestration service.

    Backend outages answer 502. A request the backend rejected (4xx) keeps
    the backend's status, and its ``code``/``message`` when it sent them.
    """

    status_code = 502

    def __init__(self,
                 service: str,
                 message: str = "Backend service error",
                 details: Optional[Dict[str, Any]] = None,
                 *,
                 status_code: Optional[int] = None,
                 code: Optional[str] = None):
        self.service = service
        if status_code is not None:
            self.status_code = status_code
        if code:
            super().__init__(code, message, details)
        else:
            super().__init__("BackendError", f"{service}: {message}", details)

    @classmethod
    def rejected(cls, service: str, status_code: int, body: Any) -> "BackendError":
        """Error for a 4xx answer, passed through as the backend worded it."""
        body_fields = body if isinstance(body, dict) else {}
        code = body_fields.get("code") if isinstance(body_fields.get("code"), str) else None
        message = body_fields.get("message")
        if code and isinstance(message, str):
            return cls(service, message, status_code=status_code, code=code)
        return cls(
            service,
            message=f"Unexpected status {status_code}",
            details={"status_code": status_code, "body": body},
            status_code=status_code,
            code=code,
        )


class UnsupportedOperationError(GatewayException):
    """A feature intentionally disabled on this gateway."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("NotSupported", message, details)


class MissingParameterError(GatewayException):
    """A required request argument was not supplied."""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("MissingParameter", message, details)


class InvalidArgumentError(GatewayException):
    """A request argument has an unacceptable value."""

    status_code = 409

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("InvalidArgument", message, details)


class InvalidVersionError(GatewayException):
    """The declared protocol version cannot be served."""

    status_code = 400

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("InvalidVersion", message, details)


class ServiceUnavailableError(GatewayException):
    """The gateway refuses the request, e.g. while in read-only mode."""

    status_code = 503

    def __init__(self, message: str = "Service unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__("ServiceUnavailable", message, details)


class ConfigurationError(GatewayException):
    """Invalid gateway configuration detected at startup."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__("ConfigurationError", message, details)

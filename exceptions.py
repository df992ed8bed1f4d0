"""
Service Exceptions

Typed errors raised by the service layer. Routes never match on message
text: the exception class (or its ``code``) decides the HTTP status.
"""

from typing import Optional


class ServiceError(Exception):
    """Base class for every business-rule and gateway error."""

    status_code: int = 500
    default_code: str = "SERVICE_ERROR"

    def __init__(self, message: str, code: Optional[str] = None, details: Optional[dict] = None):
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Convert exception to dictionary for API responses."""
        return {
            'error': self.code,
            'message': self.message,
            'details': self.details
        }


class ValidationError(ServiceError):
    """Malformed input such as a sub-minimum price. Not retried."""
    status_code = 400
    default_code = "VALIDATION_ERROR"


class ForbiddenError(ServiceError):
    """The caller does not own the resource."""
    status_code = 403
    default_code = "FORBIDDEN"


class NotFoundError(ServiceError):
    status_code = 404
    default_code = "NOT_FOUND"


class ConflictingStateError(ServiceError):
    """
    The request is valid but the current state forbids it, e.g. a price edit
    with live subscribers or a second subscription to the same offer.
    """
    status_code = 409
    default_code = "CONFLICTING_STATE"


class PayeeNotReady(ServiceError):
    """The tipster's payable account cannot accept charges yet."""
    status_code = 409
    default_code = "PAYEE_NOT_READY"


class RemoteTransientError(ServiceError):
    """Gateway timeout, connection failure, rate limit or 5xx."""
    status_code = 503
    default_code = "REMOTE_TRANSIENT"


class PaymentGatewayError(ServiceError):
    """The payment processor rejected the request."""
    status_code = 502
    default_code = "PAYMENT_GATEWAY_ERROR"


class WebhookSignatureError(ServiceError):
    """Webhook payload could not be authenticated."""
    status_code = 400
    default_code = "INVALID_WEBHOOK_SIGNATURE"

"""Error taxonomy for inquiry submission and delivery.

Validation and admission errors are resolved at the HTTP boundary and never
reach the dispatcher. Delivery errors carry an ErrorKind that decides the
message shown to the caller.
"""

from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Caller-facing classification of a delivery failure."""
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    RELAY_REJECTED = "relay_rejected"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


class InquiryRelayError(Exception):
    """Base exception for all service errors."""
    pass


class ValidationError(InquiryRelayError):
    """Raised when a required field is missing or malformed."""

    def __init__(self, message: str, details: Optional[list[dict[str, Any]]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or []


class RateLimitExceeded(InquiryRelayError):
    """Raised when an admission limiter rejects a request.

    Attributes:
        limiter: Name of the limiter that tripped ("burst" or "abuse")
        retry_after: Seconds until the tripped window resets
    """

    def __init__(self, limiter: str, retry_after: int):
        super().__init__(
            f"Rate limit '{limiter}' exceeded, retry after {retry_after}s"
        )
        self.limiter = limiter
        self.retry_after = retry_after


class DeliveryError(InquiryRelayError):
    """Base class for relay delivery failures.

    Attributes:
        kind: ErrorKind used for reporting
        smtp_code: Relay reply code when the relay produced one
        attempts: Relay attempts made before the error was raised
    """

    transient = False

    def __init__(self, message: str, kind: ErrorKind, smtp_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.kind = kind
        self.smtp_code = smtp_code
        self.attempts = 0


class TransientDeliveryError(DeliveryError):
    """Failure likely to succeed on retry (network, timeout, 4xx reply)."""

    transient = True


class FatalDeliveryError(DeliveryError):
    """Failure no retry can fix (authentication, permanent rejection)."""
    pass


class ExhaustedRetriesError(DeliveryError):
    """Every attempt failed with a transient error.

    The kind is taken from the last transient error so the caller sees why the
    final attempt failed, not merely that attempts ran out.
    """

    def __init__(self, attempts: int, last_error: TransientDeliveryError):
        super().__init__(
            f"Delivery failed after {attempts} attempts: {last_error.message}",
            kind=last_error.kind,
            smtp_code=last_error.smtp_code,
        )
        self.attempts = attempts
        self.last_error = last_error

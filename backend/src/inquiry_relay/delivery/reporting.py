"""Delivery outcome reporting.

Turns the dispatcher's terminal outcome into the payload returned to the HTTP
caller. Failure text is chosen from the error kind alone, so operators can
tell authentication, network, rejection and timeout problems apart without
reading logs.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import DeliveryError, ErrorKind

FAILURE_MESSAGES: Dict[ErrorKind, str] = {
    ErrorKind.AUTHENTICATION: (
        "Email service authentication failed. Please contact the site administrator."
    ),
    ErrorKind.NETWORK: "Could not reach the email server. Please try again later.",
    ErrorKind.RELAY_REJECTED: (
        "The email server rejected the message. Please try again later."
    ),
    ErrorKind.TIMEOUT: "The email server timed out. Please try again later.",
    ErrorKind.UNKNOWN: "Failed to send email. Please try again later.",
}

SUCCESS_MESSAGE = "Email sent successfully"

_QUEUED_AS = re.compile(r"queued as\s+<?([^\s>]+)", re.IGNORECASE)


class AttemptOutcome(str, Enum):
    SUCCESS = "success"
    TRANSIENT = "transient"
    FATAL = "fatal"


@dataclass(frozen=True)
class DeliveryAttempt:
    """One try at handing the message to the relay."""
    index: int
    outcome: AttemptOutcome
    error_kind: Optional[ErrorKind] = None
    smtp_code: Optional[int] = None


@dataclass(frozen=True)
class DeliveryResult:
    """Successful delivery.

    Attributes:
        delivered_at: When the relay accepted the message (UTC)
        relay_id: Queue id reported by the relay, else the Message-ID
        attempts: Every attempt made, the last one successful
    """
    delivered_at: datetime
    relay_id: Optional[str]
    attempts: tuple[DeliveryAttempt, ...]


def extract_relay_id(response: Optional[str]) -> Optional[str]:
    """Pull the queue id out of a relay reply such as '2.0.0 Ok: queued as 4Xyz'."""
    if not response:
        return None
    match = _QUEUED_AS.search(response)
    return match.group(1) if match else None


def success_payload(result: DeliveryResult) -> Dict[str, Any]:
    return {
        "success": True,
        "message": SUCCESS_MESSAGE,
        "timestamp": result.delivered_at.isoformat(),
        "messageId": result.relay_id,
    }


def failure_payload(error: DeliveryError) -> Dict[str, Any]:
    return {
        "success": False,
        "error": error.kind.value,
        "message": FAILURE_MESSAGES.get(error.kind, FAILURE_MESSAGES[ErrorKind.UNKNOWN]),
        "attempts": error.attempts,
    }

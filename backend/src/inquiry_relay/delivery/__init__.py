"""Outbound delivery: relay pool, dispatcher, classification and reporting."""

from .classification import classify_relay_error
from .delivery_log import DeliveryLog, DeliveryLogEntry
from .dispatcher import Dispatcher
from .message import InquiryCategory, InquiryMessage
from .pool import RateGovernor, RelayConnectionPool
from .ports import ConnectionFactory, RelayConnection
from .reporting import AttemptOutcome, DeliveryAttempt, DeliveryResult

__all__ = [
    "classify_relay_error",
    "DeliveryLog",
    "DeliveryLogEntry",
    "Dispatcher",
    "InquiryCategory",
    "InquiryMessage",
    "RateGovernor",
    "RelayConnectionPool",
    "ConnectionFactory",
    "RelayConnection",
    "AttemptOutcome",
    "DeliveryAttempt",
    "DeliveryResult",
]

"""Admission control: rate limiting before delivery."""

from .rate_limit import (
    AdmissionControl,
    AdmissionDecision,
    InMemoryWindowStore,
    RedisWindowStore,
    WindowPolicy,
    WindowResult,
    WindowStore,
    build_window_store,
    get_client_identifier,
)

__all__ = [
    "AdmissionControl",
    "AdmissionDecision",
    "InMemoryWindowStore",
    "RedisWindowStore",
    "WindowPolicy",
    "WindowResult",
    "WindowStore",
    "build_window_store",
    "get_client_identifier",
]

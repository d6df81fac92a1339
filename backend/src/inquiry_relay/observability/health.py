"""Health check utilities.

Reports process liveness, resource usage and the relay's verification state.
"""

import os
import resource
import sys
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..delivery.pool import RelayConnectionPool


class HealthStatus(str, Enum):
    """Health check status enum."""
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


@dataclass
class ComponentHealth:
    """Health status for a single component."""
    status: HealthStatus
    message: Optional[str] = None


def check_relay_health(pool: RelayConnectionPool) -> ComponentHealth:
    """Relay health from the last verification handshake.

    No network call is made: an unverified relay is degraded rather than
    unhealthy because the pool connects lazily on first send.
    """
    verification = pool.verification
    if verification.verified:
        return ComponentHealth(status=HealthStatus.HEALTHY, message="Relay verified")
    if verification.verified is None:
        return ComponentHealth(status=HealthStatus.DEGRADED, message="Relay not verified yet")
    return ComponentHealth(
        status=HealthStatus.UNHEALTHY,
        message=f"Relay verification failed: {verification.error}",
    )


def get_overall_health(components: Dict[str, ComponentHealth]) -> HealthStatus:
    """Determine overall health from component statuses.

    Args:
        components: Dictionary of component health statuses

    Returns:
        HealthStatus: Overall system health
    """
    if all(c.status == HealthStatus.HEALTHY for c in components.values()):
        return HealthStatus.HEALTHY

    if any(c.status == HealthStatus.UNHEALTHY for c in components.values()):
        return HealthStatus.UNHEALTHY

    return HealthStatus.DEGRADED


def process_usage(started_at: float) -> Dict[str, Any]:
    """Uptime and resource usage of the current process.

    Args:
        started_at: time.monotonic() value captured at startup
    """
    usage = resource.getrusage(resource.RUSAGE_SELF)
    # ru_maxrss is KiB on Linux, bytes on macOS
    max_rss_bytes = usage.ru_maxrss if sys.platform == "darwin" else usage.ru_maxrss * 1024
    return {
        "uptime_seconds": round(time.monotonic() - started_at, 3),
        "pid": os.getpid(),
        "memory": {"max_rss_bytes": max_rss_bytes},
        "cpu": {
            "user_seconds": round(usage.ru_utime, 3),
            "system_seconds": round(usage.ru_stime, 3),
        },
    }

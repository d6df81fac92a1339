"""Observability API endpoints.

Provides the liveness check and Prometheus metrics.
"""

from fastapi import APIRouter, Depends, Request, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from ..delivery.pool import RelayConnectionPool
from ..dependencies import get_relay_pool
from .health import check_relay_health, get_overall_health, process_usage

router = APIRouter(tags=["Observability"])


@router.get(
    "/metrics",
    summary="Prometheus metrics endpoint",
    include_in_schema=False,
)
def metrics():
    """Expose Prometheus metrics in text exposition format."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST
    )


@router.get(
    "/api/health",
    summary="Liveness check",
    description="Returns process uptime, resource usage and relay verification state",
)
def health_check(request: Request, pool: RelayConnectionPool = Depends(get_relay_pool)):
    """Report liveness.

    Always 200 while the process serves requests: a relay outage degrades
    delivery but does not make the process dead.
    """
    components = {"relay": check_relay_health(pool)}
    overall_status = get_overall_health(components)

    return {
        "status": overall_status.value,
        **process_usage(request.app.state.started_at),
        "pool": {
            "open_connections": pool.open_connections,
            "busy_slots": pool.busy_slots,
        },
        "components": {
            name: {"status": comp.status.value, "message": comp.message}
            for name, comp in components.items()
        },
    }

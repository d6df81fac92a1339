"""Inquiry API endpoints.

POST /api/send-email validates the submission, runs admission control, formats
the message and hands it to the dispatcher. Validation happens before
admission, so malformed requests never consume rate-limit budget.
"""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Request
from starlette.concurrency import run_in_threadpool

from ..admission.rate_limit import AdmissionControl, get_client_identifier
from ..config import Settings
from ..delivery.dispatcher import Dispatcher
from ..delivery.pool import RelayConnectionPool
from ..delivery.reporting import success_payload
from ..dependencies import (
    get_admission_control,
    get_app_settings,
    get_dispatcher,
    get_relay_pool,
)
from ..observability.logging_config import get_logger
from .formatter import format_inquiry
from .schemas import InquiryRequest, SendEmailResponse

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Inquiries"])


@router.post(
    "/send-email",
    response_model=SendEmailResponse,
    summary="Submit an inquiry",
    description="Validates, rate-limits and delivers an inquiry to the site owner's mailbox",
)
async def send_email(
    inquiry: InquiryRequest,
    request: Request,
    settings: Settings = Depends(get_app_settings),
    admission: AdmissionControl = Depends(get_admission_control),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    """Deliver one inquiry.

    Raises:
        RateLimitExceeded: Admission control rejected the request (429)
        DeliveryError: Relay delivery failed (500)
    """
    client_id = get_client_identifier(request, settings.TRUST_PROXY_HEADERS)
    # Redis-backed windows block, so the check runs in the threadpool
    await run_in_threadpool(admission.check, client_id)

    message = format_inquiry(inquiry, settings)
    logger.info(
        f"Accepted {message.category.value} from {client_id}",
        extra={"category": message.category.value},
    )

    result = await dispatcher.deliver(message)
    return success_payload(result)


@router.get(
    "/email-status",
    summary="Relay configuration",
    description="Reports relay, pool and rate-limit configuration (no secrets, no side effects)",
)
def email_status(
    settings: Settings = Depends(get_app_settings),
    admission: AdmissionControl = Depends(get_admission_control),
    pool: RelayConnectionPool = Depends(get_relay_pool),
    dispatcher: Dispatcher = Depends(get_dispatcher),
) -> Dict[str, Any]:
    verification = pool.verification
    return {
        "success": True,
        "relay": {
            "host": settings.SMTP_HOST,
            "port": settings.SMTP_PORT,
            "secure": settings.SMTP_SECURE,
            "user": settings.SMTP_USER,
            "destination": settings.destination_email,
            "passwordConfigured": bool(settings.SMTP_PASSWORD),
            "tlsRejectUnauthorized": settings.SMTP_TLS_REJECT_UNAUTHORIZED,
            "timeouts": {
                "connect": settings.SMTP_CONNECT_TIMEOUT,
                "greeting": settings.SMTP_GREETING_TIMEOUT,
                "socket": settings.SMTP_SOCKET_TIMEOUT,
            },
            "verified": verification.verified,
            "verifiedAt": verification.checked_at.isoformat() if verification.checked_at else None,
            "verificationError": verification.error,
        },
        "pool": pool.stats(),
        "delivery": {
            "maxRetries": dispatcher.max_retries,
            "backoffUnitSeconds": dispatcher.backoff_unit,
        },
        "rateLimits": admission.describe(),
    }

"""
Dispatcher - delivers one inquiry through the relay pool

Handles the complete delivery of a single message:
- Bounded attempt loop through the shared connection pool
- Exponential backoff between transient failures (2, 4, 8, ... units)
- Immediate abort on fatal failures (auth, permanent rejection)
- Delivery log entry on success
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, List, Optional

from ..config import Settings
from ..errors import DeliveryError, ExhaustedRetriesError
from ..observability.logging_config import get_logger
from ..observability.request_id import request_id_var
from ..observability.metrics import (
    deliveries_total,
    delivery_attempts_total,
    delivery_duration_seconds,
)
from .classification import classify_relay_error
from .delivery_log import DeliveryLog, DeliveryLogEntry
from .message import InquiryMessage
from .pool import RelayConnectionPool
from .reporting import AttemptOutcome, DeliveryAttempt, DeliveryResult, extract_relay_id

logger = get_logger(__name__)


class Dispatcher:
    """
    Delivers InquiryMessages with retry and exponential backoff.

    Attempts are strictly sequential for one message. Backoff sleeps suspend
    only the calling task; the pool slot is released before sleeping.

    Usage:
        dispatcher = Dispatcher(pool, DeliveryLog("logs/email_sent.log"))
        result = await dispatcher.deliver(message)
    """

    def __init__(
        self,
        pool: RelayConnectionPool,
        delivery_log: Optional[DeliveryLog] = None,
        max_retries: int = 3,
        backoff_unit: float = 1.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_retries < 1:
            raise ValueError("max_retries must be at least 1")
        self.pool = pool
        self.delivery_log = delivery_log
        self.max_retries = max_retries
        self.backoff_unit = backoff_unit
        self._sleep = sleep

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        pool: RelayConnectionPool,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> "Dispatcher":
        return cls(
            pool,
            delivery_log=DeliveryLog(settings.DELIVERY_LOG_PATH),
            max_retries=settings.DELIVERY_MAX_RETRIES,
            backoff_unit=settings.DELIVERY_BACKOFF_UNIT,
            sleep=sleep,
        )

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt `attempt` (1-indexed): unit * 2^attempt."""
        return self.backoff_unit * (2 ** attempt)

    async def deliver(self, message: InquiryMessage) -> DeliveryResult:
        """
        Deliver a message, retrying transient failures.

        Args:
            message: Formatted inquiry

        Returns:
            DeliveryResult for the successful attempt

        Raises:
            FatalDeliveryError: First fatal failure, no further attempts
            ExhaustedRetriesError: Every attempt failed transiently
        """
        category = message.category.value
        with delivery_duration_seconds.time():
            try:
                result = await self._attempt_all(message)
            except ExhaustedRetriesError:
                deliveries_total.labels(category=category, outcome="exhausted").inc()
                raise
            except DeliveryError:
                deliveries_total.labels(category=category, outcome="fatal").inc()
                raise
        deliveries_total.labels(category=category, outcome="success").inc()
        await self._record(message, result)
        return result

    async def _attempt_all(self, message: InquiryMessage) -> DeliveryResult:
        attempts: List[DeliveryAttempt] = []

        for attempt in range(1, self.max_retries + 1):
            try:
                response = await self.pool.with_connection(
                    lambda connection: connection.send(message)
                )
            except Exception as exc:
                error = classify_relay_error(exc)
                outcome = AttemptOutcome.TRANSIENT if error.transient else AttemptOutcome.FATAL
                attempts.append(DeliveryAttempt(attempt, outcome, error.kind, error.smtp_code))
                delivery_attempts_total.labels(outcome=outcome.value).inc()
                logger.warning(
                    f"Delivery attempt {attempt}/{self.max_retries} failed: {error.message}",
                    extra={
                        "category": message.category.value,
                        "attempt": attempt,
                        "max_retries": self.max_retries,
                        "error_kind": error.kind.value,
                        "smtp_code": error.smtp_code,
                    }
                )

                if not error.transient:
                    error.attempts = attempt
                    if error is exc:
                        raise
                    raise error from exc

                if attempt == self.max_retries:
                    logger.error(
                        f"Delivery failed after {attempt} attempts",
                        extra={"category": message.category.value, "error_kind": error.kind.value},
                    )
                    raise ExhaustedRetriesError(attempt, error) from exc

                delay = self.backoff_delay(attempt)
                logger.info(
                    f"Retrying delivery in {delay}s",
                    extra={"attempt": attempt, "delay_seconds": delay},
                )
                await self._sleep(delay)
            else:
                attempts.append(DeliveryAttempt(attempt, AttemptOutcome.SUCCESS))
                delivery_attempts_total.labels(outcome=AttemptOutcome.SUCCESS.value).inc()
                relay_id = extract_relay_id(response) or message.message_id
                logger.info(
                    f"Delivered inquiry on attempt {attempt}",
                    extra={
                        "category": message.category.value,
                        "attempt": attempt,
                        "relay_id": relay_id,
                    }
                )
                return DeliveryResult(
                    delivered_at=datetime.now(timezone.utc),
                    relay_id=relay_id,
                    attempts=tuple(attempts),
                )

        # max_retries >= 1, so the loop always returns or raises
        raise AssertionError("unreachable")

    async def _record(self, message: InquiryMessage, result: DeliveryResult) -> None:
        if self.delivery_log is None:
            return
        entry = DeliveryLogEntry(
            timestamp=result.delivered_at,
            destination=message.to_address,
            subject=message.subject,
            category=message.category.value,
            relay_id=result.relay_id,
            attempts=len(result.attempts),
            request_id=request_id_var.get(),
        )
        try:
            await self.delivery_log.record(entry)
        except OSError as e:
            # Message is already with the relay; a log failure must not fail the request
            logger.error(f"Failed to write delivery log: {e}", exc_info=True)

"""Relay connection pool.

A bounded set of persistent relay sessions shared by every request task:

- at most `max_connections` slots, each holding zero or one open connection
- a connection is retired after carrying `max_messages` messages
- a per-slot rate governor allows at most `rate_limit` sends per `rate_period`
- connections are opened lazily on first use and replaced after any error

Slots circulate through an asyncio.Queue, so waiting for capacity suspends only
the waiting task and is abandoned immediately when that task is cancelled.
"""

import asyncio
import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional, TypeVar

from ..config import Settings
from ..observability.logging_config import get_logger
from ..observability.metrics import relay_connections_open, relay_connections_retired_total
from .ports import ConnectionFactory, RelayConnection

logger = get_logger(__name__)

T = TypeVar("T")


class RateGovernor:
    """Sliding-window governor: at most `limit` sends per `period` seconds."""

    def __init__(
        self,
        limit: int,
        period: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.limit = limit
        self.period = period
        self._clock = clock
        self._sleep = sleep
        self._sent: deque[float] = deque()

    def _expire(self, now: float) -> None:
        while self._sent and self._sent[0] <= now - self.period:
            self._sent.popleft()

    async def wait(self) -> None:
        """Suspend until the window admits another send."""
        while True:
            now = self._clock()
            self._expire(now)
            if len(self._sent) < self.limit:
                return
            delay = self._sent[0] + self.period - now
            logger.debug(f"Relay rate governor pausing {delay:.2f}s")
            await self._sleep(delay)

    def record(self) -> None:
        self._sent.append(self._clock())


@dataclass
class _Slot:
    index: int
    governor: RateGovernor
    connection: Optional[RelayConnection] = None
    messages_on_connection: int = 0
    messages_sent: int = 0


@dataclass
class VerificationStatus:
    """Result of the last startup handshake with the relay."""
    verified: Optional[bool] = None
    checked_at: Optional[datetime] = None
    error: Optional[str] = None


class RelayConnectionPool:
    """Bounded pool of relay connections.

    Usage:
        pool = RelayConnectionPool(factory, max_connections=1, max_messages=100)
        response = await pool.with_connection(lambda conn: conn.send(message))
    """

    def __init__(
        self,
        connection_factory: ConnectionFactory,
        max_connections: int = 1,
        max_messages: Optional[int] = 100,
        rate_limit: int = 5,
        rate_period: float = 20.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_connections < 1:
            raise ValueError("max_connections must be at least 1")
        if max_messages is not None and max_messages < 1:
            raise ValueError("max_messages must be at least 1 or None (unbounded)")

        self._factory = connection_factory
        self.max_connections = max_connections
        self.max_messages = max_messages
        self.rate_limit = rate_limit
        self.rate_period = rate_period
        self.verification = VerificationStatus()

        self._slots = [
            _Slot(index=i, governor=RateGovernor(rate_limit, rate_period, clock, sleep))
            for i in range(max_connections)
        ]
        self._available: asyncio.Queue = asyncio.Queue()
        for slot in self._slots:
            self._available.put_nowait(slot)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        connection_factory: ConnectionFactory,
    ) -> "RelayConnectionPool":
        return cls(
            connection_factory,
            max_connections=settings.SMTP_POOL_MAX_CONNECTIONS,
            max_messages=settings.pool_max_messages,
            rate_limit=settings.SMTP_RATE_LIMIT,
            rate_period=settings.SMTP_RATE_DELTA,
        )

    async def with_connection(self, fn: Callable[[RelayConnection], Awaitable[T]]) -> T:
        """Run `fn` with a pooled connection; one call carries one message.

        The slot is released on every exit path. If the caller is cancelled
        while `fn` is in flight, the send is left to finish in the background,
        its result is dropped, and the slot returns to the pool only once the
        send completes, so the connection bound holds.

        Raises:
            Whatever opening the connection or `fn` raises, unchanged
        """
        slot = await self._available.get()
        try:
            await slot.governor.wait()
            connection = await self._checkout(slot)
        except BaseException:
            self._release(slot)
            raise

        task = asyncio.ensure_future(self._use(slot, connection, fn))
        try:
            return await asyncio.shield(task)
        finally:
            if task.done():
                self._release(slot)
            else:
                logger.warning(
                    f"Caller cancelled mid-send on slot {slot.index}; "
                    "slot is released when the send finishes"
                )
                task.add_done_callback(lambda t: self._release_after(slot, t))

    async def _checkout(self, slot: _Slot) -> RelayConnection:
        if slot.connection is not None and not slot.connection.is_connected:
            await self._discard(slot)
        if slot.connection is None:
            slot.connection = await self._factory()
            slot.messages_on_connection = 0
            relay_connections_open.inc()
            logger.debug(f"Opened relay connection on slot {slot.index}")
        return slot.connection

    async def _use(
        self,
        slot: _Slot,
        connection: RelayConnection,
        fn: Callable[[RelayConnection], Awaitable[T]],
    ) -> T:
        slot.governor.record()
        try:
            result = await fn(connection)
        except BaseException:
            await self._discard(slot)
            raise

        slot.messages_on_connection += 1
        slot.messages_sent += 1
        if self.max_messages is not None and slot.messages_on_connection >= self.max_messages:
            logger.info(
                f"Retiring relay connection on slot {slot.index} "
                f"after {slot.messages_on_connection} messages"
            )
            relay_connections_retired_total.inc()
            await self._discard(slot)
        return result

    async def _discard(self, slot: _Slot) -> None:
        connection, slot.connection = slot.connection, None
        slot.messages_on_connection = 0
        if connection is not None:
            relay_connections_open.dec()
            await connection.close()

    def _release(self, slot: _Slot) -> None:
        self._available.put_nowait(slot)

    def _release_after(self, slot: _Slot, task: asyncio.Future) -> None:
        if not task.cancelled() and task.exception() is not None:
            logger.warning(f"Background send on slot {slot.index} failed: {task.exception()}")
        self._release(slot)

    async def verify(self) -> bool:
        """Open a connection and round-trip a NOOP.

        Failure is logged and recorded, never raised: the pool reconnects
        lazily on first real use.
        """
        slot = await self._available.get()
        try:
            connection = await self._checkout(slot)
            await connection.noop()
        except Exception as e:
            await self._discard(slot)
            self.verification = VerificationStatus(
                verified=False, checked_at=datetime.now(timezone.utc), error=str(e)
            )
            logger.warning(f"Relay verification failed, will retry on first send: {e}")
            return False
        finally:
            self._release(slot)

        self.verification = VerificationStatus(
            verified=True, checked_at=datetime.now(timezone.utc)
        )
        logger.info("Relay verification succeeded")
        return True

    async def close(self) -> None:
        """Close every open connection (process shutdown)."""
        for slot in self._slots:
            await self._discard(slot)

    @property
    def open_connections(self) -> int:
        return sum(1 for slot in self._slots if slot.connection is not None)

    @property
    def busy_slots(self) -> int:
        return self.max_connections - self._available.qsize()

    def stats(self) -> Dict[str, Any]:
        return {
            "max_connections": self.max_connections,
            "max_messages": self.max_messages,
            "rate_limit": self.rate_limit,
            "rate_period_seconds": self.rate_period,
            "open_connections": self.open_connections,
            "busy_slots": self.busy_slots,
            "slots": [
                {
                    "index": slot.index,
                    "connected": slot.connection is not None,
                    "messages_on_connection": slot.messages_on_connection,
                    "messages_sent": slot.messages_sent,
                }
                for slot in self._slots
            ],
        }

"""Shared pytest fixtures for inquiry relay tests.

Provides reusable test fixtures for:
- Settings isolated from the host environment and .env files
- A scriptable fake relay plugged in through the ConnectionFactory seam
- A manual clock and a recording sleep so backoff and windows run instantly
- A TestClient whose lifespan wires the fake relay into the app

Usage:
    def test_send(client, relay, valid_payload):
        response = client.post("/api/send-email", json=valid_payload)
        assert relay.sent
"""

import asyncio
import sys
from pathlib import Path
from typing import Callable, List, Optional

import pytest
from fastapi.testclient import TestClient

backend_src = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(backend_src))

from inquiry_relay.admission.rate_limit import InMemoryWindowStore
from inquiry_relay.config import Settings
from inquiry_relay.delivery.message import InquiryCategory, InquiryMessage
from inquiry_relay.delivery.ports import RelayConnection
from inquiry_relay.main import create_app


class ManualClock:
    """Monotonic clock advanced only by the test."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class RecordingSleep:
    """Async sleep replacement that records delays and returns at once.

    When given a clock, each sleep advances it by the requested delay.
    """

    def __init__(self, clock: Optional[ManualClock] = None):
        self.clock = clock
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.clock is not None:
            self.clock.advance(delay)
        await asyncio.sleep(0)


class FakeConnection(RelayConnection):
    def __init__(self, relay: "FakeRelay", index: int):
        self.relay = relay
        self.index = index
        self.sent: List[InquiryMessage] = []
        self.noops = 0
        self.closed = False

    async def send(self, message: InquiryMessage) -> str:
        return await self.relay.handle_send(self, message)

    async def noop(self) -> None:
        self.noops += 1

    async def close(self) -> None:
        self.closed = True

    @property
    def is_connected(self) -> bool:
        return not self.closed


class FakeRelay:
    """Scriptable relay.

    Attributes:
        outcomes: Exceptions raised by successive sends; None entries succeed
        default_error: Factory for the exception raised once outcomes run out
        connect_errors: Exceptions raised by successive connection attempts
        gate: When set to an asyncio.Event, sends block until it is set
    """

    def __init__(self):
        self.outcomes: List[Optional[BaseException]] = []
        self.default_error: Optional[Callable[[], BaseException]] = None
        self.connect_errors: List[BaseException] = []
        self.gate: Optional[asyncio.Event] = None
        self.connections: List[FakeConnection] = []
        self.sent: List[InquiryMessage] = []
        self.send_calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def connect(self) -> FakeConnection:
        if self.connect_errors:
            raise self.connect_errors.pop(0)
        connection = FakeConnection(self, len(self.connections))
        self.connections.append(connection)
        return connection

    async def handle_send(self, connection: FakeConnection, message: InquiryMessage) -> str:
        self.send_calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.gate is not None:
                await self.gate.wait()
            else:
                await asyncio.sleep(0)

            if self.outcomes:
                error = self.outcomes.pop(0)
            elif self.default_error is not None:
                error = self.default_error()
            else:
                error = None
            if error is not None:
                raise error

            connection.sent.append(message)
            self.sent.append(message)
            return f"2.0.0 Ok: queued as FAKE{len(self.sent):04d}"
        finally:
            self.in_flight -= 1


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def clocked_sleep(clock) -> RecordingSleep:
    """Recording sleep that advances the manual clock."""
    return RecordingSleep(clock)


@pytest.fixture
def relay() -> FakeRelay:
    return FakeRelay()


@pytest.fixture
def message() -> InquiryMessage:
    """A formatted inquiry ready for the relay."""
    return InquiryMessage(
        to_address="owner@example.com",
        from_address="relay@example.com",
        subject="New Inquiry from Website",
        text_body="Hello",
        html_body="<p>Hello</p>",
        category=InquiryCategory.GENERAL,
        reply_to="jane@example.org",
    )


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings with test credentials, ignoring any .env file."""
    return Settings(
        _env_file=None,
        SMTP_HOST="smtp.test.local",
        SMTP_PORT=465,
        SMTP_USER="relay@example.com",
        SMTP_PASSWORD="super-secret-password",
        OWNER_EMAIL="owner@example.com",
        DELIVERY_LOG_PATH=str(tmp_path / "logs" / "email_sent.log"),
        RATE_LIMIT_REDIS_URL=None,
        LOG_JSON=False,
        ENVIRONMENT="test",
    )


@pytest.fixture
def valid_payload() -> dict:
    return {
        "name": "Jane Doe",
        "email": "jane@example.org",
        "phone": "+1 (555) 010-2030",
        "message": "Please send a quote.",
        "type": "product_inquiry",
        "model": "X200",
        "quantity": 50,
        "shippingTerm": "FOB",
        "address": "1 Harbour Road",
    }


@pytest.fixture
def app_factory(settings, relay, sleeps):
    """Build an app wired to the fake relay, optionally with setting overrides."""

    def build(**overrides):
        app_settings = settings.model_copy(update=overrides) if overrides else settings
        return create_app(
            app_settings,
            connection_factory=relay.connect,
            window_store=InMemoryWindowStore(),
            sleep=sleeps,
        )

    return build


@pytest.fixture
def client(app_factory):
    """TestClient with lifespan (pool verification) running."""
    with TestClient(app_factory()) as test_client:
        yield test_client

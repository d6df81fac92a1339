"""aiosmtplib adapter for the RelayConnection port.

Opens one authenticated SMTP session with three independent time limits:

- connect timeout: TCP connect, implicit TLS and the server banner
- greeting timeout: EHLO, STARTTLS and AUTH handshake
- socket timeout: every later command on the session

A relay that advertises no usable AUTH mechanism while a credential is
configured is a configuration error and fails as an authentication error.
"""

import asyncio
import ssl
from typing import Optional

import aiosmtplib

from ..config import Settings
from ..errors import ErrorKind, FatalDeliveryError
from ..observability.logging_config import get_logger
from .message import InquiryMessage
from .ports import ConnectionFactory, RelayConnection

logger = get_logger(__name__)


def build_tls_context(verify: bool = True) -> ssl.SSLContext:
    """Create the TLS context used for the relay.

    Args:
        verify: Verify the relay certificate and hostname
    """
    context = ssl.create_default_context()
    if not verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


class SMTPRelayConnection(RelayConnection):
    """RelayConnection backed by an aiosmtplib.SMTP client."""

    def __init__(
        self,
        hostname: str,
        port: int,
        use_tls: bool,
        username: Optional[str] = None,
        password: Optional[str] = None,
        connect_timeout: float = 10.0,
        greeting_timeout: float = 10.0,
        socket_timeout: float = 30.0,
        tls_context: Optional[ssl.SSLContext] = None,
    ):
        self.username = username
        self.password = password
        self.connect_timeout = connect_timeout
        self.greeting_timeout = greeting_timeout
        self.use_tls = use_tls
        self.tls_context = tls_context
        # STARTTLS runs inside the handshake so it falls under the greeting timeout
        self.smtp = aiosmtplib.SMTP(
            hostname=hostname,
            port=port,
            use_tls=use_tls,
            start_tls=False,
            timeout=socket_timeout,
            tls_context=tls_context,
        )

    async def open(self) -> "SMTPRelayConnection":
        """Connect and authenticate, closing the socket on any failure."""
        try:
            await asyncio.wait_for(self.smtp.connect(), self.connect_timeout)
            await asyncio.wait_for(self._handshake(), self.greeting_timeout)
        except BaseException:
            self.smtp.close()
            raise
        return self

    async def _handshake(self) -> None:
        await self.smtp.ehlo()
        if not self.use_tls and self.smtp.supports_extension("starttls"):
            await self.smtp.starttls(tls_context=self.tls_context)
        if self.username:
            await self._login()

    async def _login(self) -> None:
        try:
            await self.smtp.login(self.username, self.password or "")
        except (
            aiosmtplib.SMTPResponseException,
            aiosmtplib.SMTPServerDisconnected,
            aiosmtplib.SMTPTimeoutError,
        ):
            raise
        except aiosmtplib.SMTPException as e:
            # Relay offers no AUTH mechanism we can use
            raise FatalDeliveryError(
                f"Relay authentication unavailable: {e}",
                kind=ErrorKind.AUTHENTICATION,
            ) from e

    async def send(self, message: InquiryMessage) -> str:
        _, response = await self.smtp.send_message(
            message.to_mime(),
            sender=message.from_address,
            recipients=[message.to_address],
        )
        return response

    async def noop(self) -> None:
        await self.smtp.noop()

    async def close(self) -> None:
        if not self.smtp.is_connected:
            return
        try:
            await self.smtp.quit()
        except (aiosmtplib.SMTPException, OSError, asyncio.TimeoutError) as e:
            logger.debug(f"Relay QUIT failed, dropping socket: {e}")
            self.smtp.close()

    @property
    def is_connected(self) -> bool:
        return self.smtp.is_connected


def smtp_connection_factory(settings: Settings) -> ConnectionFactory:
    """Build a factory that opens relay sessions from settings."""
    if not settings.SMTP_TLS_REJECT_UNAUTHORIZED:
        logger.warning(
            "SMTP_TLS_REJECT_UNAUTHORIZED is off: relay certificates are NOT verified"
        )
    tls_context = build_tls_context(verify=settings.SMTP_TLS_REJECT_UNAUTHORIZED)

    async def open_connection() -> RelayConnection:
        connection = SMTPRelayConnection(
            hostname=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            use_tls=settings.SMTP_SECURE,
            username=settings.SMTP_USER,
            password=settings.SMTP_PASSWORD,
            connect_timeout=settings.SMTP_CONNECT_TIMEOUT,
            greeting_timeout=settings.SMTP_GREETING_TIMEOUT,
            socket_timeout=settings.SMTP_SOCKET_TIMEOUT,
            tls_context=tls_context,
        )
        return await connection.open()

    return open_connection

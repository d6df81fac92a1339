"""Classification of relay failures.

Maps aiosmtplib exceptions and SMTP reply codes to the closed ErrorKind set and
decides whether a failure is worth retrying. This is the only place that
inspects relay errors; the dispatcher only sees TransientDeliveryError or
FatalDeliveryError.
"""

import asyncio
import ssl
from typing import Optional, Union

import aiosmtplib

from ..errors import ErrorKind, FatalDeliveryError, TransientDeliveryError

ClassifiedError = Union[TransientDeliveryError, FatalDeliveryError]

# Reply codes that mean the credential or auth setup is wrong
AUTHENTICATION_CODES = frozenset({530, 534, 535, 538})


def kind_for_code(code: int) -> tuple[ErrorKind, bool]:
    """Classify an SMTP reply code.

    Args:
        code: Three-digit SMTP reply code

    Returns:
        tuple: (kind, transient)
    """
    if code in AUTHENTICATION_CODES:
        return ErrorKind.AUTHENTICATION, False
    if 400 <= code < 500:
        return ErrorKind.RELAY_REJECTED, True
    return ErrorKind.RELAY_REJECTED, False


def _build(message: str, kind: ErrorKind, transient: bool, code: Optional[int] = None) -> ClassifiedError:
    error_class = TransientDeliveryError if transient else FatalDeliveryError
    return error_class(message, kind=kind, smtp_code=code)


def classify_relay_error(exc: BaseException) -> ClassifiedError:
    """Turn a relay exception into a transient or fatal delivery error.

    Order matters: aiosmtplib timeout errors also derive from its connect error,
    and response errors carrying a code are checked before the generic
    connection errors they may also inherit from.

    Args:
        exc: Exception raised while connecting to or talking to the relay

    Returns:
        TransientDeliveryError or FatalDeliveryError
    """
    if isinstance(exc, (TransientDeliveryError, FatalDeliveryError)):
        return exc

    if isinstance(exc, (aiosmtplib.SMTPTimeoutError, asyncio.TimeoutError, TimeoutError)):
        return _build(f"Relay timed out: {exc}", ErrorKind.TIMEOUT, True)

    if isinstance(exc, aiosmtplib.SMTPAuthenticationError):
        return _build(
            f"Relay authentication failed: {exc.message}",
            ErrorKind.AUTHENTICATION,
            False,
            exc.code,
        )

    if isinstance(exc, aiosmtplib.SMTPResponseException):
        kind, transient = kind_for_code(exc.code)
        return _build(
            f"Relay replied {exc.code}: {exc.message}", kind, transient, exc.code
        )

    if isinstance(exc, aiosmtplib.SMTPRecipientsRefused):
        if exc.recipients:
            first = exc.recipients[0]
            kind, transient = kind_for_code(first.code)
            return _build(
                f"Relay refused recipient {first.recipient}: {first.code} {first.message}",
                kind,
                transient,
                first.code,
            )
        return _build("Relay refused all recipients", ErrorKind.RELAY_REJECTED, False)

    if isinstance(exc, aiosmtplib.SMTPNotSupported):
        return _build(f"Relay does not support required feature: {exc}", ErrorKind.RELAY_REJECTED, False)

    # aiosmtplib wraps TLS failures in SMTPConnectError
    if isinstance(exc, ssl.SSLCertVerificationError) or isinstance(
        exc.__cause__, ssl.SSLCertVerificationError
    ):
        return _build(f"Relay TLS certificate rejected: {exc}", ErrorKind.NETWORK, False)

    if isinstance(exc, (aiosmtplib.SMTPServerDisconnected, aiosmtplib.SMTPConnectError, ConnectionError, OSError)):
        return _build(f"Relay connection failed: {exc}", ErrorKind.NETWORK, True)

    if isinstance(exc, aiosmtplib.SMTPException):
        return _build(f"Relay error: {exc}", ErrorKind.NETWORK, True)

    return _build(f"Unexpected delivery error: {exc!r}", ErrorKind.UNKNOWN, False)

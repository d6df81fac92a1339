"""Unit tests for relay error classification."""

import asyncio
import ssl

import aiosmtplib
import pytest

from inquiry_relay.delivery.classification import classify_relay_error, kind_for_code
from inquiry_relay.errors import ErrorKind, FatalDeliveryError, TransientDeliveryError


class TestKindForCode:
    """Test SMTP reply code mapping."""

    @pytest.mark.parametrize("code", [421, 450, 451, 452])
    def test_4xx_is_transient_rejection(self, code):
        assert kind_for_code(code) == (ErrorKind.RELAY_REJECTED, True)

    @pytest.mark.parametrize("code", [550, 552, 553, 554])
    def test_5xx_is_fatal_rejection(self, code):
        assert kind_for_code(code) == (ErrorKind.RELAY_REJECTED, False)

    @pytest.mark.parametrize("code", [530, 534, 535, 538])
    def test_auth_codes_are_fatal_authentication(self, code):
        assert kind_for_code(code) == (ErrorKind.AUTHENTICATION, False)


class TestClassifyRelayError:
    """Test exception classification."""

    def test_authentication_failure_is_fatal(self):
        error = classify_relay_error(aiosmtplib.SMTPAuthenticationError(535, "5.7.8 bad credentials"))

        assert isinstance(error, FatalDeliveryError)
        assert error.kind == ErrorKind.AUTHENTICATION
        assert error.smtp_code == 535

    def test_aiosmtplib_timeout_is_transient(self):
        error = classify_relay_error(aiosmtplib.SMTPTimeoutError("Timed out"))

        assert isinstance(error, TransientDeliveryError)
        assert error.kind == ErrorKind.TIMEOUT

    def test_asyncio_timeout_is_transient(self):
        error = classify_relay_error(asyncio.TimeoutError())
        assert error.transient
        assert error.kind == ErrorKind.TIMEOUT

    def test_connect_timeout_is_timeout_not_network(self):
        error = classify_relay_error(aiosmtplib.SMTPConnectTimeoutError("connect timed out"))
        assert error.kind == ErrorKind.TIMEOUT

    def test_temporary_rejection_is_transient(self):
        error = classify_relay_error(aiosmtplib.SMTPResponseException(451, "4.7.1 Try again later"))

        assert error.transient
        assert error.kind == ErrorKind.RELAY_REJECTED
        assert error.smtp_code == 451

    def test_permanent_rejection_is_fatal(self):
        error = classify_relay_error(aiosmtplib.SMTPDataError(554, "5.7.1 Message rejected as spam"))

        assert not error.transient
        assert error.kind == ErrorKind.RELAY_REJECTED
        assert error.smtp_code == 554

    def test_refused_recipient_uses_its_code(self):
        refused = aiosmtplib.SMTPRecipientRefused(550, "5.1.1 No such user", "owner@example.com")
        error = classify_relay_error(aiosmtplib.SMTPRecipientsRefused([refused]))

        assert not error.transient
        assert error.smtp_code == 550

    def test_disconnect_is_transient_network(self):
        error = classify_relay_error(aiosmtplib.SMTPServerDisconnected("Connection lost"))

        assert error.transient
        assert error.kind == ErrorKind.NETWORK

    def test_connection_refused_is_transient_network(self):
        error = classify_relay_error(ConnectionRefusedError(111, "Connection refused"))

        assert error.transient
        assert error.kind == ErrorKind.NETWORK

    def test_bad_certificate_is_fatal_network(self):
        exc = aiosmtplib.SMTPConnectError("Error connecting to relay")
        exc.__cause__ = ssl.SSLCertVerificationError("certificate verify failed")

        error = classify_relay_error(exc)

        assert not error.transient
        assert error.kind == ErrorKind.NETWORK

    def test_unsupported_feature_is_fatal(self):
        error = classify_relay_error(aiosmtplib.SMTPNotSupported("SMTP AUTH extension not supported"))
        assert not error.transient
        assert error.kind == ErrorKind.RELAY_REJECTED

    def test_unknown_exception_is_fatal_unknown(self):
        error = classify_relay_error(ValueError("boom"))

        assert isinstance(error, FatalDeliveryError)
        assert error.kind == ErrorKind.UNKNOWN

    def test_missing_auth_mechanism_stays_fatal_authentication(self):
        unavailable = FatalDeliveryError(
            "Relay authentication unavailable: No suitable authentication method found.",
            kind=ErrorKind.AUTHENTICATION,
        )

        error = classify_relay_error(unavailable)

        assert not error.transient
        assert error.kind == ErrorKind.AUTHENTICATION

    def test_bare_smtp_exception_is_transient_network(self):
        error = classify_relay_error(aiosmtplib.SMTPException("Connection reset mid-command"))
        assert error.transient
        assert error.kind == ErrorKind.NETWORK

    def test_classified_errors_pass_through(self):
        classified = FatalDeliveryError("no destination", kind=ErrorKind.UNKNOWN)
        assert classify_relay_error(classified) is classified

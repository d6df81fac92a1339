"""Unit tests for delivery outcome reporting and the delivery log."""

import json
from datetime import datetime, timezone

import pytest

from inquiry_relay.delivery.delivery_log import DeliveryLog, DeliveryLogEntry
from inquiry_relay.delivery.reporting import (
    FAILURE_MESSAGES,
    AttemptOutcome,
    DeliveryAttempt,
    DeliveryResult,
    extract_relay_id,
    failure_payload,
    success_payload,
)
from inquiry_relay.errors import (
    ErrorKind,
    ExhaustedRetriesError,
    FatalDeliveryError,
    TransientDeliveryError,
)


class TestExtractRelayId:

    @pytest.mark.parametrize(
        "response, expected",
        [
            ("2.0.0 Ok: queued as 4Xyz12AbC", "4Xyz12AbC"),
            ("OK queued as <abc-123>", "abc-123"),
            ("2.0.0 Ok", None),
            (None, None),
        ],
    )
    def test_extract(self, response, expected):
        assert extract_relay_id(response) == expected


class TestPayloads:
    """Test HTTP payloads built from outcomes."""

    def test_success_payload(self):
        result = DeliveryResult(
            delivered_at=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
            relay_id="4Xyz",
            attempts=(DeliveryAttempt(1, AttemptOutcome.SUCCESS),),
        )

        assert success_payload(result) == {
            "success": True,
            "message": "Email sent successfully",
            "timestamp": "2026-03-01T12:00:00+00:00",
            "messageId": "4Xyz",
        }

    def test_every_kind_has_distinct_message(self):
        messages = [FAILURE_MESSAGES[kind] for kind in ErrorKind]
        assert len(set(messages)) == len(ErrorKind)

    def test_failure_payload_uses_kind_text(self):
        error = FatalDeliveryError("535 5.7.8 bad credentials", kind=ErrorKind.AUTHENTICATION, smtp_code=535)
        error.attempts = 1

        payload = failure_payload(error)

        assert payload == {
            "success": False,
            "error": "authentication",
            "message": FAILURE_MESSAGES[ErrorKind.AUTHENTICATION],
            "attempts": 1,
        }
        # Relay detail stays in logs
        assert "5.7.8" not in payload["message"]

    def test_exhausted_failure_reports_last_kind(self):
        last = TransientDeliveryError("timed out", kind=ErrorKind.TIMEOUT)
        payload = failure_payload(ExhaustedRetriesError(3, last))

        assert payload["error"] == "timeout"
        assert payload["attempts"] == 3


class TestDeliveryLog:
    """Test the append-only delivery log."""

    def _entry(self, subject="New Inquiry from Website"):
        return DeliveryLogEntry(
            timestamp=datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc),
            destination="owner@example.com",
            subject=subject,
            category="general",
            relay_id="4Xyz",
        )

    def test_append_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "logs" / "email_sent.log"

        DeliveryLog(path).append(self._entry())

        assert path.exists()

    def test_entries_appended_one_per_line(self, tmp_path):
        path = tmp_path / "email_sent.log"
        delivery_log = DeliveryLog(path)

        delivery_log.append(self._entry("First"))
        delivery_log.append(self._entry("Second"))

        lines = path.read_text(encoding="utf-8").splitlines()
        assert [json.loads(line)["subject"] for line in lines] == ["First", "Second"]
        assert json.loads(lines[0])["timestamp"] == "2026-03-01T12:00:00+00:00"

    @pytest.mark.asyncio
    async def test_record_writes_off_loop(self, tmp_path):
        path = tmp_path / "email_sent.log"

        await DeliveryLog(path).record(self._entry("Ünïcode"))

        assert json.loads(path.read_text(encoding="utf-8"))["subject"] == "Ünïcode"

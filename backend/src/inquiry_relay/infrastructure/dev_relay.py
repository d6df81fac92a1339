"""Local SMTP relay for development.

aiosmtpd handler that accepts inquiry emails instead of forwarding them, so
the API can be exercised end to end without a real mailbox. A fixed reply can
be configured to exercise the dispatcher's retry and fatal paths:

- '451 ...' makes every delivery attempt transient (retried with backoff)
- '550 ...' makes delivery fail immediately
"""

import logging
import re
from collections import deque
from dataclasses import dataclass
from email import message_from_bytes, policy
from typing import Deque, List, Optional

from aiosmtpd.smtp import Envelope, Session, SMTP

logger = logging.getLogger(__name__)

REPLY_PATTERN = re.compile(r"^[245]\d\d( .*)?$")


@dataclass(frozen=True)
class ReceivedMessage:
    """Envelope metadata of a message accepted by the dev relay."""
    mail_from: str
    rcpt_tos: List[str]
    subject: str
    message_id: str
    size: int


class DevRelayHandler:
    """Accepts every message and keeps the most recent ones in memory.

    Args:
        simulated_reply: Full SMTP reply (e.g. '451 Try again later') returned
            for every DATA command instead of accepting the message
        keep: Number of recent messages retained
    """

    def __init__(self, simulated_reply: Optional[str] = None, keep: int = 50):
        if simulated_reply and not REPLY_PATTERN.match(simulated_reply):
            raise ValueError(f"Invalid SMTP reply: {simulated_reply!r}")
        self.simulated_reply = simulated_reply or None
        self.received: Deque[ReceivedMessage] = deque(maxlen=keep)
        self._sequence = 0

    async def handle_DATA(
        self,
        server: SMTP,
        session: Session,
        envelope: Envelope,
    ) -> str:
        """Handle email DATA command.

        Returns:
            str: '250 Message accepted: queued as <id>' or the simulated reply
        """
        if not envelope.rcpt_tos:
            logger.warning("Email received with no recipients")
            return '550 No valid recipients'

        content = envelope.content or b""
        if isinstance(content, str):
            content = content.encode("utf-8")
        msg = message_from_bytes(content, policy=policy.default)

        logger.info(
            f"Received email: from={envelope.mail_from}, to={envelope.rcpt_tos[0]}, "
            f"subject={msg.get('Subject', '')!r}, size={len(content)} bytes"
        )

        if self.simulated_reply:
            logger.warning(f"Simulating relay reply: {self.simulated_reply}")
            return self.simulated_reply

        self._sequence += 1
        self.received.append(
            ReceivedMessage(
                mail_from=envelope.mail_from or "",
                rcpt_tos=list(envelope.rcpt_tos),
                subject=str(msg.get("Subject", "")),
                message_id=str(msg.get("Message-ID", "")),
                size=len(content),
            )
        )
        return f'250 Message accepted: queued as DEV{self._sequence:06d}'

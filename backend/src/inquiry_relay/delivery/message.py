"""Inquiry message model.

An InquiryMessage is built once per admitted request and handed to the
dispatcher; it is never mutated and never persisted.
"""

from dataclasses import dataclass, field
from email.message import EmailMessage
from email.utils import formataddr, formatdate, make_msgid
from enum import Enum
from typing import Optional


class InquiryCategory(str, Enum):
    """Closed set of inquiry categories (logging and subject selection only)."""
    PRODUCT = "product_inquiry"
    BANNER = "banner_inquiry"
    FOOTER = "footer_inquiry"
    GENERAL = "general"

    @classmethod
    def from_type(cls, value: Optional[str]) -> "InquiryCategory":
        """Map a submitted `type` field to a category, defaulting to GENERAL."""
        try:
            return cls(value)
        except ValueError:
            return cls.GENERAL


def _domain_of(address: str) -> Optional[str]:
    _, _, domain = address.rpartition("@")
    return domain or None


@dataclass(frozen=True)
class InquiryMessage:
    """One formatted notification ready for the relay.

    Attributes:
        to_address: Destination mailbox (fixed at startup)
        from_address: Envelope and header sender (the relay login)
        from_name: Display name of the sender
        subject: Subject line
        text_body: Plain-text body
        html_body: HTML body
        category: Inquiry category
        reply_to: Submitter address, so replies reach the customer
        message_id: RFC 5322 Message-ID, generated when not supplied
    """
    to_address: str
    from_address: str
    subject: str
    text_body: str
    html_body: str
    category: InquiryCategory = InquiryCategory.GENERAL
    from_name: str = "Website Inquiry"
    reply_to: Optional[str] = None
    message_id: str = field(default="")

    def __post_init__(self):
        if not self.message_id:
            object.__setattr__(
                self, "message_id", make_msgid(domain=_domain_of(self.from_address))
            )

    def to_mime(self) -> EmailMessage:
        """Render the message as a multipart/alternative MIME message."""
        mime = EmailMessage()
        mime["From"] = formataddr((self.from_name, self.from_address))
        mime["To"] = self.to_address
        mime["Subject"] = self.subject
        mime["Date"] = formatdate(localtime=True)
        mime["Message-ID"] = self.message_id
        if self.reply_to:
            mime["Reply-To"] = self.reply_to
        mime.set_content(self.text_body)
        mime.add_alternative(self.html_body, subtype="html")
        return mime

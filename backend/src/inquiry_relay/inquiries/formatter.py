"""Inquiry message formatting.

Builds the subject, plain-text and HTML bodies for each inquiry category.
Submitted values are HTML-escaped in the rich body; missing optional values
render as "Not provided".
"""

from html import escape
from typing import List, Optional, Tuple

from ..config import Settings
from ..delivery.message import InquiryCategory, InquiryMessage
from ..errors import ErrorKind, FatalDeliveryError
from .schemas import InquiryRequest

NOT_PROVIDED = "Not provided"
ACCENT = "#e67e22"

HEADINGS = {
    InquiryCategory.PRODUCT: "PRODUCT INQUIRY",
    InquiryCategory.BANNER: "BANNER INQUIRY",
    InquiryCategory.FOOTER: "FOOTER INQUIRY",
    InquiryCategory.GENERAL: "GENERAL INQUIRY",
}

DEFAULT_SUBJECTS = {
    InquiryCategory.BANNER: "Banner Inquiry from Website",
    InquiryCategory.FOOTER: "Footer Inquiry from Website",
    InquiryCategory.GENERAL: "New Inquiry from Website",
}

Row = Tuple[str, str]


def _or_default(value: Optional[str]) -> str:
    return value if value else NOT_PROVIDED


def _single_line(value: str) -> str:
    return " ".join(value.split())


def build_subject(inquiry: InquiryRequest) -> str:
    category = inquiry.category
    if category is InquiryCategory.PRODUCT:
        subject = f"Product Inquiry: {_or_default(inquiry.model)} ({_or_default(inquiry.quantity)} units)"
    else:
        subject = inquiry.subject or DEFAULT_SUBJECTS[category]
    return _single_line(subject)


def _product_rows(inquiry: InquiryRequest) -> List[Row]:
    return [
        ("Product", _or_default(inquiry.model)),
        ("Quantity", f"{_or_default(inquiry.quantity)} units"),
        ("Shipping Terms", _or_default(inquiry.shipping_term)),
    ]


def _customer_rows(inquiry: InquiryRequest) -> List[Row]:
    rows = [
        ("Name", inquiry.name),
        ("Email", inquiry.email),
        ("Phone", _or_default(inquiry.phone)),
    ]
    if inquiry.company:
        rows.append(("Company", inquiry.company))
    if inquiry.category is InquiryCategory.PRODUCT or inquiry.address:
        rows.append(("Address", _or_default(inquiry.address)))
    return rows


def build_text_body(inquiry: InquiryRequest) -> str:
    rule = "=" * 16
    divider = "-" * 28
    lines = [HEADINGS[inquiry.category], rule]
    if inquiry.category is InquiryCategory.PRODUCT:
        lines += [f"{label}: {value}" for label, value in _product_rows(inquiry)]
        lines.append(divider)
    lines.append("Customer Details:")
    lines += [f"{label}: {value}" for label, value in _customer_rows(inquiry)]
    lines += [divider, "Customer Message:", inquiry.message, rule]
    return "\n".join(lines) + "\n"


def _html_table(rows: List[Row]) -> str:
    cell = "padding: 10px; border: 1px solid #ddd;"
    body = "".join(
        f'<tr><td style="{cell} width: 30%;"><strong>{escape(label)}:</strong></td>'
        f'<td style="{cell}">{escape(value)}</td></tr>'
        for label, value in rows
    )
    return (
        '<table style="width: 100%; border-collapse: collapse; margin-bottom: 20px;">'
        f'<tr style="background: {ACCENT}; color: white;">'
        '<th colspan="2" style="padding: 10px; text-align: left;">CUSTOMER DETAILS</th></tr>'
        f"{body}</table>"
    )


def build_html_body(inquiry: InquiryRequest) -> str:
    parts = [
        '<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto; color: #333;">',
        f'<h2 style="color: {ACCENT}; border-bottom: 2px solid {ACCENT}; padding-bottom: 5px;">'
        f"{HEADINGS[inquiry.category]}</h2>",
    ]
    if inquiry.category is InquiryCategory.PRODUCT:
        summary = "<br>".join(
            f"<strong>{escape(label)}:</strong> {escape(value)}"
            for label, value in _product_rows(inquiry)
        )
        parts.append(
            '<div style="background: #f5f5f5; padding: 15px; border-radius: 5px; margin-bottom: 15px;">'
            f'<h3 style="margin-top: 0;">{summary}</h3></div>'
        )
    parts.append(_html_table(_customer_rows(inquiry)))
    parts.append(
        '<div style="background: #f5f5f5; padding: 15px; border-radius: 5px;">'
        f'<h4 style="margin-top: 0; color: {ACCENT};">CUSTOMER MESSAGE:</h4>'
        f'<p style="white-space: pre-wrap; margin-bottom: 0;">{escape(inquiry.message)}</p></div>'
    )
    parts.append("</div>")
    return "\n".join(parts)


def format_inquiry(inquiry: InquiryRequest, settings: Settings) -> InquiryMessage:
    """Build the relay-ready message for an accepted inquiry."""
    if not settings.destination_email:
        raise FatalDeliveryError(
            "No destination mailbox configured (set OWNER_EMAIL)", kind=ErrorKind.UNKNOWN
        )
    return InquiryMessage(
        to_address=settings.destination_email,
        from_address=settings.SMTP_USER or settings.destination_email,
        from_name=settings.SMTP_FROM_NAME,
        subject=build_subject(inquiry),
        text_body=build_text_body(inquiry),
        html_body=build_html_body(inquiry),
        category=inquiry.category,
        reply_to=inquiry.email,
    )

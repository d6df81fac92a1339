"""Unit tests for inquiry validation and message formatting."""

import pytest
from pydantic import ValidationError

from inquiry_relay.delivery.message import InquiryCategory
from inquiry_relay.errors import ErrorKind, FatalDeliveryError
from inquiry_relay.inquiries.formatter import (
    build_html_body,
    build_subject,
    build_text_body,
    format_inquiry,
)
from inquiry_relay.inquiries.schemas import InquiryRequest


class TestInquiryRequest:
    """Test submission validation."""

    def test_valid_product_inquiry(self, valid_payload):
        inquiry = InquiryRequest(**valid_payload)

        assert inquiry.category == InquiryCategory.PRODUCT
        assert inquiry.quantity == "50"
        assert inquiry.shipping_term == "FOB"

    def test_whitespace_is_stripped(self, valid_payload):
        inquiry = InquiryRequest(**{**valid_payload, "name": "  Jane Doe  "})
        assert inquiry.name == "Jane Doe"

    @pytest.mark.parametrize("field", ["name", "email", "phone"])
    def test_required_fields(self, valid_payload, field):
        payload = {k: v for k, v in valid_payload.items() if k != field}
        with pytest.raises(ValidationError) as exc_info:
            InquiryRequest(**payload)
        assert exc_info.value.errors()[0]["loc"] == (field,)

    @pytest.mark.parametrize("email", ["plainaddress", "jane@", "jane@example", "ja ne@example.org"])
    def test_malformed_email_rejected(self, valid_payload, email):
        with pytest.raises(ValidationError):
            InquiryRequest(**{**valid_payload, "email": email})

    def test_short_phone_rejected(self, valid_payload):
        with pytest.raises(ValidationError) as exc_info:
            InquiryRequest(**{**valid_payload, "phone": "555-1234"})
        assert "10 digits" in str(exc_info.value)

    def test_formatted_phone_accepted(self, valid_payload):
        inquiry = InquiryRequest(**{**valid_payload, "phone": "(555) 010-2030"})
        assert inquiry.phone == "(555) 010-2030"

    @pytest.mark.parametrize(
        "type_, category",
        [
            ("banner_inquiry", InquiryCategory.BANNER),
            ("footer_inquiry", InquiryCategory.FOOTER),
            ("contact", InquiryCategory.GENERAL),
            (None, InquiryCategory.GENERAL),
        ],
    )
    def test_category_mapping(self, valid_payload, type_, category):
        inquiry = InquiryRequest(**{**valid_payload, "type": type_})
        assert inquiry.category == category


class TestSubjects:
    """Test subject selection per category."""

    def test_product_subject(self, valid_payload):
        inquiry = InquiryRequest(**valid_payload)
        assert build_subject(inquiry) == "Product Inquiry: X200 (50 units)"

    def test_submitted_subject_used_for_general(self, valid_payload):
        inquiry = InquiryRequest(**{**valid_payload, "type": None, "subject": "Dealer question"})
        assert build_subject(inquiry) == "Dealer question"

    def test_default_subjects(self, valid_payload):
        banner = InquiryRequest(**{**valid_payload, "type": "banner_inquiry"})
        general = InquiryRequest(**{**valid_payload, "type": None})

        assert build_subject(banner) == "Banner Inquiry from Website"
        assert build_subject(general) == "New Inquiry from Website"

    def test_subject_collapsed_to_one_line(self, valid_payload):
        inquiry = InquiryRequest(
            **{**valid_payload, "type": None, "subject": "Hello\r\nBcc: victim@example.com"}
        )
        assert build_subject(inquiry) == "Hello Bcc: victim@example.com"


class TestBodies:
    """Test text and HTML bodies."""

    def test_text_body_contains_details(self, valid_payload):
        body = build_text_body(InquiryRequest(**valid_payload))

        assert body.startswith("PRODUCT INQUIRY")
        assert "Product: X200" in body
        assert "Quantity: 50 units" in body
        assert "Shipping Terms: FOB" in body
        assert "Email: jane@example.org" in body
        assert "Please send a quote." in body

    def test_missing_optional_values_render_not_provided(self, valid_payload):
        payload = {k: v for k, v in valid_payload.items() if k not in ("shippingTerm", "address")}
        body = build_text_body(InquiryRequest(**payload))

        assert "Shipping Terms: Not provided" in body
        assert "Address: Not provided" in body

    def test_general_body_omits_product_rows(self, valid_payload):
        body = build_text_body(InquiryRequest(**{**valid_payload, "type": None, "address": None}))

        assert body.startswith("GENERAL INQUIRY")
        assert "Product:" not in body
        assert "Address:" not in body

    def test_html_body_escapes_submitted_values(self, valid_payload):
        inquiry = InquiryRequest(
            **{**valid_payload, "name": "<script>alert(1)</script>", "message": "a & b"}
        )
        html = build_html_body(inquiry)

        assert "<script>" not in html
        assert "&lt;script&gt;alert(1)&lt;/script&gt;" in html
        assert "a &amp; b" in html


class TestFormatInquiry:
    """Test message assembly."""

    def test_message_addresses(self, valid_payload, settings):
        message = format_inquiry(InquiryRequest(**valid_payload), settings)

        assert message.to_address == "owner@example.com"
        assert message.from_address == "relay@example.com"
        assert message.reply_to == "jane@example.org"
        assert message.category == InquiryCategory.PRODUCT
        assert message.message_id.endswith("@example.com>")

    def test_destination_falls_back_to_relay_login(self, valid_payload, settings):
        settings = settings.model_copy(update={"OWNER_EMAIL": None})
        message = format_inquiry(InquiryRequest(**valid_payload), settings)
        assert message.to_address == "relay@example.com"

    def test_missing_destination_is_fatal(self, valid_payload, settings):
        settings = settings.model_copy(update={"OWNER_EMAIL": None, "SMTP_USER": None})

        with pytest.raises(FatalDeliveryError) as exc_info:
            format_inquiry(InquiryRequest(**valid_payload), settings)

        assert exc_info.value.kind == ErrorKind.UNKNOWN

    def test_mime_rendering(self, valid_payload, settings):
        mime = format_inquiry(InquiryRequest(**valid_payload), settings).to_mime()

        assert mime["To"] == "owner@example.com"
        assert mime["Reply-To"] == "jane@example.org"
        assert mime["From"] == "Website Inquiry <relay@example.com>"
        assert mime.is_multipart()
        assert mime.get_body(preferencelist=("html",)) is not None

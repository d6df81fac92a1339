"""Pydantic schemas for inquiry submission"""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..delivery.message import InquiryCategory

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PHONE_DIGITS = 10


class InquiryRequest(BaseModel):
    """Request body for POST /api/send-email.

    Attributes:
        name: Submitter name
        email: Submitter email, used as Reply-To
        phone: Submitter phone; at least 10 digits once formatting is stripped
        message: Free-text message
        type: product_inquiry | banner_inquiry | footer_inquiry | anything else (general)
        shipping_term: Incoterm or shipping preference (JSON field `shippingTerm`)
    """
    model_config = ConfigDict(
        populate_by_name=True,
        str_strip_whitespace=True,
        protected_namespaces=(),
    )

    name: str = Field(..., min_length=1, max_length=200)
    email: str = Field(..., min_length=1, max_length=254)
    phone: str = Field(..., min_length=1, max_length=50)
    message: str = Field("", max_length=10_000)
    company: Optional[str] = Field(None, max_length=200)
    address: Optional[str] = Field(None, max_length=500)
    quantity: Optional[str] = Field(None, max_length=50)
    model: Optional[str] = Field(None, max_length=200)
    type: Optional[str] = None
    subject: Optional[str] = Field(None, max_length=200)
    shipping_term: Optional[str] = Field(None, alias="shippingTerm", max_length=100)

    @field_validator("quantity", "model", "company", "address", "subject", mode="before")
    @classmethod
    def _coerce_scalars(cls, value: Any) -> Any:
        # Forms post quantities as numbers
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: str) -> str:
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Invalid email address")
        return value

    @field_validator("phone")
    @classmethod
    def _check_phone(cls, value: str) -> str:
        digits = re.sub(r"\D", "", value)
        if len(digits) < MIN_PHONE_DIGITS:
            raise ValueError(f"Phone number must contain at least {MIN_PHONE_DIGITS} digits")
        return value

    @property
    def category(self) -> InquiryCategory:
        return InquiryCategory.from_type(self.type)


class SendEmailResponse(BaseModel):
    success: bool = True
    message: str
    timestamp: str
    messageId: Optional[str] = None

"""Inquiry relay: delivers website inquiries to a mailbox through an SMTP relay."""

__version__ = "0.1.0"

"""Correlation id for one inquiry submission.

The id is bound for the lifetime of the HTTP request, so log lines written by
the dispatcher while it retries, and the delivery log entry written on
success, all carry the id of the request that admitted the inquiry.

A caller-supplied X-Request-ID is reused when it is short and printable;
anything else is replaced so a client cannot inject into log lines.
"""

import uuid
from contextvars import ContextVar, Token
from typing import Optional

REQUEST_ID_HEADER = "X-Request-ID"
NO_REQUEST_ID = "no-request-id"

_MAX_INBOUND_LENGTH = 128

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)


def generate_request_id() -> str:
    return uuid.uuid4().hex


def accept_request_id(inbound: Optional[str]) -> str:
    """Reuse the caller's request id when safe, otherwise generate one.

    Args:
        inbound: Value of the X-Request-ID header, if any

    Returns:
        str: Request id to bind for this submission
    """
    if inbound:
        inbound = inbound.strip()
        if 0 < len(inbound) <= _MAX_INBOUND_LENGTH and inbound.isprintable():
            return inbound
    return generate_request_id()


def get_request_id() -> str:
    return request_id_var.get() or NO_REQUEST_ID


def bind_request_id(request_id: str) -> Token:
    """Bind an id to the current context; pass the token to unbind_request_id()."""
    return request_id_var.set(request_id)


def unbind_request_id(token: Token) -> None:
    request_id_var.reset(token)

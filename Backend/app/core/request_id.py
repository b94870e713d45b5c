from __future__ import annotations

import uuid
from typing import Optional
import contextvars

_request_id_ctx: contextvars.ContextVar[Optional[str]] = contextvars.ContextVar("request_id", default=None)

_MAX_INBOUND_ID_LENGTH = 128


def new_request_id(inbound: Optional[str] = None) -> str:
    """Reuse a caller-supplied X-Request-Id when it is sane, otherwise mint one."""
    if inbound:
        candidate = inbound.strip()
        if candidate and len(candidate) <= _MAX_INBOUND_ID_LENGTH and candidate.isprintable():
            return candidate
    return uuid.uuid4().hex

def set_request_id(request_id: Optional[str]) -> None:
    _request_id_ctx.set(request_id)

def get_request_id() -> Optional[str]:
    return _request_id_ctx.get()

def clear_request_id() -> None:
    _request_id_ctx.set(None)

# Backend/app/core/errors.py
"""
Error taxonomy for the briefing pipeline.

Every failure inside the service is one of the ``BriefingError`` subclasses
below. Each carries an internal ``kind`` for logging; ``sanitize()`` collapses
all of them into a ``PublicError`` whose message is safe to return to callers.
Upstream hostnames, status codes and exception text stay in the logs.
"""

from __future__ import annotations

from typing import Dict, Optional


MSG_TOO_MANY_REQUESTS = "Too many requests"
MSG_ORIGIN_NOT_ALLOWED = "Origin not allowed"
MSG_REQUEST_TOO_LARGE = "Request too large"
MSG_EXTERNAL_UNAVAILABLE = "External service unavailable"
MSG_INVALID_RESPONSE = "Invalid response format"
MSG_NO_ENTRIES = "No news entries available"
MSG_INTERNAL = "Internal server error"


class BriefingError(Exception):
    """Base class; ``kind`` is the internal, log-only discriminator."""

    kind: str = "internal_error"

    def __init__(self, message: str = "", **context: object):
        super().__init__(message or self.kind)
        self.context: Dict[str, object] = dict(context)


# ---- Request gate -----------------------------------------------------------

class GateRejected(BriefingError):
    kind = "gate_rejected"


class RateLimited(GateRejected):
    kind = "rate_limited"

    def __init__(self, message: str = "", *, retry_after: Optional[int] = None, **context: object):
        super().__init__(message, **context)
        self.retry_after = retry_after


class OriginDenied(GateRejected):
    kind = "origin_denied"


class PayloadTooLarge(GateRejected):
    kind = "payload_too_large"


# ---- Outbound fetch ---------------------------------------------------------

class FetchFailed(BriefingError):
    kind = "fetch_failed"


class InvalidTarget(FetchFailed):
    kind = "invalid_target"


class Unavailable(FetchFailed):
    kind = "unavailable"


class FetchTimeout(FetchFailed):
    kind = "timeout"


class BadResponseShape(FetchFailed):
    kind = "bad_response_shape"


# ---- Normalization / generation ---------------------------------------------

class NormalizationFailed(BriefingError):
    kind = "normalization_failed"


class NoItems(NormalizationFailed):
    kind = "no_items"


class GenerationFailed(BriefingError):
    kind = "generation_failed"


class GenerationUnauthorized(GenerationFailed):
    """The provider refused the configured credential; treated as unconfigured."""

    kind = "generation_unauthorized"


class InternalError(BriefingError):
    kind = "internal_error"


# ---- Public boundary ----------------------------------------------------------

class PublicError(Exception):
    """The only error shape allowed to cross the process boundary."""

    def __init__(self, status_code: int, message: str, retry_after: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.retry_after = retry_after

    def headers(self) -> Dict[str, str]:
        if self.retry_after is None:
            return {}
        return {"Retry-After": str(self.retry_after)}


_PUBLIC_BY_TYPE = (
    (RateLimited, 429, MSG_TOO_MANY_REQUESTS),
    (OriginDenied, 403, MSG_ORIGIN_NOT_ALLOWED),
    (PayloadTooLarge, 413, MSG_REQUEST_TOO_LARGE),
    (FetchTimeout, 504, MSG_EXTERNAL_UNAVAILABLE),
    (BadResponseShape, 502, MSG_INVALID_RESPONSE),
    (InvalidTarget, 502, MSG_EXTERNAL_UNAVAILABLE),
    (Unavailable, 502, MSG_EXTERNAL_UNAVAILABLE),
    (NoItems, 502, MSG_NO_ENTRIES),
    (GenerationFailed, 502, MSG_EXTERNAL_UNAVAILABLE),
)


def error_kind(exc: BaseException) -> str:
    if isinstance(exc, BriefingError):
        return exc.kind
    return InternalError.kind


def sanitize(exc: BaseException) -> PublicError:
    """Map any exception onto a generic, non-identifying public error."""
    if isinstance(exc, PublicError):
        return exc
    for exc_type, status_code, message in _PUBLIC_BY_TYPE:
        if isinstance(exc, exc_type):
            retry_after = getattr(exc, "retry_after", None)
            return PublicError(status_code=status_code, message=message, retry_after=retry_after)
    return PublicError(status_code=500, message=MSG_INTERNAL)

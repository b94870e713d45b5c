# Backend/app/core/request_gate.py
"""
Request gate: per-request trust decisions made before the handler runs.

Pure decision logic over request metadata (method, path, headers). The only
state it touches is the injected ``FixedWindowRateLimiter``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Iterable, Mapping, Optional, Sequence

from app.core.client_id import get_client_key
from app.core.errors import OriginDenied, PayloadTooLarge, RateLimited
from app.core.rate_limiting import FixedWindowRateLimiter

PAYMENT_HEADER = "x-payment"
PAYMENT_RESPONSE_HEADER = "x-payment-response"

INVOKE_PATH_RE = re.compile(r"^/entrypoints/[^/]+/invoke/?$")

ALLOWED_METHODS = "GET, POST, OPTIONS, HEAD"
ALLOWED_HEADERS = "Content-Type, Authorization, X-Payment, X-Request-Id"
EXPOSED_HEADERS = "X-Payment-Response, X-Request-Id"
PREFLIGHT_MAX_AGE = "600"

DEFAULT_MAX_REQUEST_BYTES = 1024 * 1024


@dataclass(frozen=True)
class RequestClassification:
    is_payment_related: bool
    origin: Optional[str]
    client_key: str


def _lower_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {str(k).lower(): v for k, v in headers.items()}


class RequestGate:
    """
    Decides whether a request may reach the entrypoint handler.

    Payment-related requests (the invoke route, or anything carrying a
    payment header) skip origin and rate-limit checks: the payment
    facilitator calls back without a browser Origin and enforces its own
    limits.
    """

    def __init__(
        self,
        rate_limiter: FixedWindowRateLimiter,
        *,
        allowed_origins: Optional[Iterable[str]] = None,
        payment_gateway_origins: Optional[Iterable[str]] = None,
        max_request_bytes: int = DEFAULT_MAX_REQUEST_BYTES,
    ):
        self.rate_limiter = rate_limiter
        self.allowed_origins = frozenset(o.rstrip("/") for o in (allowed_origins or []) if o)
        self.payment_gateway_origins: Sequence[str] = tuple(
            o.rstrip("/") for o in (payment_gateway_origins or []) if o
        )
        self.max_request_bytes = max_request_bytes

    # ---- classification -----------------------------------------------------

    def classify(
        self,
        path: str,
        headers: Mapping[str, str],
        peer_host: Optional[str] = None,
    ) -> RequestClassification:
        lowered = _lower_headers(headers)
        is_payment = (
            bool(INVOKE_PATH_RE.match(path or ""))
            or PAYMENT_HEADER in lowered
            or PAYMENT_RESPONSE_HEADER in lowered
        )
        origin = (lowered.get("origin") or "").strip() or None
        return RequestClassification(
            is_payment_related=is_payment,
            origin=origin,
            client_key=get_client_key(lowered, peer_host),
        )

    # ---- individual checks --------------------------------------------------

    def is_origin_allowed(self, origin: Optional[str], is_payment_related: bool) -> bool:
        if not origin:
            return is_payment_related
        normalized = origin.rstrip("/")
        if self._is_gateway_origin(normalized):
            return True
        if is_payment_related:
            return True
        if self.allowed_origins:
            return normalized in self.allowed_origins
        return normalized.lower().startswith("https://")

    def _is_gateway_origin(self, origin: str) -> bool:
        for gateway in self.payment_gateway_origins:
            if origin == gateway or origin.startswith(gateway + "/"):
                return True
        return False

    def check_rate_limit(self, client_key: str) -> bool:
        return self.rate_limiter.hit(client_key)

    def check_content_length(self, value: Optional[str]) -> None:
        """Raise PayloadTooLarge when the declared length exceeds the ceiling."""
        if value is None:
            return
        try:
            declared = int(value.strip())
        except ValueError:
            # Malformed lengths are rejected by the HTTP server before we see a body.
            return
        if declared > self.max_request_bytes:
            raise PayloadTooLarge(declared=declared, ceiling=self.max_request_bytes)

    # ---- composite ----------------------------------------------------------

    def evaluate(self, classification: RequestClassification) -> None:
        """
        Run origin and rate-limit checks for a non-preflight request.

        A non-payment request without an Origin header is a non-browser
        caller; it is not subject to CORS but still counts against its quota.
        """
        if classification.is_payment_related:
            return

        if classification.origin is not None and not self.is_origin_allowed(
            classification.origin, False
        ):
            raise OriginDenied(origin=classification.origin)

        if not self.check_rate_limit(classification.client_key):
            raise RateLimited(
                client_key=classification.client_key,
                retry_after=self.rate_limiter.retry_after(classification.client_key),
            )

    def cors_headers(self, classification: RequestClassification) -> Dict[str, str]:
        origin = classification.origin
        if not origin or not self.is_origin_allowed(origin, classification.is_payment_related):
            return {}
        headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Expose-Headers": EXPOSED_HEADERS,
            "Vary": "Origin",
        }
        # Credentials only for origins that pass on their own, not via the payment bypass.
        if self.is_origin_allowed(origin, False):
            headers["Access-Control-Allow-Credentials"] = "true"
        return headers

    def preflight_headers(self, classification: RequestClassification) -> Dict[str, str]:
        headers = self.cors_headers(classification)
        if headers:
            headers.update(
                {
                    "Access-Control-Allow-Methods": ALLOWED_METHODS,
                    "Access-Control-Allow-Headers": ALLOWED_HEADERS,
                    "Access-Control-Max-Age": PREFLIGHT_MAX_AGE,
                }
            )
        return headers

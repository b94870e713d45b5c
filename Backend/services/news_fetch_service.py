"""
Outbound fetch for the news feed.

Validates the target URL before any network activity (HTTPS only, no
loopback/private/link-local hosts) and performs a single, time-bounded GET.
Failures surface as ``FetchFailed`` subclasses; details such as the upstream
host or status code are logged, never raised in the exception message.
"""

from __future__ import annotations

import asyncio
import ipaddress
import re
import socket
from typing import Dict, Mapping, Optional, Union
from urllib.parse import urlsplit

import httpx

from app.core.errors import FetchTimeout, InvalidTarget, Unavailable
from app.core.logging import get_logger

logger = get_logger().bind(module="news_fetch_service")

_DEFAULT_TIMEOUT_S = 30.0
_DEFAULT_MAX_BYTES = 5 * 1024 * 1024
_USER_AGENT = "daydreams-news-agent/1.0"

_BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
    "0.0.0.0",
    "::",
    "::1",
}


# Dotted labels that are all decimal, octal or hex: the resolver reads these as IPv4.
_NUMERIC_HOST_RE = re.compile(r"^(?:0x[0-9a-f]*|[0-9]+)(?:\.(?:0x[0-9a-f]*|[0-9]+))*$")


def _parse_ip_host(host: str) -> Optional[Union[ipaddress.IPv4Address, ipaddress.IPv6Address]]:
    """
    Return the address a literal host resolves to, None for real hostnames.

    Shorthand IPv4 forms (``127.1``, ``2130706433``, ``0x7f.1``, ``0177.0.0.1``)
    are parsed the way ``inet_aton`` does. Numeric hosts it rejects are
    refused outright.
    """
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass
    if not _NUMERIC_HOST_RE.match(host):
        return None
    try:
        packed = socket.inet_aton(host)
    except OSError as exc:
        raise InvalidTarget("malformed_ip") from exc
    return ipaddress.IPv4Address(packed)


def _is_blocked_ip(host: str) -> bool:
    ip = _parse_ip_host(host)
    if ip is None:
        return False
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return (
        ip.is_loopback
        or ip.is_unspecified
        or ip.is_private
        or ip.is_link_local
        or ip.is_reserved
        or ip.is_multicast
    )


def validate_target_url(url: str) -> str:
    """
    Return the URL unchanged if it is an acceptable outbound target.

    Raises InvalidTarget for non-https schemes, missing hosts, literal
    loopback names and non-public IP literals, shorthand IPv4 included.
    No DNS lookups are made.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidTarget("empty_url")

    try:
        parts = urlsplit(url.strip())
        host = parts.hostname
    except ValueError as exc:
        raise InvalidTarget("unparseable_url") from exc

    if parts.scheme.lower() != "https":
        raise InvalidTarget("scheme_not_https")
    if not host:
        raise InvalidTarget("missing_host")

    host = host.strip().rstrip(".").lower()
    if host in _BLOCKED_HOSTNAMES or host.endswith(".localhost"):
        raise InvalidTarget("loopback_host")
    if _is_blocked_ip(host):
        raise InvalidTarget("private_address")

    return url.strip()


class NewsFetcher:
    """
    Fetches the raw feed document.

    ``transport`` is passed straight to ``httpx.AsyncClient`` so tests can
    plug in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        *,
        timeout_s: float = _DEFAULT_TIMEOUT_S,
        max_bytes: int = _DEFAULT_MAX_BYTES,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.timeout_s = timeout_s
        self.max_bytes = max_bytes
        self._transport = transport

    async def fetch_json(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        timeout: Optional[float] = None,
    ) -> bytes:
        target = validate_target_url(url)
        timeout_s = timeout if timeout is not None else self.timeout_s

        request_headers: Dict[str, str] = {
            "Accept": "application/json",
            "User-Agent": _USER_AGENT,
        }
        request_headers.update(headers or {})

        try:
            return await asyncio.wait_for(
                self._get(target, request_headers, timeout_s),
                timeout=timeout_s,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as exc:
            logger.warning("news_fetch_timeout", timeout_s=timeout_s, error=exc.__class__.__name__)
            raise FetchTimeout() from exc
        except httpx.HTTPError as exc:
            logger.warning("news_fetch_failed", error=exc.__class__.__name__, detail=str(exc))
            raise Unavailable() from exc

    async def _get(self, url: str, headers: Dict[str, str], timeout_s: float) -> bytes:
        async with httpx.AsyncClient(
            timeout=timeout_s,
            follow_redirects=False,
            transport=self._transport,
        ) as client:
            async with client.stream("GET", url, headers=headers) as response:
                if not response.is_success:
                    # Redirects are refused as well: they could point at an internal host.
                    logger.warning(
                        "news_fetch_bad_status",
                        status_code=response.status_code,
                        host=response.url.host,
                    )
                    raise Unavailable()

                body = bytearray()
                async for chunk in response.aiter_bytes():
                    body.extend(chunk)
                    if len(body) > self.max_bytes:
                        logger.warning("news_fetch_too_large", max_bytes=self.max_bytes)
                        raise Unavailable()
                return bytes(body)


def build_feed_headers(api_key: Optional[str]) -> Dict[str, str]:
    if api_key and api_key.strip():
        return {"Authorization": f"Bearer {api_key.strip()}"}
    return {}

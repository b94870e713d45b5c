from __future__ import annotations

from typing import Mapping, Optional


UNKNOWN_CLIENT = "unknown"


def get_client_key(headers: Mapping[str, str], peer_host: Optional[str] = None) -> str:
    """
    Derive the rate-limit key for a request.

    Checks X-Forwarded-For first (proxy/load balancer, first hop is the
    original client), then X-Real-IP, then the socket peer address.
    """
    forwarded_for = headers.get("x-forwarded-for")
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()
        if ip:
            return ip

    real_ip = headers.get("x-real-ip")
    if real_ip and real_ip.strip():
        return real_ip.strip()

    if peer_host:
        return peer_host

    return UNKNOWN_CLIENT

"""
Utility functions for the Messages API.
"""

import hashlib
import logging
import time

from fastapi import Request

logger = logging.getLogger(__name__)

# Header set by the edge proxy with the address of the connecting client
CONNECTING_IP_HEADER = "CF-Connecting-IP"
FORWARDED_FOR_HEADER = "X-Forwarded-For"
UNKNOWN_CLIENT = "unknown"


def current_time_ms() -> int:
    """Milliseconds since the epoch."""
    return int(time.time() * 1000)


def get_client_identifier(request: Request) -> str:
    """
    Best-effort originating address of the request.

    Order: connecting-IP header, first X-Forwarded-For entry, "unknown".
    """
    connecting_ip = (request.headers.get(CONNECTING_IP_HEADER) or "").strip()
    if connecting_ip:
        return connecting_ip

    forwarded_for = request.headers.get(FORWARDED_FOR_HEADER) or ""
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop

    return UNKNOWN_CLIENT


def hash_client_key(client_identifier: str, salt: str) -> str:
    """
    Derive the opaque rate-limit key for a client.

    Args:
        client_identifier: Client address as returned by get_client_identifier
        salt: Secret salt (RATE_LIMIT_SALT)

    Returns:
        Hex-encoded SHA-256 of "<identifier>|<salt>"
    """
    return hashlib.sha256(f"{client_identifier}|{salt}".encode("utf-8")).hexdigest()

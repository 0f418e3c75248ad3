"""Network identity lookups for sysfetch."""

import logging
import socket
from collections.abc import Sequence

import psutil
import requests

from sysfetch.models import UNAVAILABLE, UNKNOWN

logger = logging.getLogger(__name__)

# Tried in order; the first non-empty answer wins.
IP_ENDPOINTS = (
    "https://api.ipify.org",
    "https://icanhazip.com",
    "https://ifconfig.me/ip",
)


def fetch_public_ip(
    endpoints: Sequence[str] = IP_ENDPOINTS,
    session: requests.Session | None = None,
    timeout: float = 3.0,
) -> str:
    """
    Ask the IP echo services for this host's public address.

    Args:
        endpoints: Echo service URLs, tried in order.
        session: Session to issue requests with. requests' module-level
            API is used when omitted.
        timeout: Per-request timeout in seconds.

    Returns:
        The trimmed address, or UNAVAILABLE if every endpoint failed.
    """
    http = session if session is not None else requests
    for url in endpoints:
        try:
            response = http.get(url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as exc:
            logger.warning("Public IP lookup via %s failed: %s", url, exc)
            continue
        address = response.text.strip()
        if address:
            return address
        logger.warning("Public IP lookup via %s returned an empty body", url)
    return UNAVAILABLE


def local_ip_address() -> str:
    """First non-loopback IPv4 address of this host."""
    try:
        for addr_list in psutil.net_if_addrs().values():
            for addr in addr_list:
                if addr.family == socket.AF_INET and not addr.address.startswith("127."):
                    return addr.address
    except (psutil.Error, OSError) as exc:
        logger.warning("Interface address lookup failed: %s", exc)

    try:
        return socket.gethostbyname(socket.gethostname())
    except OSError as exc:
        logger.warning("Host name resolution failed: %s", exc)
        return UNKNOWN

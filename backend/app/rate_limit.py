"""Rate limiting for the sync backend.

Requests are keyed by client IP. ``X-Forwarded-For`` is only honoured when
the direct peer is a trusted proxy, so clients cannot pick their own key.
"""

import ipaddress
import logging
import os
from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

logger = logging.getLogger("vocabloop.rate_limit")

# Override with TRUSTED_PROXY_CIDRS env var (comma-separated CIDRs).
_DEFAULT_TRUSTED_CIDRS = [
    "10.0.0.0/8",
    "172.16.0.0/12",
    "192.168.0.0/16",
    "127.0.0.0/8",
    "::1/128",
]

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


def load_trusted_cidrs(raw: Optional[str] = None) -> list[Network]:
    """Parse trusted proxy CIDRs; invalid entries are skipped with a warning."""
    if raw is None:
        raw = os.environ.get("TRUSTED_PROXY_CIDRS", "")
    cidrs = [s.strip() for s in raw.split(",") if s.strip()] if raw else _DEFAULT_TRUSTED_CIDRS
    networks = []
    for cidr in cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr, strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr!r}")
    return networks


_trusted_networks: Optional[list[Network]] = None


def _get_trusted_networks() -> list[Network]:
    global _trusted_networks
    if _trusted_networks is None:
        _trusted_networks = load_trusted_cidrs()
    return _trusted_networks


def reset_trusted_networks() -> None:
    """Forget cached CIDRs so the next request re-reads the environment."""
    global _trusted_networks
    _trusted_networks = None


def is_trusted_proxy(ip_str: str, networks: Optional[list[Network]] = None) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    if networks is None:
        networks = _get_trusted_networks()
    return any(addr in network for network in networks)


def get_client_ip(request) -> str:
    """Resolve client IP, only honoring X-Forwarded-For from trusted proxies.

    The leftmost forwarded address is the original client.
    """
    direct_ip = get_remote_address(request)

    if is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            client_ip = forwarded_for.split(",")[0].strip()
            if client_ip:
                return client_ip

    return direct_ip


limiter = Limiter(key_func=get_client_ip)

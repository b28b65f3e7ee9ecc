"""SSRF guard for outbound workflow requests.

Only public http(s) targets are allowed: internal-looking hostnames, private
or otherwise non-global IP literals and well-known service ports are refused.
"""

from __future__ import annotations

import ipaddress
from typing import Optional
from urllib.parse import urlsplit

from pydantic import BaseModel

ALLOWED_SCHEMES = ("http", "https")

BLOCKED_PORTS = frozenset(
    {
        22,  # SSH
        23,  # Telnet
        25,  # SMTP
        53,  # DNS
        135,  # MSRPC
        137,  # NetBIOS name
        138,  # NetBIOS datagram
        139,  # NetBIOS session
        445,  # SMB
        1433,  # MSSQL
        1521,  # Oracle
        3306,  # MySQL
        5432,  # PostgreSQL
        6379,  # Redis
        9200,  # Elasticsearch
        11211,  # Memcached
        27017,  # MongoDB
    }
)

BLOCKED_HOSTNAME_KEYWORDS = (
    "localhost",
    "local",
    "internal",
    "intranet",
    "metadata",
    "instance-data",
)


class UrlValidation(BaseModel):
    valid: bool
    error: Optional[str] = None


def is_private_ip(host: str) -> bool:
    """True if ``host`` is an IP literal outside the public address space."""
    try:
        ip = ipaddress.ip_address(host.strip("[]"))
    except ValueError:
        return False

    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped is not None:
        ip = ip.ipv4_mapped
    return ip.is_multicast or ip.is_unspecified or not ip.is_global


def is_allowed_port(port: int) -> bool:
    return port not in BLOCKED_PORTS


def validate_proxy_url(url: str, allow_private_networks: bool = False) -> UrlValidation:
    """Decide whether ``url`` may be requested on behalf of a workflow."""
    try:
        parts = urlsplit(url)
        port = parts.port
    except ValueError:
        return UrlValidation(valid=False, error="Invalid URL format")

    if not parts.scheme or not parts.hostname:
        return UrlValidation(valid=False, error="Invalid URL format")

    scheme = parts.scheme.lower()
    if scheme not in ALLOWED_SCHEMES:
        return UrlValidation(
            valid=False,
            error=f"Protocol not allowed. Only HTTP/HTTPS permitted (got: {scheme}:)",
        )

    hostname = parts.hostname.lower()
    if not allow_private_networks:
        for keyword in BLOCKED_HOSTNAME_KEYWORDS:
            if keyword in hostname:
                return UrlValidation(
                    valid=False,
                    error=f'Hostname blocked: Contains restricted keyword "{keyword}" (SSRF protection)',
                )

    if port is None:
        port = 443 if scheme == "https" else 80
    if not is_allowed_port(port):
        return UrlValidation(
            valid=False,
            error=f"Port {port} blocked: Known dangerous service port (SSRF protection)",
        )

    if not allow_private_networks and is_private_ip(hostname):
        return UrlValidation(
            valid=False,
            error="Request blocked: IP address is in private/internal range. Only public APIs allowed for security.",
        )

    return UrlValidation(valid=True)

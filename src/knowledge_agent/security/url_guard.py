"""SSRF guard for fetch tools.

Checks applied before any network call is made:
- Allowed URL schemes: http:// and https:// only.
- Blocked hostnames: localhost and cloud metadata service names.
- Literal cloud metadata IPs are always rejected.
- IP literals must be public: private, loopback, link-local, unspecified,
  multicast and reserved IPv4/IPv6 ranges are rejected, including
  IPv4-mapped IPv6 forms.
- Ports of common internal services (SSH, databases, caches, ...) are blocked.

`is_secure_url` additionally resolves hostnames and rejects the URL when any
resolved address is non-public, or when resolution fails.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
from collections.abc import Awaitable, Callable
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

ALLOWED_SCHEMES = frozenset({"http", "https"})
BLOCKED_HOSTNAMES = frozenset(
    {
        "localhost",
        "localhost.localdomain",
        "metadata",
        "metadata.google.internal",
        "metadata.amazonaws.com",
    }
)
METADATA_IPS = frozenset({"169.254.169.254", "fd00:ec2::254"})
RESTRICTED_PORTS = frozenset(
    {
        22,  # SSH
        23,  # Telnet
        25,  # SMTP
        110,  # POP3
        143,  # IMAP
        445,  # SMB
        1433,  # MSSQL
        1521,  # Oracle
        3306,  # MySQL
        3389,  # RDP
        5432,  # PostgreSQL
        5984,  # CouchDB
        6379,  # Redis
        8020,  # Hadoop
        8086,  # InfluxDB
        9200,  # Elasticsearch
        11211,  # Memcached
        27017,  # MongoDB
    }
)

Resolver = Callable[[str], Awaitable[list[str]]]


def is_public_ip(address: str | ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    try:
        ip = ipaddress.ip_address(address)
    except ValueError:
        return False

    if str(ip) in METADATA_IPS:
        return False
    if isinstance(ip, ipaddress.IPv6Address):
        if ip.ipv4_mapped is not None:
            return is_public_ip(ip.ipv4_mapped)
        if ip.is_site_local:
            return False
    return not (
        ip.is_private
        or ip.is_loopback
        or ip.is_link_local
        or ip.is_unspecified
        or ip.is_multicast
        or ip.is_reserved
    )


def is_basic_secure_url(url: str) -> bool:
    """Validate `url` without DNS resolution (fast, weaker)."""
    try:
        parsed = urlsplit(url)
        port = parsed.port
    except ValueError:
        return False

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        return False

    hostname = parsed.hostname
    if not hostname:
        return False
    if hostname in BLOCKED_HOSTNAMES or hostname in METADATA_IPS:
        return False
    if _is_ip_literal(hostname) and not is_public_ip(hostname):
        return False
    if port is not None and port in RESTRICTED_PORTS:
        return False
    return True


async def is_secure_url(url: str, *, resolver: Resolver | None = None) -> bool:
    """Validate `url` and ensure its hostname resolves only to public addresses."""
    if not is_basic_secure_url(url):
        return False

    hostname = urlsplit(url).hostname or ""
    if _is_ip_literal(hostname):
        return True

    resolve = resolver or resolve_hostname
    try:
        addresses = await resolve(hostname)
    except OSError as exc:
        logger.info("DNS resolution failed for %s: %s", hostname, exc)
        return False
    if not addresses:
        return False
    return all(is_public_ip(address) for address in addresses)


async def resolve_hostname(hostname: str) -> list[str]:
    loop = asyncio.get_running_loop()
    infos = await loop.getaddrinfo(hostname, None)
    return [str(info[4][0]) for info in infos]


def _is_ip_literal(hostname: str) -> bool:
    try:
        ipaddress.ip_address(hostname)
    except ValueError:
        return False
    return True

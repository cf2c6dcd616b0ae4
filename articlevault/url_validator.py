"""
Article URL validation.

Rejects URLs the pipeline must never fetch: non-http(s) schemes, internal
hostnames and private or link-local addresses (cloud metadata endpoints
included). Runs before extraction so an article can't be used to probe the
network the service runs in.
"""

import ipaddress
import socket
from urllib.parse import urlparse

from .exceptions import InvalidInputError


class SSRFError(InvalidInputError):
    """Raised when a URL targets a blocked network location."""


BLOCKED_IP_RANGES = [
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("169.254.0.0/16"),
    ipaddress.ip_network("0.0.0.0/8"),
    ipaddress.ip_network("255.255.255.255/32"),
    ipaddress.ip_network("::1/128"),
    ipaddress.ip_network("fc00::/7"),
    ipaddress.ip_network("fe80::/10"),
]

BLOCKED_HOSTNAMES = {
    "localhost",
    "localhost.localdomain",
    "ip6-localhost",
    "ip6-loopback",
    "metadata",
    "metadata.google.internal",
}

BLOCKED_SUFFIXES = (".local", ".internal", ".localhost")

ALLOWED_SCHEMES = {"http", "https"}


def is_ip_blocked(ip_str: str) -> bool:
    """Check if an IP address is in a blocked range."""
    try:
        ip = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(ip in network for network in BLOCKED_IP_RANGES)


def validate_article_url(url: str, resolve_dns: bool = False) -> str:
    """
    Validate a URL before saving or fetching it.

    Args:
        url: The URL submitted by the caller
        resolve_dns: Also resolve the hostname and check every address

    Returns:
        The stripped URL

    Raises:
        SSRFError: If the URL is malformed or points somewhere blocked
    """
    url = (url or "").strip()
    parsed = urlparse(url)

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise SSRFError(f"URL scheme '{parsed.scheme}' is not allowed. Use http or https.")

    if not parsed.hostname:
        raise SSRFError("URL must include a hostname")

    hostname = parsed.hostname.lower()

    if hostname in BLOCKED_HOSTNAMES or hostname.endswith(BLOCKED_SUFFIXES):
        raise SSRFError(f"Access to '{hostname}' is not allowed")

    try:
        ip = ipaddress.ip_address(hostname)
    except ValueError:
        ip = None
    if ip is not None and is_ip_blocked(str(ip)):
        raise SSRFError(f"Access to IP address '{ip}' is not allowed")

    if resolve_dns and ip is None:
        try:
            addrinfo = socket.getaddrinfo(hostname, parsed.port or 80, proto=socket.IPPROTO_TCP)
        except socket.gaierror:
            # Unresolvable hosts fail later at fetch time and fall back to a zero-value result
            return url
        for _, _, _, _, sockaddr in addrinfo:
            if is_ip_blocked(sockaddr[0]):
                raise SSRFError(
                    f"Hostname '{hostname}' resolves to blocked IP address '{sockaddr[0]}'"
                )

    return url

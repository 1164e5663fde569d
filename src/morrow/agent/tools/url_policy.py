"""
Request-forgery policy for outbound fetches.

The blocked hosts, suffixes and networks live in one table so the
policy can be reviewed and tested on its own instead of being spread
through the fetch code as inline conditionals.
"""

from __future__ import annotations

import asyncio
import ipaddress
import logging
import socket
from dataclasses import dataclass, field
from typing import Optional, Union
from urllib.parse import urlsplit

from ..domain.errors import BlockedURLError

logger = logging.getLogger(__name__)

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]

BLOCKED_NETWORKS: tuple[IPNetwork, ...] = tuple(
    ipaddress.ip_network(cidr)
    for cidr in (
        "0.0.0.0/8",  # "this" network
        "10.0.0.0/8",  # private
        "127.0.0.0/8",  # loopback
        "169.254.0.0/16",  # link-local
        "172.16.0.0/12",  # private
        "192.168.0.0/16",  # private
        "::/128",  # unspecified
        "::1/128",  # loopback
        "fe80::/10",  # link-local
        "fc00::/7",  # unique local
    )
)


@dataclass(frozen=True)
class URLPolicy:
    """Which URLs the website fetch tool may contact.

    Attributes:
        allowed_schemes: URL schemes accepted at all
        blocked_hostnames: Exact hostnames refused
        blocked_suffixes: Hostname suffixes refused (local-only names)
        blocked_networks: Address ranges refused, checked for IP literals
            and for the addresses a hostname resolves to

    Loopback, link-local, private and unspecified addresses are refused
    even when a custom table leaves them out.
    """

    allowed_schemes: frozenset[str] = frozenset({"http", "https"})
    blocked_hostnames: frozenset[str] = frozenset({"localhost"})
    blocked_suffixes: tuple[str, ...] = (".local", ".localhost", ".internal")
    blocked_networks: tuple[IPNetwork, ...] = field(default=BLOCKED_NETWORKS)

    def address_block_reason(self, address: IPAddress) -> Optional[str]:
        """Return why an address is refused, or None if it is public."""
        if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped:
            address = address.ipv4_mapped
        for network in self.blocked_networks:
            if address.version == network.version and address in network:
                return f"address {address} is in blocked range {network}"
        if (
            address.is_unspecified
            or address.is_loopback
            or address.is_link_local
            or address.is_private
        ):
            return f"address {address} is not publicly routable"
        return None

    def host_block_reason(self, host: str) -> Optional[str]:
        """Return why a hostname or IP literal is refused, or None."""
        host = host.lower().rstrip(".")
        if not host:
            return "missing host"
        if host in self.blocked_hostnames:
            return f"host {host} is local-only"
        for suffix in self.blocked_suffixes:
            if host.endswith(suffix):
                return f"host {host} is local-only"
        try:
            address = ipaddress.ip_address(host)
        except ValueError:
            return None
        return self.address_block_reason(address)

    def check(self, url: str) -> str:
        """Validate a URL against the static rules.

        Args:
            url: Absolute http(s) URL

        Returns:
            The normalized hostname

        Raises:
            BlockedURLError: If the URL is malformed or targets a blocked host
        """
        try:
            parts = urlsplit(url)
            host = parts.hostname or ""
        except ValueError as e:
            raise BlockedURLError(url, f"malformed URL ({e})")

        if parts.scheme.lower() not in self.allowed_schemes:
            raise BlockedURLError(url, "Valid URL required (http/https)")

        reason = self.host_block_reason(host)
        if reason:
            logger.warning(f"Blocked outbound fetch to {url}: {reason}")
            raise BlockedURLError(url, f"Blocked host: only public websites allowed ({reason})")
        return host.lower().rstrip(".")

    async def check_resolved(self, url: str, host: str) -> None:
        """Refuse hostnames whose DNS answers point at blocked ranges.

        Resolution failures are not treated as blocks: the fetch itself
        will fail on an unresolvable name.
        """
        try:
            ipaddress.ip_address(host)
            return
        except ValueError:
            pass

        loop = asyncio.get_running_loop()
        try:
            infos = await loop.getaddrinfo(host, None, type=socket.SOCK_STREAM)
        except (socket.gaierror, UnicodeError) as e:
            logger.debug(f"Could not resolve {host}: {e}")
            return

        for info in infos:
            address = ipaddress.ip_address(info[4][0].split("%", 1)[0])
            reason = self.address_block_reason(address)
            if reason:
                logger.warning(f"Blocked outbound fetch to {url}: {host} resolves to {reason}")
                raise BlockedURLError(
                    url, f"Blocked host: only public websites allowed ({host} resolves to {reason})"
                )


DEFAULT_URL_POLICY = URLPolicy()


def check_url(url: str, policy: URLPolicy = DEFAULT_URL_POLICY) -> str:
    """Validate ``url`` against ``policy`` and return its hostname."""
    return policy.check(url)

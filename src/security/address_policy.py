# src/security/address_policy.py - v1
"""Private / loopback / link-local address classification.

IPv4-mapped IPv6 addresses (::ffff:10.0.0.1) are classified by their
embedded IPv4 address.
"""

from __future__ import annotations

import ipaddress

IPAddress = ipaddress.IPv4Address | ipaddress.IPv6Address

_LOOPBACK_NETWORKS = (
    ipaddress.ip_network("127.0.0.0/8"),
    ipaddress.ip_network("::1/128"),
)

_PRIVATE_NETWORKS = _LOOPBACK_NETWORKS + (
    ipaddress.ip_network("0.0.0.0/8"),  # "this" network
    ipaddress.ip_network("10.0.0.0/8"),
    ipaddress.ip_network("100.64.0.0/10"),  # carrier-grade NAT
    ipaddress.ip_network("169.254.0.0/16"),  # link-local, cloud metadata
    ipaddress.ip_network("172.16.0.0/12"),
    ipaddress.ip_network("192.168.0.0/16"),
    ipaddress.ip_network("::/128"),
    ipaddress.ip_network("fc00::/7"),  # unique local
    ipaddress.ip_network("fe80::/10"),  # link-local
)


def parse_ip(value: str) -> IPAddress | None:
    """Parse a literal IP address, unwrapping IPv4-mapped IPv6.

    Returns:
        Address object, or None if value is not a literal IP.
    """
    value = value.strip("[]").split("%", 1)[0]
    try:
        ip = ipaddress.ip_address(value)
    except ValueError:
        return None
    if isinstance(ip, ipaddress.IPv6Address) and ip.ipv4_mapped:
        return ip.ipv4_mapped
    return ip


def _in_any(ip: IPAddress, networks: tuple) -> bool:
    return any(ip.version == net.version and ip in net for net in networks)


def is_loopback(ip: IPAddress) -> bool:
    return _in_any(ip, _LOOPBACK_NETWORKS)


def is_private(ip: IPAddress) -> bool:
    """True for private, loopback, link-local or unspecified addresses."""
    return _in_any(ip, _PRIVATE_NETWORKS)

"""
Visitor IP matching against literal addresses and CIDR ranges.

Literals compare as exact strings after trimming. CIDR entries use numeric
containment with host bits ignored ("10.0.0.5/8" means 10.0.0.0/8).
Entries that do not parse are skipped so one typo cannot disable the rest
of a rule's list.
"""

from __future__ import annotations

import ipaddress
from functools import lru_cache
from typing import Iterable, Optional, Union

IPAddress = Union[ipaddress.IPv4Address, ipaddress.IPv6Address]
IPNetwork = Union[ipaddress.IPv4Network, ipaddress.IPv6Network]


@lru_cache(maxsize=4096)
def parse_network(pattern: str) -> Optional[IPNetwork]:
    try:
        return ipaddress.ip_network(pattern, strict=False)
    except ValueError:
        return None


@lru_cache(maxsize=4096)
def parse_address(value: str) -> Optional[IPAddress]:
    try:
        return ipaddress.ip_address(value)
    except ValueError:
        return None


def is_valid_pattern(pattern: str) -> bool:
    """True if *pattern* is a parseable literal address or CIDR range."""
    pattern = pattern.strip()
    if not pattern:
        return False
    if "/" in pattern:
        return parse_network(pattern) is not None
    return parse_address(pattern) is not None


def matches(ip: Optional[str], patterns: Iterable[str]) -> bool:
    """Return True if *ip* equals a literal or falls inside a CIDR in *patterns*."""
    if not ip:
        return False
    ip = ip.strip()
    address = parse_address(ip)

    for raw in patterns:
        if not isinstance(raw, str):
            continue
        pattern = raw.strip()
        if not pattern:
            continue
        if "/" in pattern:
            network = parse_network(pattern)
            if network is None or address is None:
                continue
            if address.version == network.version and address in network:
                return True
        elif pattern == ip and address is not None:
            return True
    return False

"""
Input validators for rule and settings administration — pure functions.

Each validator returns the normalised value or the list of offending
entries; raising AppErrors is left to the service layer so these stay
framework-agnostic.
"""

from __future__ import annotations

import re
from typing import Iterable, Sequence

import pycountry
import validators as _validators

from engine.ip_matcher import is_valid_pattern
from engine.schedule import load_timezone, parse_hhmm

_SHOP_DOMAIN_RE = re.compile(r"^[a-z0-9][a-z0-9-]*\.myshopify\.com$")
_HEX_COLOR_RE = re.compile(r"^#(?:[0-9a-fA-F]{3}){1,2}$")


def validate_shop_domain(shop: str) -> bool:
    """Return True if *shop* is a ``<name>.myshopify.com`` domain."""
    return bool(_SHOP_DOMAIN_RE.match((shop or "").strip().lower()))


def invalid_country_codes(codes: Iterable[str]) -> list[str]:
    """Return the entries of *codes* that are not ISO-3166-1 alpha-2 codes."""
    bad: list[str] = []
    for code in codes:
        normalised = code.strip().upper()
        if len(normalised) != 2 or pycountry.countries.get(alpha_2=normalised) is None:
            bad.append(code)
    return bad


def invalid_ip_patterns(patterns: Iterable[str]) -> list[str]:
    """Return the entries of *patterns* that are neither an IP nor a CIDR range."""
    return [p for p in patterns if not is_valid_pattern(p)]


def validate_target_url(url: str) -> bool:
    """Return True if *url* is an absolute http(s) URL."""
    if not url or not url.lower().startswith(("http://", "https://")):
        return False
    return bool(_validators.url(url))


def validate_hhmm(value: str) -> bool:
    return parse_hhmm(value) is not None


def validate_timezone(name: str) -> bool:
    return load_timezone(name) is not None


def validate_hex_color(value: str) -> bool:
    return bool(_HEX_COLOR_RE.match(value or ""))


def invalid_days(days: Sequence[int]) -> list[int]:
    return [d for d in days if not 0 <= d <= 6]

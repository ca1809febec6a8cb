"""
Client IP and country-hint resolution for FastAPI requests.

Takes an explicit ``Request`` parameter so the functions are testable
without a running app.
"""

from __future__ import annotations

from typing import Optional

from fastapi import Request

FALLBACK_IP = "0.0.0.0"

# Priority order: Shopify app proxy first, then CDNs, then generic proxies.
CLIENT_IP_HEADERS: tuple[str, ...] = (
    "X-Shopify-Client-IP",
    "CF-Connecting-IP",
    "True-Client-IP",
    "X-Forwarded-For",
    "X-Real-IP",
)

# Cloudflare uses XX for unknown and T1 for Tor exit nodes
_UNUSABLE_COUNTRY_HINTS = {"XX", "T1"}


def get_client_ip(request: Request) -> str:
    """Extract the real visitor IP from a FastAPI ``Request``.

    Checks the proxy headers in ``CLIENT_IP_HEADERS`` order and takes the
    first comma-separated segment of the first non-empty one.

    Args:
        request: The current FastAPI ``Request`` object.

    Returns:
        The resolved client IP string, or ``"0.0.0.0"`` if none is present.
    """
    for header in CLIENT_IP_HEADERS:
        ip_value: str | None = request.headers.get(header)
        if ip_value:
            client_ip: str = ip_value.split(",")[0].strip()
            if client_ip:
                return client_ip

    return FALLBACK_IP


def get_country_hint(request: Request) -> Optional[str]:
    """Return the CDN-supplied visitor country (``CF-IPCountry``), if usable."""
    value = request.headers.get("CF-IPCountry")
    if not value:
        return None
    code = value.strip().upper()
    if len(code) != 2 or code in _UNUSABLE_COUNTRY_HINTS:
        return None
    return code

"""
Closed value sets shared by documents, DTOs and the engine.

All enums subclass ``str`` so they compare equal to (and serialize as) the
plain strings the storefront script and older documents use.
"""

from __future__ import annotations

from enum import Enum


class Mode(str, Enum):
    """Shop-wide switch controlling how matched redirect rules are applied."""

    POPUP = "popup"
    AUTO_REDIRECT = "auto_redirect"
    DISABLED = "disabled"


class MatchType(str, Enum):
    COUNTRY = "country"
    IP = "ip"


class RuleType(str, Enum):
    REDIRECT = "redirect"
    BLOCK = "block"


class PlanKind(str, Enum):
    FREE = "free"
    PREMIUM = "premium"
    PLUS = "plus"

    @property
    def is_paid(self) -> bool:
        return self is not PlanKind.FREE


class EventType(str, Enum):
    """Storefront analytics event types accepted by the ingestion endpoint."""

    VISIT = "visit"
    POPUP_SHOWN = "popup_shown"
    REDIRECTED = "redirected"
    AUTO_REDIRECTED = "auto_redirected"
    BLOCKED = "blocked"
    IP_REDIRECTED = "ip_redirected"
    IP_BLOCKED = "ip_blocked"
    CLICKED_NO = "clicked_no"
    DISMISSED = "dismissed"

    @property
    def is_redirect(self) -> bool:
        return self in (
            EventType.REDIRECTED,
            EventType.AUTO_REDIRECTED,
            EventType.IP_REDIRECTED,
        )

    @property
    def is_block(self) -> bool:
        return self in (EventType.BLOCKED, EventType.IP_BLOCKED)

    @property
    def is_billable(self) -> bool:
        """Only redirects and blocks count towards the monthly plan usage."""
        return self.is_redirect or self.is_block

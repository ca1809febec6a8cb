"""
Action decisions returned by the rule resolver.

Exactly one decision is produced per storefront request. ShowPopup is a
redirect that the visitor must confirm; it only arises from country rules
while the shop is in popup mode.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union

from schemas.models.enums import MatchType


class AllowReason(str, Enum):
    MODE_DISABLED = "mode_disabled"
    USAGE_SUSPENDED = "usage_suspended"
    BOT_EXCLUDED = "bot_excluded"
    IP_EXCLUDED = "ip_excluded"
    NO_MATCH = "no_match"


@dataclass(frozen=True)
class Allow:
    reason: AllowReason = AllowReason.NO_MATCH
    kind: str = "allow"


@dataclass(frozen=True)
class Block:
    rule_id: str
    rule_name: str
    match_type: MatchType
    kind: str = "block"


@dataclass(frozen=True)
class Redirect:
    rule_id: str
    rule_name: str
    target_url: str
    match_type: MatchType
    kind: str = "redirect"


@dataclass(frozen=True)
class ShowPopup:
    rule_id: str
    rule_name: str
    target_url: str
    match_type: MatchType = MatchType.COUNTRY
    kind: str = "popup"


ActionDecision = Union[Allow, Block, Redirect, ShowPopup]


def decision_to_dict(decision: ActionDecision) -> dict[str, Any]:
    """Flatten a decision into the storefront JSON shape."""
    if isinstance(decision, Allow):
        return {"action": decision.kind, "reason": decision.reason.value}
    payload: dict[str, Any] = {
        "action": decision.kind,
        "ruleId": decision.rule_id,
        "ruleName": decision.rule_name,
        "matchType": decision.match_type.value,
    }
    if isinstance(decision, (Redirect, ShowPopup)):
        payload["targetUrl"] = decision.target_url
    return payload

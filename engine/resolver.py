"""
Rule resolution: picks at most one rule for a storefront visitor.

Order of evaluation:
  1. Shop-level gates (mode disabled, usage suspended, bot, excluded IP)
  2. IP rules; these override country rules regardless of priority
  3. Country rules; redirects become popups in popup mode

Within a category the highest priority live rule wins; on equal priority the
first rule in stored order wins (the rule store returns priority-descending
order). A rule that fails to evaluate is logged and treated as not matching;
resolve() itself never raises.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Iterable, Optional, Sequence

from engine import ip_matcher
from engine.decisions import (
    ActionDecision,
    Allow,
    AllowReason,
    Block,
    Redirect,
    ShowPopup,
)
from engine.schedule import is_in_window
from engine.usage_gate import OPEN_GATE, GateResult
from schemas.models.enums import MatchType, Mode, RuleType
from schemas.models.rule import RuleDoc
from schemas.models.settings import SettingsDoc
from shared.logging import get_logger

log = get_logger(__name__)

UNKNOWN_COUNTRY_CODES = frozenset({"", "UNKNOWN", "XX", "T1"})


@dataclass(frozen=True)
class ResolveContext:
    visitor_ip: str
    country_code: Optional[str]
    is_bot: bool
    now: datetime
    settings: SettingsDoc
    gate: GateResult = field(default=OPEN_GATE)


def normalize_country(code: Optional[str]) -> Optional[str]:
    """Upper-cased alpha-2 code, or None when the country is unknown."""
    if code is None:
        return None
    code = code.strip().upper()
    if code in UNKNOWN_COUNTRY_CODES or len(code) != 2:
        return None
    return code


def ip_rule_matches(rule: RuleDoc, visitor_ip: str) -> bool:
    return ip_matcher.matches(visitor_ip, rule.ip_addresses)


def country_rule_matches(rule: RuleDoc, country_code: Optional[str]) -> bool:
    if country_code is None:
        return False
    return any(code.strip().upper() == country_code for code in rule.country_codes)


def _safe(predicate: Callable[[RuleDoc], bool], rule: RuleDoc) -> bool:
    try:
        return predicate(rule)
    except Exception as e:
        log.warning(
            "rule_evaluation_failed",
            rule_id=rule.rule_id,
            shop=rule.shop,
            error=str(e),
            error_type=type(e).__name__,
        )
        return False


def pick_winner(
    rules: Iterable[RuleDoc],
    matcher: Callable[[RuleDoc], bool],
    now: datetime,
) -> Optional[RuleDoc]:
    """Highest-priority rule that matches and is in its schedule window."""
    winner: Optional[RuleDoc] = None
    for rule in rules:
        if not _safe(matcher, rule):
            continue
        if not _safe(lambda r: is_in_window(r, now), rule):
            continue
        if winner is None or rule.priority > winner.priority:
            winner = rule
    return winner


def filter_live_rules(rules: Iterable[RuleDoc], now: datetime) -> list[RuleDoc]:
    """Active rules whose schedule is open at *now*, stored order preserved."""
    return [
        rule
        for rule in rules
        if rule.is_active and _safe(lambda r: is_in_window(r, now), rule)
    ]


def _ip_decision(rule: RuleDoc) -> ActionDecision:
    if rule.rule_type == RuleType.BLOCK:
        return Block(rule.rule_id, rule.name, MatchType.IP)
    return Redirect(rule.rule_id, rule.name, rule.target_url, MatchType.IP)


def _country_decision(rule: RuleDoc, mode: Mode) -> ActionDecision:
    if rule.rule_type == RuleType.BLOCK:
        return Block(rule.rule_id, rule.name, MatchType.COUNTRY)
    if mode == Mode.POPUP:
        return ShowPopup(rule.rule_id, rule.name, rule.target_url)
    if mode == Mode.AUTO_REDIRECT:
        return Redirect(rule.rule_id, rule.name, rule.target_url, MatchType.COUNTRY)
    return Allow(AllowReason.MODE_DISABLED)


def _shop_gate(ctx: ResolveContext) -> Optional[Allow]:
    settings = ctx.settings
    if settings.mode == Mode.DISABLED:
        return Allow(AllowReason.MODE_DISABLED)
    if ctx.gate.suspended:
        return Allow(AllowReason.USAGE_SUSPENDED)
    if ctx.is_bot and settings.exclude_bots:
        return Allow(AllowReason.BOT_EXCLUDED)
    visitor_ip = (ctx.visitor_ip or "").strip()
    if visitor_ip and visitor_ip in settings.excluded_ips:
        return Allow(AllowReason.IP_EXCLUDED)
    return None


def resolve(rules: Sequence[RuleDoc], ctx: ResolveContext) -> ActionDecision:
    """Select the action for one visitor.

    Args:
        rules: The shop's rules in stored (priority-descending) order.
        ctx: Visitor facts, the current instant, shop settings and gate result.

    Returns:
        Allow, Block, Redirect or ShowPopup.
    """
    try:
        gated = _shop_gate(ctx)
        if gated is not None:
            return gated

        active = [rule for rule in rules if rule.is_active]
        ip_rules = [r for r in active if r.match_type == MatchType.IP]
        country_rules = [r for r in active if r.match_type == MatchType.COUNTRY]

        ip_winner = pick_winner(
            ip_rules, lambda r: ip_rule_matches(r, ctx.visitor_ip), ctx.now
        )
        if ip_winner is not None:
            return _ip_decision(ip_winner)

        country = normalize_country(ctx.country_code)
        country_winner = pick_winner(
            country_rules, lambda r: country_rule_matches(r, country), ctx.now
        )
        if country_winner is not None:
            return _country_decision(country_winner, ctx.settings.mode)
    except Exception as e:
        log.error(
            "rule_resolution_failed",
            shop=ctx.settings.shop,
            error=str(e),
            error_type=type(e).__name__,
        )

    return Allow(AllowReason.NO_MATCH)

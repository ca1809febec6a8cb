"""Unit tests for engine.resolver: picking one action per visitor."""

from datetime import datetime, timezone

import pytest
from bson import ObjectId

from engine import (
    Allow,
    AllowReason,
    Block,
    Redirect,
    ResolveContext,
    ShowPopup,
    decision_to_dict,
    filter_live_rules,
    resolve,
)
from engine.resolver import normalize_country
from engine.usage_gate import GateResult
from schemas.models.enums import MatchType, Mode, RuleType
from schemas.models.rule import RuleDoc
from schemas.models.settings import SettingsDoc

SHOP = "demo.myshopify.com"
NOW = datetime(2026, 3, 4, 12, 0, tzinfo=timezone.utc)


# ── Helpers ───────────────────────────────────────────────────────────────────


def _country_rule(codes=("DE",), priority=0, **overrides) -> RuleDoc:
    base = dict(
        id=ObjectId(),
        shop=SHOP,
        name=f"country-{priority}",
        match_type=MatchType.COUNTRY,
        country_codes=list(codes),
        target_url="https://example.de",
        rule_type=RuleType.REDIRECT,
        priority=priority,
    )
    base.update(overrides)
    return RuleDoc(**base)


def _ip_rule(ips=("1.2.3.4",), priority=0, **overrides) -> RuleDoc:
    base = dict(
        id=ObjectId(),
        shop=SHOP,
        name=f"ip-{priority}",
        match_type=MatchType.IP,
        ip_addresses=list(ips),
        target_url="https://example.com/ip",
        rule_type=RuleType.REDIRECT,
        priority=priority,
    )
    base.update(overrides)
    return RuleDoc(**base)


def _ctx(
    country="DE",
    ip="1.2.3.4",
    is_bot=False,
    gate=GateResult(suspended=False),
    **settings_overrides,
) -> ResolveContext:
    settings = SettingsDoc(shop=SHOP, **settings_overrides)
    return ResolveContext(
        visitor_ip=ip,
        country_code=country,
        is_bot=is_bot,
        now=NOW,
        settings=settings,
        gate=gate,
    )


# ── Precedence ────────────────────────────────────────────────────────────────


class TestIpPrecedence:
    def test_ip_block_beats_country_redirect(self):
        country = _country_rule(priority=100)
        ip_block = _ip_rule(priority=0, rule_type=RuleType.BLOCK, target_url="")
        decision = resolve([country, ip_block], _ctx(mode=Mode.AUTO_REDIRECT))
        assert isinstance(decision, Block)
        assert decision.rule_id == ip_block.rule_id
        assert decision.match_type == MatchType.IP

    def test_ip_redirect_is_direct_even_in_popup_mode(self):
        ip_rule = _ip_rule()
        decision = resolve([ip_rule], _ctx(mode=Mode.POPUP))
        assert isinstance(decision, Redirect)
        assert decision.match_type == MatchType.IP
        assert decision.target_url == "https://example.com/ip"

    def test_ip_rule_with_cidr(self):
        decision = resolve([_ip_rule(ips=["10.0.0.0/8"])], _ctx(ip="10.20.30.40"))
        assert isinstance(decision, Redirect)

    def test_non_matching_ip_falls_through_to_country(self):
        decision = resolve(
            [_ip_rule(ips=["9.9.9.9"]), _country_rule()],
            _ctx(mode=Mode.AUTO_REDIRECT),
        )
        assert isinstance(decision, Redirect)
        assert decision.match_type == MatchType.COUNTRY


class TestPriority:
    def test_highest_priority_country_rule_wins(self):
        low = _country_rule(priority=5)
        high = _country_rule(priority=10)
        decision = resolve([low, high], _ctx(mode=Mode.AUTO_REDIRECT))
        assert decision.rule_id == high.rule_id

    def test_tie_goes_to_first_in_stored_order(self):
        first = _country_rule(priority=3, name="first")
        second = _country_rule(priority=3, name="second")
        decision = resolve([first, second], _ctx(mode=Mode.AUTO_REDIRECT))
        assert decision.rule_name == "first"

    def test_highest_priority_ip_rule_wins(self):
        low = _ip_rule(priority=1)
        high = _ip_rule(priority=9, rule_type=RuleType.BLOCK)
        decision = resolve([low, high], _ctx())
        assert isinstance(decision, Block)
        assert decision.rule_id == high.rule_id


# ── Mode handling ─────────────────────────────────────────────────────────────


class TestModes:
    def test_disabled_mode_always_allows(self):
        rules = [_ip_rule(rule_type=RuleType.BLOCK), _country_rule()]
        decision = resolve(rules, _ctx(mode=Mode.DISABLED))
        assert decision == Allow(AllowReason.MODE_DISABLED)

    def test_popup_mode_wraps_country_redirect(self):
        rule = _country_rule()
        decision = resolve([rule], _ctx(mode=Mode.POPUP))
        assert isinstance(decision, ShowPopup)
        assert decision.target_url == "https://example.de"

    def test_auto_redirect_mode_redirects(self):
        decision = resolve([_country_rule()], _ctx(mode=Mode.AUTO_REDIRECT))
        assert isinstance(decision, Redirect)

    def test_country_block_is_block_in_popup_mode(self):
        rule = _country_rule(rule_type=RuleType.BLOCK, target_url="")
        decision = resolve([rule], _ctx(mode=Mode.POPUP))
        assert isinstance(decision, Block)
        assert decision.match_type == MatchType.COUNTRY


# ── Shop-level gates ──────────────────────────────────────────────────────────


class TestGates:
    def test_suspended_usage_allows(self):
        ctx = _ctx(gate=GateResult(suspended=True))
        assert resolve([_ip_rule()], ctx) == Allow(AllowReason.USAGE_SUSPENDED)

    def test_bot_excluded(self):
        ctx = _ctx(is_bot=True, exclude_bots=True)
        assert resolve([_ip_rule()], ctx) == Allow(AllowReason.BOT_EXCLUDED)

    def test_bot_not_excluded_when_setting_off(self):
        ctx = _ctx(is_bot=True, exclude_bots=False)
        assert isinstance(resolve([_ip_rule()], ctx), Redirect)

    def test_excluded_ip_allows(self):
        ctx = _ctx(excluded_ips=["1.2.3.4"])
        assert resolve([_ip_rule()], ctx) == Allow(AllowReason.IP_EXCLUDED)

    def test_excluded_ips_are_literal(self):
        ctx = _ctx(ip="10.0.0.5", excluded_ips=["10.0.0.0/8"])
        decision = resolve([_ip_rule(ips=["10.0.0.0/8"])], ctx)
        assert isinstance(decision, Redirect)


# ── Rule filtering ────────────────────────────────────────────────────────────


class TestFiltering:
    def test_inactive_rules_ignored(self):
        decision = resolve([_country_rule(is_active=False)], _ctx())
        assert decision == Allow(AllowReason.NO_MATCH)

    def test_out_of_window_rule_ignored(self):
        rule = _country_rule(schedule_enabled=True, start_time="00:00", end_time="01:00")
        assert resolve([rule], _ctx()) == Allow(AllowReason.NO_MATCH)

    def test_out_of_window_high_priority_yields_to_live_lower(self):
        asleep = _country_rule(
            priority=10, schedule_enabled=True, start_time="00:00", end_time="01:00"
        )
        awake = _country_rule(priority=1)
        decision = resolve([asleep, awake], _ctx(mode=Mode.AUTO_REDIRECT))
        assert decision.rule_id == awake.rule_id

    @pytest.mark.parametrize("country", [None, "", "XX", "T1", "UNKNOWN", "DEU"])
    def test_unknown_country_matches_nothing(self, country):
        rule = _country_rule(codes=["XX", "T1", "DE"])
        assert resolve([rule], _ctx(country=country)) == Allow(AllowReason.NO_MATCH)

    def test_country_match_is_case_insensitive(self):
        rule = _country_rule(codes=["de"])
        assert isinstance(resolve([rule], _ctx(country="de")), ShowPopup)

    def test_filter_live_rules_preserves_order(self):
        a = _country_rule(priority=9)
        b = _country_rule(is_active=False)
        c = _ip_rule(priority=1)
        d = _country_rule(schedule_enabled=True, start_time="00:00", end_time="01:00")
        assert filter_live_rules([a, b, c, d], NOW) == [a, c]


class TestFailOpen:
    def test_broken_rule_is_skipped(self, mocker):
        good = _country_rule(priority=1)
        bad = _country_rule(priority=5)

        def flaky_match(rule, code):
            if rule is bad:
                raise RuntimeError("boom")
            return True

        mocker.patch("engine.resolver.country_rule_matches", side_effect=flaky_match)
        decision = resolve([bad, good], _ctx(mode=Mode.AUTO_REDIRECT))
        assert decision.rule_id == good.rule_id

    def test_unexpected_failure_allows(self, mocker):
        mocker.patch("engine.resolver.pick_winner", side_effect=RuntimeError("boom"))
        assert resolve([_country_rule()], _ctx()) == Allow(AllowReason.NO_MATCH)


# ── Serialisation ─────────────────────────────────────────────────────────────


class TestDecisionToDict:
    def test_allow(self):
        assert decision_to_dict(Allow(AllowReason.BOT_EXCLUDED)) == {
            "action": "allow",
            "reason": "bot_excluded",
        }

    def test_popup(self):
        d = decision_to_dict(ShowPopup("r1", "EU", "https://eu.example.com"))
        assert d == {
            "action": "popup",
            "ruleId": "r1",
            "ruleName": "EU",
            "matchType": "country",
            "targetUrl": "https://eu.example.com",
        }

    def test_block_has_no_target(self):
        d = decision_to_dict(Block("r2", "Blocked", MatchType.IP))
        assert d["action"] == "block"
        assert "targetUrl" not in d


@pytest.mark.parametrize(
    "raw, expected",
    [(" de ", "DE"), ("XX", None), ("t1", None), ("", None), (None, None), ("USA", None)],
)
def test_normalize_country(raw, expected):
    assert normalize_country(raw) == expected

from engine.decisions import (
    ActionDecision,
    Allow,
    AllowReason,
    Block,
    Redirect,
    ShowPopup,
    decision_to_dict,
)
from engine.ip_matcher import matches
from engine.resolver import ResolveContext, filter_live_rules, resolve
from engine.schedule import is_in_window
from engine.usage_gate import GateResult, check, check_usage

__all__ = [
    "ActionDecision",
    "Allow",
    "AllowReason",
    "Block",
    "Redirect",
    "ShowPopup",
    "decision_to_dict",
    "matches",
    "ResolveContext",
    "filter_live_rules",
    "resolve",
    "is_in_window",
    "GateResult",
    "check",
    "check_usage",
]

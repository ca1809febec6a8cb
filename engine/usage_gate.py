"""
Plan usage gate.

Decides from a usage snapshot whether geolocation actions are suspended
(free plan at or over its limit) and how many visitors of paid-plan overage
are still unbilled. Pure and idempotent: the same snapshot always yields the
same result, so the billing side can recompute it safely before claiming.
"""

from __future__ import annotations

from dataclasses import dataclass

from engine import plans
from schemas.models.enums import PlanKind
from schemas.models.usage import MonthlyUsageDoc


@dataclass(frozen=True)
class GateResult:
    suspended: bool
    overage_visitors: int = 0


OPEN_GATE = GateResult(suspended=False, overage_visitors=0)


def check(
    current_usage: int,
    plan_limit: int,
    plan_kind: PlanKind,
    already_charged: int = 0,
) -> GateResult:
    """Apply the plan rules to a usage snapshot.

    Args:
        current_usage: Billable visitors counted this month.
        plan_limit: Monthly visitor allowance of the plan.
        plan_kind: The shop's current plan.
        already_charged: Overage visitors already billed this month.
    """
    if plan_kind == PlanKind.FREE:
        return GateResult(suspended=current_usage >= plan_limit)

    overage = current_usage - plan_limit - already_charged
    return GateResult(suspended=False, overage_visitors=max(0, overage))


def check_usage(usage: MonthlyUsageDoc, plan_kind: PlanKind) -> GateResult:
    """check() for a persisted counter, with the limit from the plan table."""
    return check(
        usage.total_visitors,
        plans.plan_limit(plan_kind),
        plan_kind,
        already_charged=usage.charged_visitors,
    )

"""
Subscription plan table.

Visitor limits count billable storefront events (redirects and blocks) per
calendar month. Free shops are hard-capped; paid shops keep working past the
limit and are billed for the overage at OVERAGE_RATE per visitor.
"""

from __future__ import annotations

from schemas.models.enums import PlanKind

PLAN_LIMITS: dict[PlanKind, int] = {
    PlanKind.FREE: 100,
    PlanKind.PREMIUM: 750,
    PlanKind.PLUS: 1500,
}

# $100 per 50,000 visitors
OVERAGE_RATE = 100 / 50000


def plan_limit(plan: PlanKind) -> int:
    return PLAN_LIMITS.get(plan, PLAN_LIMITS[PlanKind.FREE])


def overage_amount(overage_visitors: int) -> float:
    """Charge amount for *overage_visitors*, rounded to cents."""
    return round(max(0, overage_visitors) * OVERAGE_RATE, 2)

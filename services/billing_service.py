"""
Overage billing for paid plans.

Claim-then-charge: the overage computed from a usage snapshot is first
claimed with a compare-and-swap on charged_visitors, and only the winner of
the claim creates the usage record. A failed charge releases its claim so
the next run retries. Repeated runs over the same snapshot never charge
twice, and billing failures never surface to callers or visitors.
"""

from __future__ import annotations

from dataclasses import dataclass

from pymongo.errors import PyMongoError

from engine import check_usage
from engine.plans import overage_amount, plan_limit
from infrastructure.billing.protocol import BillingProvider
from repositories.settings_repository import SettingsRepository
from repositories.usage_repository import UsageRepository
from schemas.models.enums import PlanKind
from schemas.models.usage import usage_or_empty
from shared.datetime_utils import Clock, utc_now, year_month
from shared.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class OverageResult:
    charged: bool
    overage_visitors: int = 0
    amount: float = 0.0


NOTHING_CHARGED = OverageResult(charged=False)


class BillingService:
    def __init__(
        self,
        settings: SettingsRepository,
        usage: UsageRepository,
        provider: BillingProvider,
        currency: str = "USD",
        clock: Clock = utc_now,
    ) -> None:
        self._settings = settings
        self._usage = usage
        self._provider = provider
        self._currency = currency
        self._clock = clock

    async def charge_overage(self, shop: str) -> OverageResult:
        ym = year_month(self._clock())
        try:
            settings = await self._settings.get(shop)
            plan = settings.plan if settings is not None else PlanKind.FREE
            if not plan.is_paid:
                return NOTHING_CHARGED

            usage = usage_or_empty(await self._usage.get(shop, ym), shop, ym)
            overage = check_usage(usage, plan).overage_visitors
            if overage <= 0:
                return NOTHING_CHARGED

            claimed = await self._usage.claim_overage(
                shop, ym, usage.charged_visitors, overage
            )
        except PyMongoError as e:
            log.error(
                "billing_usage_read_failed",
                shop=shop,
                error=str(e),
                error_type=type(e).__name__,
            )
            return NOTHING_CHARGED

        if not claimed:
            log.info("billing_claim_lost", shop=shop, year_month=ym)
            return NOTHING_CHARGED

        amount = overage_amount(overage)
        description = (
            f"Overage: {overage} visitors beyond {plan_limit(plan)} limit ({ym})"
        )
        try:
            charged = await self._provider.create_usage_record(
                shop, description, amount, self._currency
            )
        except Exception as e:
            log.error(
                "billing_provider_failed",
                shop=shop,
                error=str(e),
                error_type=type(e).__name__,
            )
            charged = False
        if not charged:
            await self._release(shop, ym, overage)
            return OverageResult(charged=False, overage_visitors=overage, amount=amount)

        log.info(
            "billing_overage_charged",
            shop=shop,
            year_month=ym,
            overage_visitors=overage,
            amount=amount,
        )
        return OverageResult(charged=True, overage_visitors=overage, amount=amount)

    async def _release(self, shop: str, ym: str, overage: int) -> None:
        try:
            await self._usage.release_overage(shop, ym, overage)
            log.warning("billing_claim_released", shop=shop, overage_visitors=overage)
        except PyMongoError as e:
            log.error(
                "billing_claim_release_failed",
                shop=shop,
                overage_visitors=overage,
                error=str(e),
            )

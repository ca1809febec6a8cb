"""BillingProvider protocol — services depend on this, not the concrete implementation."""

from typing import Protocol


class BillingProvider(Protocol):
    async def create_usage_record(
        self, shop: str, description: str, amount: float, currency: str
    ) -> bool: ...

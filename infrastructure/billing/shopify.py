"""Shopify Admin API implementation of BillingProvider.

Usage charges are created with the ``appUsageRecordCreate`` mutation against
the usage-priced line item of the shop's active app subscription. The shop's
offline access token comes from the sessions written at install time.

Returns False (never raises) on any failure; the caller releases its claim
and the next billing run retries.
"""

from typing import Any, Optional

from infrastructure.http_client import HttpClient
from repositories.session_repository import SessionRepository
from shared.logging import get_logger

log = get_logger(__name__)

ACTIVE_SUBSCRIPTION_QUERY = """
query {
  currentAppInstallation {
    activeSubscriptions {
      lineItems {
        id
        plan { pricingDetails { __typename } }
      }
    }
  }
}
"""

USAGE_RECORD_MUTATION = """
mutation appUsageRecordCreate($lineItemId: ID!, $description: String!, $price: MoneyInput!, $idempotencyKey: String) {
  appUsageRecordCreate(
    subscriptionLineItemId: $lineItemId
    description: $description
    price: $price
    idempotencyKey: $idempotencyKey
  ) {
    appUsageRecord { id }
    userErrors { field message }
  }
}
"""


def find_usage_line_item(payload: dict[str, Any]) -> Optional[str]:
    """Return the id of the first usage-priced subscription line item."""
    installation = (payload.get("data") or {}).get("currentAppInstallation") or {}
    for subscription in installation.get("activeSubscriptions") or []:
        for item in subscription.get("lineItems") or []:
            details = (item.get("plan") or {}).get("pricingDetails") or {}
            if details.get("__typename") == "AppUsagePricing":
                return item.get("id")
    return None


class ShopifyBillingProvider:
    def __init__(
        self,
        sessions: SessionRepository,
        http_client: HttpClient,
        api_version: str,
    ) -> None:
        self._sessions = sessions
        self._http = http_client
        self._api_version = api_version

    def _endpoint(self, shop: str) -> str:
        return f"https://{shop}/admin/api/{self._api_version}/graphql.json"

    async def _graphql(
        self, shop: str, token: str, query: str, variables: Optional[dict] = None
    ) -> Optional[dict[str, Any]]:
        response = await self._http.post(
            self._endpoint(shop),
            json={"query": query, "variables": variables or {}},
            headers={"X-Shopify-Access-Token": token},
        )
        if response.status_code != 200:
            log.warning(
                "shopify_graphql_failed",
                shop=shop,
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            return None
        return response.json()

    async def create_usage_record(
        self, shop: str, description: str, amount: float, currency: str
    ) -> bool:
        try:
            session = await self._sessions.get_offline_session(shop)
            if session is None:
                log.warning("billing_no_offline_session", shop=shop)
                return False
            subscription = await self._graphql(
                shop, session.access_token, ACTIVE_SUBSCRIPTION_QUERY
            )
            line_item_id = find_usage_line_item(subscription or {})
            if line_item_id is None:
                log.warning("billing_no_usage_line_item", shop=shop)
                return False

            result = await self._graphql(
                shop,
                session.access_token,
                USAGE_RECORD_MUTATION,
                {
                    "lineItemId": line_item_id,
                    "description": description,
                    "price": {"amount": amount, "currencyCode": currency},
                    "idempotencyKey": f"{shop}:{description}"[:255],
                },
            )
            payload = ((result or {}).get("data") or {}).get("appUsageRecordCreate") or {}
            errors = payload.get("userErrors") or []
            if errors or not payload.get("appUsageRecord"):
                log.warning("billing_usage_record_rejected", shop=shop, errors=errors)
                return False
            log.info(
                "billing_usage_record_created",
                shop=shop,
                amount=amount,
                currency=currency,
            )
            return True
        except Exception as e:
            log.error(
                "billing_usage_record_failed",
                shop=shop,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

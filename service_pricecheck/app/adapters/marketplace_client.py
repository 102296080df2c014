"""
Marketplace sales search client.
"""

import httpx
from typing import Any, Dict, List, Optional

from shared.circuit_breaker import CircuitBreaker, CircuitBreakerOpenException
from shared.errors import ConfigurationError, UpstreamError
from shared.logging import get_logger


SERVICE_NAME = "marketplace"

CONDITION_IDS = {
    "NEW": "1000",
    "USED": "2000|2010|2020|2030|2500",
    "REFURBISHED": "3000",
    "USED_EXCELLENT": "2010",
    "USED_VERY_GOOD": "2020",
    "USED_GOOD": "2030",
    "USED_ACCEPTABLE": "2500",
    "CERTIFIED_REFURBISHED": "3000",
    "MANUFACTURER_REFURBISHED": "3000",
    "SELLER_REFURBISHED": "3000",
    "FOR_PARTS_OR_NOT_WORKING": "7000",
}
DEFAULT_CONDITION_ID = "1000"


def condition_filter(condition: str) -> str:
    """Map a condition name to the marketplace ``conditionIds`` filter."""
    key = condition.strip().upper().replace(" ", "_")
    return f"conditionIds:{{{CONDITION_IDS.get(key, DEFAULT_CONDITION_ID)}}}"


class MarketplaceClient:
    """Searches recent sales on the marketplace with a pre-issued bearer token."""

    def __init__(
        self,
        api_url: str,
        api_token: Optional[str],
        *,
        marketplace_id: str = "EBAY_US",
        timeout: float = 10.0,
        result_limit: int = 10,
        circuit_breaker: Optional[CircuitBreaker] = None,
    ):
        self.api_url = api_url
        self.api_token = api_token
        self.marketplace_id = marketplace_id
        self.timeout = timeout
        self.result_limit = result_limit
        self.logger = get_logger("pricecheck.marketplace_client")
        self.circuit_breaker = circuit_breaker or CircuitBreaker(
            failure_threshold=5,
            recovery_timeout=60.0,
            name="marketplace_api",
        )

    @property
    def is_configured(self) -> bool:
        return bool(self.api_token)

    def _build_params(self, item_name: str, model: Optional[str], brand: Optional[str],
                      condition: Optional[str]) -> Dict[str, Any]:
        terms = [brand, item_name, model]
        params: Dict[str, Any] = {
            "q": " ".join(term.strip() for term in terms if term and term.strip()),
            "fieldgroups": "ITEM_SALES",
            "limit": self.result_limit,
        }
        if condition:
            params["filter"] = condition_filter(condition)
        return params

    async def search_sales(
        self,
        item_name: str,
        *,
        model: Optional[str] = None,
        brand: Optional[str] = None,
        condition: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return item summaries for recent sales matching the query."""
        if not self.is_configured:
            raise ConfigurationError("Missing marketplace API token")

        params = self._build_params(item_name, model, brand, condition)

        async def _search() -> List[Dict[str, Any]]:
            headers = {
                "Authorization": f"Bearer {self.api_token}",
                "X-EBAY-C-MARKETPLACE-ID": self.marketplace_id,
            }
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.get(self.api_url, params=params, headers=headers)

            if response.status_code != 200:
                self.logger.error(
                    "Marketplace API error",
                    status_code=response.status_code,
                    query=params["q"],
                )
                raise UpstreamError(
                    SERVICE_NAME,
                    f"Failed to fetch sales data: {response.status_code}",
                    details={"status_code": response.status_code},
                )

            payload = response.json()
            return payload.get("itemSummaries") or []

        try:
            return await self.circuit_breaker.call(_search)
        except CircuitBreakerOpenException as e:
            raise UpstreamError(
                SERVICE_NAME,
                "Marketplace API temporarily unavailable",
                details={"retry_in_seconds": round(e.retry_in_seconds, 1)},
            ) from e
        except httpx.HTTPError as e:
            self.logger.error("Marketplace request failed", error=str(e), query=params["q"])
            raise UpstreamError(SERVICE_NAME, f"Request failed: {e}") from e

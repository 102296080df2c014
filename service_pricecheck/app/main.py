"""
Price-check service: deal analysis over marketplace sales behind the access gateway.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import Query

from shared.base_service import BaseService
from shared.config import PriceCheckConfig
from shared.errors import ValidationError
from shared.logging import set_client_tier

from service_pricecheck.app.adapters.marketplace_client import MarketplaceClient
from service_pricecheck.app.domain.access_gateway import AccessGateway
from service_pricecheck.app.domain.fingerprint import make_fingerprint
from service_pricecheck.app.domain.price_analysis import summarize_sales
from service_pricecheck.app.ratelimit.token_bucket import Tier


TRUTHY = {"1", "true", "yes", "on"}


def _is_truthy(value: Optional[str]) -> bool:
    return value is not None and value.strip().lower() in TRUTHY


class PriceCheckService(BaseService):
    """Price-check service implementation."""

    def __init__(
        self,
        config: Optional[PriceCheckConfig] = None,
        *,
        gateway: Optional[AccessGateway] = None,
        marketplace_client: Optional[MarketplaceClient] = None,
    ):
        super().__init__("pricecheck", config)
        self.gateway = gateway or AccessGateway.from_config(self.config, metrics=self.metrics)
        self.marketplace_client = marketplace_client or MarketplaceClient(
            self.config.marketplace_api_url,
            self.config.marketplace_api_token,
            marketplace_id=self.config.marketplace_id,
            timeout=self.config.marketplace_timeout_seconds,
            result_limit=self.config.marketplace_result_limit,
        )

        self._setup_price_check_routes()

        self.app.state.pricecheck_service = self

    def _setup_price_check_routes(self):
        """Set up price-check routes."""

        @self.app.get("/")
        async def root():
            """Root endpoint."""
            return {
                "service": "pricecheck",
                "message": "Marketplace price-check access layer",
                "version": "1.0.0",
                "capabilities": ["price_check", "result_cache", "request_pooling", "rate_limiting"],
            }

        @self.app.get("/api/price-check")
        async def price_check(
            item_name: Optional[str] = Query(None, alias="itemName"),
            model: Optional[str] = Query(None),
            brand: Optional[str] = Query(None),
            condition: Optional[str] = Query(None),
            premium: Optional[str] = Query(None),
            priority: int = Query(1, ge=0, le=100),
        ):
            """Average recent sale price and price history for an item."""
            if not item_name or not item_name.strip():
                raise ValidationError("itemName is required", details={"field": "itemName"})

            tier = Tier.PRIVILEGED if _is_truthy(premium) else Tier.STANDARD
            set_client_tier(tier.value)
            fingerprint = make_fingerprint(item_name, model, brand, condition)
            was_cached = self.gateway.cache.contains(fingerprint)

            async def fetch_summary() -> Dict[str, Any]:
                items = await self.marketplace_client.search_sales(
                    item_name,
                    model=model,
                    brand=brand,
                    condition=condition,
                )
                return summarize_sales(item_name, items)

            summary = await self.gateway.fetch(
                fingerprint,
                tier,
                fetch_summary,
                ttl=self.config.cache_ttl_seconds,
                priority=priority,
            )

            self.logger.info(
                "Price check served",
                fingerprint=fingerprint,
                cached=was_cached,
                sample_size=summary.get("sample_size"),
            )
            return {**summary, "cached": was_cached}

        @self.app.get("/api/stats")
        async def api_stats(clear_cache: Optional[str] = Query(None, alias="clearCache")):
            """Cache, pooling and rate limiter statistics."""
            cache_cleared = _is_truthy(clear_cache)
            if cache_cleared:
                self.gateway.clear_cache()
            else:
                self.gateway.cache.prune_expired()

            stats: Dict[str, Any] = self.gateway.stats()
            stats["timestamp"] = datetime.now(timezone.utc).isoformat()
            if cache_cleared:
                stats["cache_cleared"] = True
            return stats

    async def _check_dependencies(self) -> Dict[str, Any]:
        return {
            "marketplace_token": "configured" if self.marketplace_client.is_configured else "missing",
            "marketplace_circuit": self.marketplace_client.circuit_breaker.get_state()["state"],
        }

    async def _on_shutdown(self) -> None:
        await self.gateway.close()


def create_app(config: Optional[PriceCheckConfig] = None):
    """Create FastAPI application."""
    service = PriceCheckService(config)
    return service.app


if __name__ == "__main__":
    service = PriceCheckService()
    service.run()

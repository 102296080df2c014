"""
Access gateway: cache, request pooling and rate limiting composed around one upstream call.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, TYPE_CHECKING

from shared.errors import QuotaExceededError
from shared.logging import get_logger

from service_pricecheck.app.caching.result_cache import MISSING, ResultCache
from service_pricecheck.app.pooling.deduplicator import RequestDeduplicator
from service_pricecheck.app.ratelimit.token_bucket import PriorityRateLimiter, Tier

if TYPE_CHECKING:  # pragma: no cover - imported for typing only
    from shared.config import PriceCheckConfig
    from shared.metrics import MetricsCollector


UpstreamFn = Callable[[], Awaitable[Any]]

CACHE_TYPE = "price_check"


class AccessGateway:
    """
    Protects the upstream marketplace API.

    A request is answered from the result cache when possible. On a miss,
    concurrent requests with the same fingerprint share one pooled call,
    and that call waits for a rate limiter token before the upstream
    function runs. Successful results are cached once, by the pooled call
    itself, so the cache is populated even if every caller has given up.
    """

    def __init__(
        self,
        cache: ResultCache,
        deduplicator: RequestDeduplicator,
        rate_limiter: PriorityRateLimiter,
        *,
        metrics: Optional["MetricsCollector"] = None,
    ):
        self.cache = cache
        self.deduplicator = deduplicator
        self.rate_limiter = rate_limiter
        self.metrics = metrics
        self.logger = get_logger("pricecheck.gateway")

    @classmethod
    def from_config(
        cls,
        config: "PriceCheckConfig",
        *,
        metrics: Optional["MetricsCollector"] = None,
        clock: Callable[[], float] = time.time,
    ) -> "AccessGateway":
        """Build a gateway with fresh components sized from configuration."""
        return cls(
            ResultCache(default_ttl=config.cache_ttl_seconds, clock=clock),
            RequestDeduplicator(grace_period=config.dedup_grace_seconds, clock=clock),
            PriorityRateLimiter(
                max_tokens=config.rate_limit_max_tokens,
                refill_rate=config.rate_limit_refill_rate,
                daily_limit=config.daily_call_limit,
                ticker_interval=config.ticker_interval_ms / 1000,
                privileged_bonus=config.privileged_priority_bonus,
                clock=clock,
            ),
            metrics=metrics,
        )

    async def fetch(
        self,
        fingerprint: str,
        tier: Tier,
        upstream: UpstreamFn,
        *,
        ttl: Optional[float] = None,
        priority: int = 1,
    ) -> Any:
        """Return the result for ``fingerprint``, calling ``upstream`` at most once per pooled miss."""
        tier = Tier(tier)
        cached = self.cache.get(fingerprint)
        if cached is not MISSING:
            self._count("cache_hits_total", cache_type=CACHE_TYPE)
            return cached
        self._count("cache_misses_total", cache_type=CACHE_TYPE)

        if self.deduplicator.is_pending(fingerprint):
            self._count("dedup_attached_total", cache_type=CACHE_TYPE)

        pooled = self.deduplicator.run(
            fingerprint,
            lambda: self._call_upstream(fingerprint, tier, upstream, ttl, priority),
        )
        # Shielded so one caller's timeout never cancels the shared call
        return await asyncio.shield(pooled)

    async def _call_upstream(
        self,
        fingerprint: str,
        tier: Tier,
        upstream: UpstreamFn,
        ttl: Optional[float],
        priority: int,
    ) -> Any:
        try:
            result = await self.rate_limiter.schedule(upstream, tier, priority)
        except QuotaExceededError:
            self._count("quota_rejections_total", tier=tier.value)
            raise
        except Exception as exc:
            self._count("upstream_calls_total", outcome="failure")
            self.logger.error(
                "Upstream call failed",
                fingerprint=fingerprint,
                tier=tier.value,
                error=str(exc),
            )
            raise
        finally:
            self._record_limiter_gauges()

        self._count("upstream_calls_total", outcome="success")
        self.cache.set(fingerprint, result, ttl)
        return result

    def _count(self, metric_name: str, **labels) -> None:
        if self.metrics:
            self.metrics.increment_counter(metric_name, **labels)

    def _record_limiter_gauges(self) -> None:
        if not self.metrics:
            return
        self.metrics.set_gauge("rate_limiter_queue_length", self.rate_limiter.queue_length)
        self.metrics.set_gauge("rate_limiter_available_tokens", self.rate_limiter.available_tokens)

    def stats(self) -> Dict[str, Any]:
        """Composed snapshot for the stats endpoint."""
        return {
            "cache": self.cache.stats(),
            "pooling": self.deduplicator.stats(),
            "rate_limiter": self.rate_limiter.stats(),
        }

    def clear_cache(self) -> None:
        self.cache.clear()

    async def close(self) -> None:
        await self.rate_limiter.close()
        self.deduplicator.close()

"""
Shared configuration management for the price-check access layer.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_MARKETPLACE_API_URL = (
    "https://api.ebay.com/buy/marketplace_insights/v1_beta/item_sales/search"
)


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_prefix="PRICECHECK_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    enable_docs: bool = Field(default=True)


class PriceCheckConfig(BaseConfig):
    """Price-check service configuration."""

    service_name: str = "pricecheck"
    host: str = "0.0.0.0"
    port: int = 8000

    # Result cache
    cache_ttl_seconds: int = Field(default=1800)

    # Request deduplication
    dedup_grace_seconds: float = Field(default=10.0)

    # Rate limiting
    rate_limit_max_tokens: int = Field(default=10)
    rate_limit_refill_rate: float = Field(default=5.0)
    daily_call_limit: int = Field(default=5000)
    ticker_interval_ms: int = Field(default=200)
    privileged_priority_bonus: int = Field(default=10)

    # Upstream marketplace
    marketplace_api_url: str = Field(default=DEFAULT_MARKETPLACE_API_URL)
    marketplace_api_token: Optional[str] = Field(default=None)
    marketplace_id: str = Field(default="EBAY_US")
    marketplace_timeout_seconds: float = Field(default=10.0)
    marketplace_result_limit: int = Field(default=10)


@lru_cache(maxsize=1)
def get_config() -> PriceCheckConfig:
    """Get the process-wide price-check configuration."""
    return PriceCheckConfig()

"""
Shared utilities for the price-check access layer.

This package aggregates common building blocks consumed by the service:

- config: Service configuration via pydantic-settings
- logging: Structured logging with request correlation
- metrics: Prometheus metrics helpers
- errors: Canonical error types and responses
- circuit_breaker: Protection for calls to the upstream marketplace
- base_service: FastAPI application scaffolding

Do not import from service_* packages into shared/.
"""

"""
Price-check service for the marketplace access layer.

The service answers deal-analysis requests from the browser extension while
protecting the scarce, rate-limited upstream marketplace API:
- Result cache: fingerprint-keyed, TTL-expired, in memory
- Request pooling: one in-flight upstream call per fingerprint
- Rate limiting: token bucket with a priority queue and a daily quota

Structure:
- app.main: FastAPI app, routes, and service wiring.
- app.adapters: HTTP client for the upstream marketplace.
- app.caching: Result cache.
- app.pooling: Request deduplication.
- app.ratelimit: Priority token bucket and caller tiers.
- app.domain: Access gateway composition, fingerprints and price analysis.
"""

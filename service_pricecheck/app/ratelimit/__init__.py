"""
Rate limiting package.

Holds the token-bucket limiter that admits upstream calls in priority order
and enforces the daily call quota.
"""

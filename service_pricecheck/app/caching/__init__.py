"""
Result caching package.

Holds the in-memory TTL cache that answers repeated price checks without
spending upstream quota. Entries are never updated in place.
"""

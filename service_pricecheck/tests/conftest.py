"""
Shared fixtures for price-check service tests.
"""

from datetime import datetime

import pytest


class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    """Clock starting at local noon, well away from the midnight rollover."""
    return FakeClock(datetime(2024, 6, 1, 12, 0, 0).timestamp())

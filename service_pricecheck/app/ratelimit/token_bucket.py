"""
Token bucket rate limiter with a priority wait queue and a daily call quota.
"""

import asyncio
import heapq
import itertools
import math
import time
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from shared.errors import ConfigurationError, QuotaExceededError, RateLimitError
from shared.logging import get_logger


DEFAULT_MAX_TOKENS = 10
DEFAULT_REFILL_RATE = 5.0  # tokens per second
DEFAULT_DAILY_LIMIT = 5000
DEFAULT_TICKER_INTERVAL = 0.2  # seconds
DEFAULT_PRIVILEGED_BONUS = 10


class Tier(str, Enum):
    """Caller classification used for quota and priority decisions."""

    STANDARD = "standard"
    PRIVILEGED = "privileged"


@dataclass
class QueuedTask:
    """A task waiting for a token."""

    task: Callable[[], Awaitable[Any]]
    priority: int
    enqueued_at: float
    tier: Tier
    future: "asyncio.Future[Any]"


class PriorityRateLimiter:
    """
    Admission control for the upstream marketplace API.

    Tokens refill lazily from elapsed time. A task runs immediately when a
    token is free and nothing is queued; otherwise it waits in a priority
    queue (highest priority first, FIFO within equal priority) that a
    background ticker drains while tokens are available. Standard-tier
    callers are rejected outright once the daily quota is used up;
    privileged callers are still counted but never rejected.

    All state changes happen synchronously between awaits, so the event
    loop never observes a half-applied update.
    """

    def __init__(
        self,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        refill_rate: float = DEFAULT_REFILL_RATE,
        daily_limit: int = DEFAULT_DAILY_LIMIT,
        ticker_interval: float = DEFAULT_TICKER_INTERVAL,
        privileged_bonus: int = DEFAULT_PRIVILEGED_BONUS,
        clock: Callable[[], float] = time.time,
    ):
        if max_tokens <= 0:
            raise ConfigurationError(f"max_tokens must be positive, got: {max_tokens}")
        if refill_rate <= 0:
            raise ConfigurationError(f"refill_rate must be positive, got: {refill_rate}")
        if daily_limit < 0:
            raise ConfigurationError(f"daily_limit must not be negative, got: {daily_limit}")
        if ticker_interval <= 0:
            raise ConfigurationError(f"ticker_interval must be positive, got: {ticker_interval}")

        self.max_tokens = max_tokens
        self.refill_rate = refill_rate
        self.daily_limit = daily_limit
        self.ticker_interval = ticker_interval
        self.privileged_bonus = privileged_bonus
        self.logger = get_logger("pricecheck.rate_limiter")
        self._clock = clock

        now = clock()
        self._tokens = max_tokens
        self._last_refill = now
        self._daily_calls = 0
        self._daily_window_start: date = date.fromtimestamp(now)

        self._queue: List[Tuple[int, int, QueuedTask]] = []
        self._sequence = itertools.count()
        self._ticker: Optional["asyncio.Task[None]"] = None
        self._running: Set["asyncio.Task[None]"] = set()
        self._closed = False

    @property
    def available_tokens(self) -> int:
        return self._tokens

    @property
    def daily_call_count(self) -> int:
        return self._daily_calls

    @property
    def queue_length(self) -> int:
        return len(self._queue)

    def _refill(self) -> None:
        """Add whole tokens for the time elapsed since the last refill."""
        now = self._clock()
        elapsed_ms = (now - self._last_refill) * 1000
        new_tokens = math.floor(elapsed_ms * self.refill_rate / 1000)

        if new_tokens > 0:
            self._tokens = min(self._tokens + new_tokens, self.max_tokens)
            self._last_refill = now

        today = date.fromtimestamp(now)
        if today > self._daily_window_start:
            self.logger.info(
                "Resetting daily API call count",
                previous_count=self._daily_calls,
                day=today.isoformat(),
            )
            self._daily_calls = 0
            self._daily_window_start = today

    def _admit(self) -> None:
        self._tokens -= 1
        self._daily_calls += 1

    async def schedule(
        self,
        task: Callable[[], Awaitable[Any]],
        tier: Tier = Tier.STANDARD,
        priority: int = 1,
    ) -> Any:
        """
        Run ``task`` once a token is available.

        Raises:
            QuotaExceededError: A standard-tier caller hit the daily limit.
                The task is neither run nor queued.
            RateLimitError: The limiter was closed while the task was queued.
        """
        if self._closed:
            raise RateLimitError("Rate limiter closed")

        tier = Tier(tier)
        self._refill()

        if tier is not Tier.PRIVILEGED and self._daily_calls >= self.daily_limit:
            self.logger.warning(
                "Daily API call limit reached",
                daily_limit=self.daily_limit,
                daily_call_count=self._daily_calls,
            )
            raise QuotaExceededError(self.daily_limit, self._daily_calls)

        effective_priority = priority + (self.privileged_bonus if tier is Tier.PRIVILEGED else 0)

        if self._tokens >= 1 and not self._queue:
            self._admit()
            return await task()

        future = asyncio.get_running_loop().create_future()
        entry = QueuedTask(
            task=task,
            priority=effective_priority,
            enqueued_at=self._clock(),
            tier=tier,
            future=future,
        )
        heapq.heappush(self._queue, (-effective_priority, next(self._sequence), entry))
        self.logger.info(
            "Rate limit reached, queueing request",
            priority=effective_priority,
            tier=tier.value,
            queue_length=len(self._queue),
        )
        self._ensure_ticker()

        if tier is Tier.PRIVILEGED:
            self.tick()

        return await future

    def tick(self) -> int:
        """
        Refill, then admit queued tasks while tokens last. Returns the number admitted.

        Standard-tier entries are re-checked against the daily quota at
        admission and rejected without spending a token once it is used up.
        """
        self._refill()
        admitted = 0

        while self._queue and self._tokens >= 1:
            _, _, entry = heapq.heappop(self._queue)
            if entry.future.done():
                # Caller stopped waiting before admission
                continue

            if entry.tier is not Tier.PRIVILEGED and self._daily_calls >= self.daily_limit:
                self.logger.warning(
                    "Daily API call limit reached while queued",
                    daily_limit=self.daily_limit,
                    daily_call_count=self._daily_calls,
                )
                entry.future.set_exception(QuotaExceededError(self.daily_limit, self._daily_calls))
                continue

            self._admit()
            admitted += 1
            runner = asyncio.ensure_future(self._run_queued(entry))
            self._running.add(runner)
            runner.add_done_callback(self._running.discard)

        return admitted

    async def _run_queued(self, entry: QueuedTask) -> None:
        try:
            result = await entry.task()
        except asyncio.CancelledError:
            entry.future.cancel()
            raise
        except Exception as exc:
            if not entry.future.done():
                entry.future.set_exception(exc)
        else:
            if not entry.future.done():
                entry.future.set_result(result)

    def _ensure_ticker(self) -> None:
        if self._ticker is None or self._ticker.done():
            self._ticker = asyncio.ensure_future(self._run_ticker())

    async def _run_ticker(self) -> None:
        while self._queue:
            await asyncio.sleep(self.ticker_interval)
            self.tick()

    def stats(self) -> Dict[str, int]:
        return {
            "available_tokens": self._tokens,
            "daily_call_count": self._daily_calls,
            "daily_limit_remaining": self.daily_limit - self._daily_calls,
            "queue_length": len(self._queue),
        }

    async def close(self) -> None:
        """Stop the ticker and fail every task that was never admitted."""
        self._closed = True
        if self._ticker is not None and not self._ticker.done():
            self._ticker.cancel()
            try:
                await self._ticker
            except asyncio.CancelledError:
                pass
        self._ticker = None

        pending = [entry for _, _, entry in self._queue]
        self._queue.clear()
        for entry in pending:
            if not entry.future.done():
                entry.future.set_exception(RateLimitError("Rate limiter closed"))
        if pending:
            self.logger.info("Rate limiter closed with queued requests", dropped=len(pending))

"""
Request pooling: at most one in-flight upstream call per fingerprint.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from shared.logging import get_logger


DEFAULT_GRACE_PERIOD_SECONDS = 10.0


@dataclass
class PendingCall:
    """Shared handle for one upstream call and everyone waiting on it."""

    fingerprint: str
    future: "asyncio.Future[Any]"
    created_at: float
    observers: int = field(default=1)
    cleanup_handle: Optional[asyncio.TimerHandle] = None


class RequestDeduplicator:
    """
    Pools concurrent requests that share a fingerprint.

    The first caller invokes the factory; later callers attach to the same
    future until the entry is removed ``grace_period`` seconds after the
    call settles. The returned future is shared, so callers that want to
    time out on their own should wrap it in ``asyncio.shield``.
    """

    def __init__(self, grace_period: float = DEFAULT_GRACE_PERIOD_SECONDS, clock: Callable[[], float] = time.time):
        self.grace_period = grace_period
        self.logger = get_logger("pricecheck.pooling")
        self._clock = clock
        self._pending: Dict[str, PendingCall] = {}
        self._cleanup_handles: Set[asyncio.TimerHandle] = set()

    def run(self, fingerprint: str, factory: Callable[[], Awaitable[Any]]) -> "asyncio.Future[Any]":
        """Attach to the pending call for ``fingerprint`` or start one with ``factory``."""
        existing = self._pending.get(fingerprint)
        if existing is not None:
            existing.observers += 1
            self.logger.debug(
                "Attached to pending request",
                fingerprint=fingerprint,
                observers=existing.observers,
            )
            return existing.future

        loop = asyncio.get_running_loop()
        try:
            future = asyncio.ensure_future(factory())
        except Exception as exc:
            future = loop.create_future()
            future.set_exception(exc)

        call = PendingCall(fingerprint=fingerprint, future=future, created_at=self._clock())
        self._pending[fingerprint] = call
        future.add_done_callback(lambda _: self._schedule_cleanup(call))
        self.logger.debug("Created pending request", fingerprint=fingerprint)
        return future

    def is_pending(self, fingerprint: str) -> bool:
        return fingerprint in self._pending

    def _schedule_cleanup(self, call: PendingCall) -> None:
        loop = asyncio.get_running_loop()
        call.cleanup_handle = loop.call_later(self.grace_period, self._remove, call)
        self._cleanup_handles.add(call.cleanup_handle)

    def _remove(self, call: PendingCall) -> None:
        self._cleanup_handles.discard(call.cleanup_handle)
        # The slot may already hold a newer call for the same fingerprint.
        if self._pending.get(call.fingerprint) is call:
            del self._pending[call.fingerprint]
            self.logger.debug("Released pending request", fingerprint=call.fingerprint)

    def stats(self) -> Dict[str, Any]:
        fingerprints: List[str] = list(self._pending.keys())
        return {
            "active_count": len(fingerprints),
            "active_fingerprints": fingerprints,
            "pooled_observers": sum(call.observers for call in self._pending.values()),
        }

    def close(self) -> None:
        """Cancel cleanup timers and forget every pending entry."""
        for handle in self._cleanup_handles:
            handle.cancel()
        self._cleanup_handles.clear()
        self._pending.clear()

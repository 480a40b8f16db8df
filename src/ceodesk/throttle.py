"""
CEO Desk Request Throttle Cache

Short-lived keyed store that stops identical rapid-fire requests from
hitting the same responder twice. Duplicates join the in-flight call or
replay its completed result.

One instance is created per application and injected where it is needed;
NullThrottleCache disables deduplication.
"""
import asyncio
import logging
import time
from collections import OrderedDict
from enum import Enum
from typing import Any, Callable, Optional

from ceodesk.models import ResponderId

logger = logging.getLogger(__name__)


class ThrottleState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


def make_key(responder_id: ResponderId, content: str, prefix_chars: int = 100) -> str:
    """
    Dedup key: responder plus the first N characters of the instruction it receives.

    Instructions that differ only after the prefix share a key.
    """
    return f"{ResponderId(responder_id).value}:{content[:prefix_chars]}"


class ThrottleEntry:
    """One in-flight or completed call"""

    __slots__ = ("key", "created_at", "resolved_at", "state", "result", "_future")

    def __init__(self, key: str, created_at: float, future: asyncio.Future):
        self.key = key
        self.created_at = created_at
        self.resolved_at: Optional[float] = None
        self.state = ThrottleState.PENDING
        self.result: Optional[str] = None
        self._future = future

    @property
    def is_pending(self) -> bool:
        return self.state == ThrottleState.PENDING

    def is_fresh(self, now: float, window_seconds: float) -> bool:
        """Pending entries are always joinable; completed ones only inside the window"""
        if self.is_pending:
            return True
        return now - self.resolved_at <= window_seconds

    async def wait(self, timeout: float) -> Optional[str]:
        """
        Wait for the in-flight call.

        Returns the result, or None if the call failed or did not finish in time.
        """
        if not self.is_pending:
            return self.result
        try:
            return await asyncio.wait_for(asyncio.shield(self._future), timeout)
        except asyncio.TimeoutError:
            return None

    def _settle(self, result: Optional[str]):
        if not self._future.done():
            self._future.set_result(result)


class ThrottleCache:
    """
    Insertion-ordered map of throttle entries.

    - Completed entries replay for window_seconds after they resolve
    - Stale completed entries are pruned on each insert
    - Beyond max_entries the oldest entries are dropped, consumed or not
    - A single lock serialises every transition, so two callers can never
      both move the same key from absent to pending
    """

    def __init__(
        self,
        window_seconds: float = 1.0,
        max_entries: int = 50,
        key_chars: int = 100,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.window_seconds = window_seconds
        self.max_entries = max_entries
        self.key_chars = key_chars
        self._clock = clock
        self._entries: OrderedDict[str, ThrottleEntry] = OrderedDict()
        self._lock = asyncio.Lock()
        self._stats = {"created": 0, "reused": 0, "resolved": 0, "discarded": 0, "evicted": 0}

    def key_for(self, responder_id: ResponderId, content: str) -> str:
        return make_key(responder_id, content, self.key_chars)

    async def get_or_create(self, key: str) -> tuple[ThrottleEntry, bool]:
        """
        Return (entry, created).

        created=True means the caller owns a new pending entry and must
        resolve() or discard() it. Otherwise the entry is pending (join it)
        or completed and fresh (replay it).
        """
        async with self._lock:
            now = self._clock()
            entry = self._entries.get(key)

            if entry is not None:
                if entry.is_fresh(now, self.window_seconds):
                    self._stats["reused"] += 1
                    return entry, False
                del self._entries[key]

            entry = ThrottleEntry(key, now, asyncio.get_running_loop().create_future())
            self._entries[key] = entry
            self._stats["created"] += 1

            self._prune_unlocked(now)
            self._enforce_capacity_unlocked()
            return entry, True

    async def resolve(self, entry: ThrottleEntry, result: str):
        """Mark an entry completed and wake everyone waiting on it"""
        async with self._lock:
            entry.state = ThrottleState.COMPLETED
            entry.result = result
            entry.resolved_at = self._clock()
            entry._settle(result)
            self._stats["resolved"] += 1

    async def discard(self, entry: ThrottleEntry):
        """Drop a failed entry so the next request retries; waiters proceed on their own"""
        async with self._lock:
            if self._entries.get(entry.key) is entry:
                del self._entries[entry.key]
            entry._settle(None)
            self._stats["discarded"] += 1

    async def evict_expired(self) -> int:
        """Remove completed entries outside the replay window. Returns how many were removed."""
        async with self._lock:
            return self._prune_unlocked(self._clock())

    def _prune_unlocked(self, now: float) -> int:
        stale = [
            key for key, entry in self._entries.items()
            if not entry.is_fresh(now, self.window_seconds)
        ]
        for key in stale:
            del self._entries[key]
        self._stats["evicted"] += len(stale)
        return len(stale)

    def _enforce_capacity_unlocked(self):
        while len(self._entries) > self.max_entries:
            key, _ = self._entries.popitem(last=False)
            self._stats["evicted"] += 1
            logger.debug(f"Throttle entry evicted (capacity)", extra={"key": key[:40]})

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    def get_stats(self) -> dict[str, Any]:
        """Get cache statistics"""
        pending = sum(1 for e in self._entries.values() if e.is_pending)
        return {
            "enabled": True,
            "entries": len(self._entries),
            "pending": pending,
            "completed": len(self._entries) - pending,
            "window_seconds": self.window_seconds,
            "max_entries": self.max_entries,
            **self._stats,
        }


class NullThrottleCache(ThrottleCache):
    """Throttle cache that never deduplicates"""

    def __init__(self, key_chars: int = 100):
        super().__init__(key_chars=key_chars)

    async def get_or_create(self, key: str) -> tuple[ThrottleEntry, bool]:
        entry = ThrottleEntry(key, self._clock(), asyncio.get_running_loop().create_future())
        return entry, True

    async def resolve(self, entry: ThrottleEntry, result: str):
        entry.state = ThrottleState.COMPLETED
        entry.result = result
        entry.resolved_at = self._clock()
        entry._settle(result)

    async def discard(self, entry: ThrottleEntry):
        entry._settle(None)

    async def evict_expired(self) -> int:
        return 0

    def get_stats(self) -> dict[str, Any]:
        return {"enabled": False, "entries": 0}

"""In-memory sliding window store.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Coroutine-safe: one asyncio lock serializes record-and-count.
- Idle keys are swept periodically, so distinct client keys cannot grow the
  map without bound.
"""

from __future__ import annotations

import asyncio
from collections import deque

from grammar_gateway.adapters.rate_limit.base import AbstractWindowStore, WindowSnapshot


class InMemoryWindowStore(AbstractWindowStore):
    """Window store keeping one deque of timestamps per key.

    Intended for tests and single-instance development. Production
    deployments with more than one gateway process use the Redis store.
    """

    def __init__(self, *, sweep_interval_ms: int = 1_000) -> None:
        """Initialize the store.

        Args:
            sweep_interval_ms: Minimum time between sweeps of idle keys.

        Raises:
            ValueError: If sweep_interval_ms is negative.
        """
        if sweep_interval_ms < 0:
            raise ValueError("sweep_interval_ms must be >= 0")

        self._lock = asyncio.Lock()
        self._entries: dict[str, deque[int]] = {}
        # Per key: the instant its newest entry leaves the window
        self._expires_at: dict[str, int] = {}
        self._sweep_interval_ms = sweep_interval_ms
        self._next_sweep_ms = 0

    async def record_and_count(
        self,
        key: str,
        *,
        now_ms: int,
        window_ms: int,
        cap: int,
    ) -> WindowSnapshot:
        if not key:
            raise ValueError("key must be a non-empty string")
        if cap < 1:
            raise ValueError("cap must be >= 1")

        cutoff = now_ms - window_ms
        async with self._lock:
            if now_ms >= self._next_sweep_ms:
                self._sweep(now_ms)

            entries = self._entries.setdefault(key, deque())
            # (now - window, now]: an entry exactly one window old is expired
            while entries and entries[0] <= cutoff:
                entries.popleft()
            entries.append(now_ms)
            while len(entries) > cap:
                entries.popleft()
            self._expires_at[key] = now_ms + window_ms
            return WindowSnapshot(count=len(entries), oldest_ms=entries[0])

    def _sweep(self, now_ms: int) -> None:
        """Drop keys whose every entry has left its window. Caller holds the lock."""
        idle = [key for key, expires_at in self._expires_at.items() if expires_at <= now_ms]
        for key in idle:
            del self._entries[key]
            del self._expires_at[key]
        self._next_sweep_ms = now_ms + self._sweep_interval_ms

    def size(self, key: str) -> int:
        """Number of timestamps currently held for ``key`` (expired ones included)."""
        return len(self._entries.get(key, ()))

    def key_count(self) -> int:
        """Number of keys currently tracked."""
        return len(self._entries)

    async def close(self) -> None:
        self._entries.clear()
        self._expires_at.clear()

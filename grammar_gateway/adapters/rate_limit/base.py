"""Rate limiter interfaces.

The limiter depends on :class:`AbstractWindowStore` (not a concrete store)
so the shared Redis store can be swapped for the in-memory one in tests and
single-process deployments.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RatePolicy:
    """Quota bound to a route at configuration time.

    Attributes:
        max_requests: Requests admitted per window.
        window_seconds: Length of the trailing window.
    """

    max_requests: int
    window_seconds: int

    def __post_init__(self) -> None:
        if self.max_requests < 1:
            raise ValueError("max_requests must be >= 1")
        if self.window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

    @property
    def window_ms(self) -> int:
        return self.window_seconds * 1000


@dataclass(frozen=True)
class LimitDecision:
    """Result of a limiter check.

    Attributes:
        allowed: Whether the request may proceed.
        limit: Max requests per window for the route.
        remaining: Requests left in the current window, never negative.
        reset_at: UNIX epoch milliseconds at which the oldest counted
            request leaves the window.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int

    def retry_after_seconds(self, now_ms: int) -> int:
        """Whole seconds until ``reset_at``, rounded up, never negative."""
        return max(0, -(-(self.reset_at - now_ms) // 1000))


@dataclass(frozen=True)
class WindowSnapshot:
    """What the store saw after recording one request.

    Attributes:
        count: Timestamps inside the window, the new one included.
        oldest_ms: Oldest timestamp still inside the window.
    """

    count: int
    oldest_ms: int


class AbstractWindowStore(ABC):
    """Interface for the shared per-key timestamp store."""

    @abstractmethod
    async def record_and_count(
        self,
        key: str,
        *,
        now_ms: int,
        window_ms: int,
        cap: int,
    ) -> WindowSnapshot:
        """Record ``now_ms`` under ``key`` and count what is still in the window.

        Implementations must perform expiry, recording, trimming and counting
        as one atomic step with respect to other callers on the same key.

        Args:
            key: Fully qualified window key.
            now_ms: Current UNIX time in milliseconds.
            window_ms: Window length in milliseconds.
            cap: Maximum number of timestamps kept for the key (newest win).

        Returns:
            WindowSnapshot after the recording.

        Raises:
            WindowStoreError: If the store cannot be reached or misbehaves.
        """
        raise NotImplementedError

    async def connect(self) -> None:
        """Open connections; called once from the application lifespan."""

    async def close(self) -> None:
        """Release connections; called once on shutdown."""

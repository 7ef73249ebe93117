"""Sliding window rate limiter.

Every call records a timestamp for ``(route_id, client_key)`` and counts the
timestamps inside the trailing window, allowed or not, so hammering a route
while throttled keeps the client throttled.

The window is half-open, ``(now - window, now]``, not the closed
``[now - window, now]``: a timestamp recorded exactly one window ago no
longer counts, so it leaves the window exactly at ``reset_at``. Both stores
expire with ``<= now - window``. Counting is exact because the store records
and counts atomically; there is no race margin.
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Mapping

from grammar_gateway.adapters.rate_limit.base import (
    AbstractWindowStore,
    LimitDecision,
    RatePolicy,
)
from grammar_gateway.core.config import StoreFailurePolicy
from grammar_gateway.core.errors import RateLimitStoreAppError, WindowStoreError

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def build_window_key(route_id: str, client_key: str) -> str:
    """Namespaced store key; routes never share counters."""
    return f"{route_id}:ip:{client_key}"


class SlidingWindowRateLimiter:
    """Per-route, per-client sliding window limiter.

    The store is injected so tests can substitute an in-memory fake and
    production can share one Redis across gateway instances.
    """

    def __init__(
        self,
        store: AbstractWindowStore,
        policies: Mapping[str, RatePolicy],
        *,
        clock: Callable[[], int] = _now_ms,
        failure_policy: StoreFailurePolicy = StoreFailurePolicy.CLOSED,
    ) -> None:
        """Initialize the limiter.

        Args:
            store: Window store holding request timestamps.
            policies: Route id to policy mapping.
            clock: Time source returning UNIX time in milliseconds.
            failure_policy: Behaviour when the store raises WindowStoreError.

        Raises:
            ValueError: If no policies are given.
        """
        if not policies:
            raise ValueError("at least one route policy is required")

        self._store = store
        self._policies = dict(policies)
        self._clock = clock
        self._failure_policy = StoreFailurePolicy(failure_policy)

    @property
    def store(self) -> AbstractWindowStore:
        return self._store

    def policy_for(self, route_id: str) -> RatePolicy:
        try:
            return self._policies[route_id]
        except KeyError:
            raise ValueError(f"no rate policy configured for route '{route_id}'") from None

    def now_ms(self) -> int:
        return self._clock()

    async def check(self, route_id: str, client_key: str) -> LimitDecision:
        """Record one request and decide whether it is admitted.

        Args:
            route_id: Route the request targets.
            client_key: Caller identity (network origin).

        Returns:
            LimitDecision with quota metadata for response headers.

        Raises:
            ValueError: If route_id has no configured policy.
            RateLimitStoreAppError: If the store is down and the failure
                policy is ``error``.
        """
        policy = self.policy_for(route_id)
        now = self._clock()
        key = build_window_key(route_id, client_key or "unknown")

        try:
            snapshot = await self._store.record_and_count(
                key,
                now_ms=now,
                window_ms=policy.window_ms,
                cap=policy.max_requests + 1,
            )
        except WindowStoreError as exc:
            return self._on_store_failure(route_id, policy, now, exc)

        allowed = snapshot.count <= policy.max_requests
        return LimitDecision(
            allowed=allowed,
            limit=policy.max_requests,
            remaining=max(0, policy.max_requests - snapshot.count),
            reset_at=snapshot.oldest_ms + policy.window_ms,
        )

    def _on_store_failure(
        self,
        route_id: str,
        policy: RatePolicy,
        now: int,
        exc: WindowStoreError,
    ) -> LimitDecision:
        logger.error(
            "rate_limit.store_unavailable",
            extra={
                "route_id": route_id,
                "failure_policy": self._failure_policy.value,
                "error_msg": str(exc),
            },
        )

        if self._failure_policy is StoreFailurePolicy.ERROR:
            raise RateLimitStoreAppError(
                code="rate_limit_store_unavailable",
                message="Rate limit store unavailable",
                details={"route_id": route_id},
            ) from exc

        allowed = self._failure_policy is StoreFailurePolicy.OPEN
        return LimitDecision(
            allowed=allowed,
            limit=policy.max_requests,
            remaining=policy.max_requests - 1 if allowed else 0,
            reset_at=now + policy.window_ms,
        )

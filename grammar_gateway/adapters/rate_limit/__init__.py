"""Rate limiting adapters.

A sliding window limiter over a pluggable window store: Redis for shared,
multi-instance deployments and an in-memory store for tests.
"""

from grammar_gateway.adapters.rate_limit.base import (
    AbstractWindowStore,
    LimitDecision,
    RatePolicy,
    WindowSnapshot,
)
from grammar_gateway.adapters.rate_limit.factory import create_window_store
from grammar_gateway.adapters.rate_limit.in_memory import InMemoryWindowStore
from grammar_gateway.adapters.rate_limit.redis_store import RedisWindowStore
from grammar_gateway.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter

__all__ = [
    "AbstractWindowStore",
    "InMemoryWindowStore",
    "LimitDecision",
    "RatePolicy",
    "RedisWindowStore",
    "SlidingWindowRateLimiter",
    "WindowSnapshot",
    "create_window_store",
]

"""Rate limiting dependency for FastAPI routes.

This module wires the sliding window limiter into the HTTP layer.

Design goals:
- Minimal coupling: routes depend on a dependency factory only.
- Explicit state: the limiter lives on ``app.state`` (built in the app
  factory), never in a module global, so tests inject their own store.
- Every response that went through the limiter carries the quota triad,
  including errors rendered by the exception handlers.

Client identity is the network origin: first entry of X-Forwarded-For,
else the socket peer, else "unknown".
"""

from __future__ import annotations

import hashlib
import logging
from typing import Awaitable, Callable, Mapping

from fastapi import Request, Response

from grammar_gateway.adapters.rate_limit.base import LimitDecision, RatePolicy
from grammar_gateway.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from grammar_gateway.core.config import AppSettings, settings
from grammar_gateway.core.errors import RateLimitedAppError

logger = logging.getLogger(__name__)

ANALYZE_ROUTE = "analyze"
GREETING_ROUTE = "greeting"

UNKNOWN_CLIENT = "unknown"


def build_route_policies(app_settings: AppSettings | None = None) -> dict[str, RatePolicy]:
    """Policies for the two routes; they never share counters."""

    cfg = app_settings or settings.app
    return {
        ANALYZE_ROUTE: RatePolicy(
            max_requests=cfg.analyze_rate_limit_requests,
            window_seconds=cfg.analyze_rate_limit_window_seconds,
        ),
        GREETING_ROUTE: RatePolicy(
            max_requests=cfg.greeting_rate_limit_requests,
            window_seconds=cfg.greeting_rate_limit_window_seconds,
        ),
    }


def get_client_key(request: Request) -> str:
    """Derive the rate limit partition key from the caller's network origin.

    Not unique per physical client (shared proxies collapse into one key).
    """

    forwarded_for = request.headers.get("x-forwarded-for") or ""
    first_hop = forwarded_for.split(",")[0].strip()
    if first_hop:
        return first_hop
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def _hash_limiter_key(key: str) -> str:
    """Hash the client key for logging without exposing addresses."""
    return hashlib.sha256(key.encode()).hexdigest()[:16]


def rate_limit_headers(decision: LimitDecision) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(decision.limit),
        "X-RateLimit-Remaining": str(decision.remaining),
        "X-RateLimit-Reset": str(decision.reset_at),
    }


def get_rate_limiter(request: Request) -> SlidingWindowRateLimiter:
    return request.app.state.rate_limiter


def enforce_rate_limit(
    route_id: str,
    *,
    plain_text_denial: bool = False,
) -> Callable[[Request, Response], Awaitable[None]]:
    """Build a FastAPI dependency that charges one request to ``route_id``.

    Args:
        route_id: Key of the route's policy.
        plain_text_denial: Render the 429 as plain text instead of JSON.

    Returns:
        Dependency callable for ``Depends``.
    """

    async def dependency(request: Request, response: Response) -> None:
        """Consume one unit of the caller's quota; raise 429 when exhausted.

        Raises:
            RateLimitedAppError: When the caller exceeded the route's policy.
        """

        if not settings.app.rate_limit_enabled:
            return

        limiter = get_rate_limiter(request)
        client_key = get_client_key(request)
        decision = await limiter.check(route_id, client_key)

        request.state.rate_limit = decision
        response.headers.update(rate_limit_headers(decision))

        log_extra = {
            "route_id": route_id,
            "key_hash": _hash_limiter_key(client_key),
            "limit": decision.limit,
            "remaining": decision.remaining,
            "reset_at": decision.reset_at,
        }
        if decision.allowed:
            logger.info("rate_limit.allowed", extra=log_extra)
            return

        retry_after = decision.retry_after_seconds(limiter.now_ms())
        logger.warning("rate_limit.exceeded", extra={**log_extra, "retry_after_s": retry_after})

        raise RateLimitedAppError(
            code="rate_limited",
            message="Too Many Requests",
            details={"route_id": route_id, "retry_after": retry_after},
            decision=decision,
            plain_text=plain_text_denial,
        )

    return dependency


def headers_from_state(request: Request) -> Mapping[str, str]:
    """Quota headers for a request the limiter already saw, else nothing."""

    decision = getattr(request.state, "rate_limit", None)
    if decision is None:
        return {}
    return rate_limit_headers(decision)

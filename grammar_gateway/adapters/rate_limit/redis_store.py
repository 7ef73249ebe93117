"""Redis-backed sliding window store.

Each key is a sorted set whose scores are request timestamps in
milliseconds. Expiry, recording, trimming and counting run inside one
MULTI/EXEC transaction, so concurrent gateway instances never undercount.
"""

from __future__ import annotations

import logging
import uuid

import redis.asyncio as redis
from redis.exceptions import RedisError

from grammar_gateway.adapters.rate_limit.base import AbstractWindowStore, WindowSnapshot
from grammar_gateway.core.errors import WindowStoreError

logger = logging.getLogger(__name__)


class RedisWindowStore(AbstractWindowStore):
    """Window store shared by every gateway instance through Redis."""

    def __init__(
        self,
        url: str,
        *,
        key_prefix: str = "ratelimit:",
        socket_timeout: float = 2.0,
        connect_timeout: float = 2.0,
        client: redis.Redis | None = None,
    ) -> None:
        """Initialize the store.

        Args:
            url: Redis connection URL.
            key_prefix: Namespace prepended to every window key.
            socket_timeout: Per-command socket timeout in seconds.
            connect_timeout: Connection timeout in seconds.
            client: Pre-built client (tests); skips URL-based construction.
        """
        self._url = url
        self._key_prefix = key_prefix
        self._socket_timeout = socket_timeout
        self._connect_timeout = connect_timeout
        self._client = client

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            self._client = redis.from_url(
                self._url,
                decode_responses=True,
                socket_timeout=self._socket_timeout,
                socket_connect_timeout=self._connect_timeout,
                health_check_interval=30,
            )
        return self._client

    async def connect(self) -> None:
        try:
            await self.client.ping()
        except RedisError as exc:
            # Startup must not depend on the store; the failure policy covers requests.
            logger.warning(
                "window_store.unavailable_at_startup",
                extra={"error_type": type(exc).__name__},
            )
            return
        logger.info("window_store.connected", extra={"backend": "redis"})

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

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

        full_key = f"{self._key_prefix}{key}"
        # Unique member so two requests in the same millisecond both count
        member = f"{now_ms}-{uuid.uuid4().hex}"

        try:
            async with self.client.pipeline(transaction=True) as pipe:
                # Inclusive bound: an entry exactly one window old is expired
                pipe.zremrangebyscore(full_key, "-inf", now_ms - window_ms)
                pipe.zadd(full_key, {member: now_ms})
                pipe.zremrangebyrank(full_key, 0, -(cap + 1))
                pipe.zcard(full_key)
                pipe.zrange(full_key, 0, 0, withscores=True)
                pipe.pexpire(full_key, window_ms)
                results = await pipe.execute()
        except RedisError as exc:
            raise WindowStoreError(f"window store unavailable: {type(exc).__name__}") from exc

        count = int(results[3])
        oldest = results[4]
        oldest_ms = int(oldest[0][1]) if oldest else now_ms
        return WindowSnapshot(count=count, oldest_ms=oldest_ms)

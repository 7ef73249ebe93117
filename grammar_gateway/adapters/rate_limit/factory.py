"""Factory for the configured window store backend."""

from grammar_gateway.adapters.rate_limit.base import AbstractWindowStore
from grammar_gateway.adapters.rate_limit.in_memory import InMemoryWindowStore
from grammar_gateway.adapters.rate_limit.redis_store import RedisWindowStore
from grammar_gateway.core.config import settings
from grammar_gateway.core.errors import ConfigurationAppError


def create_window_store() -> AbstractWindowStore:
    """Instantiate the window store selected by ``REDIS_BACKEND``.

    Returns:
        AbstractWindowStore: Configured store (not yet connected).

    Raises:
        ConfigurationAppError: If the backend name is unknown.
    """
    backend = settings.redis.backend.lower()

    if backend == "redis":
        return RedisWindowStore(
            settings.redis.url,
            key_prefix=settings.redis.key_prefix,
            socket_timeout=settings.redis.socket_timeout_seconds,
            connect_timeout=settings.redis.connect_timeout_seconds,
        )

    if backend == "memory":
        return InMemoryWindowStore()

    raise ConfigurationAppError(
        code="window_store_unknown_backend",
        message=f"Unknown window store backend: '{backend}'. Supported backends: redis, memory",
    )

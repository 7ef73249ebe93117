from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and
the rate limiting collaborators) so tests can build an app around an
in-memory window store and a fake upstream client.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator, Callable

from fastapi import FastAPI

from grammar_gateway.adapters.llm.base import AbstractLLMClient
from grammar_gateway.adapters.rate_limit.base import AbstractWindowStore
from grammar_gateway.adapters.rate_limit.factory import create_window_store
from grammar_gateway.adapters.rate_limit.sliding_window import SlidingWindowRateLimiter
from grammar_gateway.api.routes import grammar_router, greeting_router, health_router
from grammar_gateway.core.config import settings
from grammar_gateway.core.exception_handlers import setup_exception_handlers
from grammar_gateway.core.logging import configure_logging
from grammar_gateway.core.middleware import request_id_middleware
from grammar_gateway.core.openapi import apply_openapi_customizations
from grammar_gateway.core.rate_limit import build_route_policies
from grammar_gateway.services.analysis_service import AnalysisService


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the window store on startup and release it on shutdown."""
    store: AbstractWindowStore = app.state.rate_limiter.store
    await store.connect()
    try:
        yield
    finally:
        await store.close()


def create_app(
    *,
    window_store: AbstractWindowStore | None = None,
    llm_client: AbstractLLMClient | None = None,
    clock: Callable[[], int] | None = None,
    configure_logs: bool = True,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        window_store: Store for the limiter; defaults to the configured backend.
        llm_client: Upstream client; defaults to one built from settings on
            first use of the analysis route.
        clock: Millisecond clock for the limiter (tests).
        configure_logs: Install the JSON logging handlers on the root logger.

    Returns:
        Configured app with middleware, handlers, routers and docs.
    """
    # Logging first so subsequent init logs are formatted as desired
    if configure_logs:
        configure_logging(settings.log)

    app = FastAPI(
        title="Grammar Gateway",
        description=(
            "Rate-limited gateway counting grammatical, spelling and punctuation "
            "errors in a text through an upstream language model. Every response "
            "carries X-RateLimit-Limit, X-RateLimit-Remaining and X-RateLimit-Reset."
        ),
        version="0.1.0",
        license_info={
            "name": "MIT License",
            "url": "https://opensource.org/licenses/MIT",
        },
        lifespan=lifespan,
    )

    limiter_kwargs = {"failure_policy": settings.app.rate_limit_store_failure_policy}
    if clock is not None:
        limiter_kwargs["clock"] = clock
    app.state.rate_limiter = SlidingWindowRateLimiter(
        window_store or create_window_store(),
        build_route_policies(settings.app),
        **limiter_kwargs,
    )
    app.state.analysis_service = (
        AnalysisService(llm=llm_client, timeout_seconds=settings.app.upstream_deadline_seconds)
        if llm_client is not None
        else None
    )

    # Middleware
    app.middleware("http")(request_id_middleware)

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(grammar_router)
    app.include_router(greeting_router)
    app.include_router(health_router)

    # OpenAPI customizations (tags, rate limit headers)
    apply_openapi_customizations(app)

    return app

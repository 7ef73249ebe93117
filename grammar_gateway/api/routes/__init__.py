from __future__ import annotations

from grammar_gateway.api.routes.grammar import router as grammar_router
from grammar_gateway.api.routes.greeting import router as greeting_router
from grammar_gateway.api.routes.health import router as health_router

__all__ = ["grammar_router", "greeting_router", "health_router"]

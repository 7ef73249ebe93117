from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from grammar_gateway.core.config import settings
from grammar_gateway.core.rate_limit import GREETING_ROUTE, enforce_rate_limit

router = APIRouter(tags=["Greeting"])

ANY_METHOD = ["GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE", "CONNECT"]


@router.api_route(
    settings.app.hello_path,
    methods=ANY_METHOD,
    response_class=PlainTextResponse,
    dependencies=[Depends(enforce_rate_limit(GREETING_ROUTE, plain_text_denial=True))],
)
async def greeting() -> str:
    """Fixed plain text greeting, rate limited separately from the analysis route."""

    return settings.app.greeting_text

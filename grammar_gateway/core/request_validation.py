"""Inbound payload validation for the analysis route.

Runs after the rate limit check and before any upstream work. Valid text is
passed through untouched: no trimming, no encoding normalization.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Mapping

from fastapi import Request

from grammar_gateway.core.config import settings
from grammar_gateway.core.errors import ErrorKind, ValidationAppError
from grammar_gateway.schemas.analysis import AnalysisRequest

logger = logging.getLogger(__name__)

MALFORMED_MESSAGE = 'Provide body { "text": string }'


def validate_analysis_request(
    raw_body: Any,
    *,
    max_chars: int | None = None,
) -> AnalysisRequest:
    """Turn an untyped JSON body into an AnalysisRequest.

    Args:
        raw_body: Decoded JSON body (anything).
        max_chars: Length cap; defaults to ``APP_MAX_TEXT_CHARS`` (4000).

    Returns:
        AnalysisRequest holding the text unchanged.

    Raises:
        ValidationAppError: MALFORMED_INPUT when the body is not an object or
            ``text`` is missing, empty or not a string; PAYLOAD_TOO_LARGE when
            the text is longer than the cap.
    """
    limit = max_chars if max_chars is not None else settings.app.max_text_chars

    text = raw_body.get("text") if isinstance(raw_body, Mapping) else None
    if not isinstance(text, str) or not text:
        logger.info(
            "validation.malformed_input",
            extra={"field_type": type(text).__name__},
        )
        raise ValidationAppError(
            code="malformed_input",
            message=MALFORMED_MESSAGE,
            details={"field_type": type(text).__name__},
            error_kind=ErrorKind.MALFORMED_INPUT,
        )

    if len(text) > limit:
        logger.info(
            "validation.payload_too_large",
            extra={"actual_chars": len(text), "max_chars": limit},
        )
        raise ValidationAppError(
            code="payload_too_large",
            message=f"Text too long (max {limit} chars)",
            details={"actual_chars": len(text), "max_chars": limit},
            error_kind=ErrorKind.PAYLOAD_TOO_LARGE,
        )

    return AnalysisRequest(text=text, max_length=limit)


async def read_json_body(request: Request) -> Any:
    """Decode the request body as JSON; undecodable bodies become ``{}``.

    An empty object then fails validation as MALFORMED_INPUT, which is the
    answer a client sending garbage should get.
    """
    raw = await request.body()
    if not raw:
        return {}
    try:
        return json.loads(raw)
    except (ValueError, RecursionError):
        logger.info("validation.undecodable_body", extra={"body_bytes": len(raw)})
        return {}

"""Tests for sensitive data filtering in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

from grammar_gateway.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    redact,
    set_request_id,
)


def _capture(name: str) -> tuple[logging.Logger, StringIO]:
    logger = logging.getLogger(name)
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)
    return logger, stream


def test_sensitive_filter_redacts_api_keys():
    """Ensure SensitiveDataFilter redacts API key fields."""

    logger, stream = _capture("test_redaction")

    logger.info(
        "test_event",
        extra={
            "api_key": "sk-secret-123",
            "x-api-key": "another-secret",
            "safe_field": "visible",
        },
    )

    output = stream.getvalue()

    assert "sk-secret-123" not in output
    assert "another-secret" not in output
    assert "[REDACTED]" in output
    assert "visible" in output


def test_sensitive_filter_redacts_analyzed_text():
    """Ensure the submitted text and the upstream answer never reach logs."""

    logger, stream = _capture("test_text_redaction")

    logger.info(
        "analysis_event",
        extra={
            "text": "Мой секретный черновик письма",
            "output_text": '{"errorCount": 3}',
            "text_chars": 29,
        },
    )

    output = stream.getvalue()

    assert "секретный" not in output
    assert "errorCount" not in output
    assert "[REDACTED]" in output
    assert "text_chars" in output


def test_sensitive_filter_allows_safe_fields():
    """Verify safe fields pass through unmodified."""

    logger, stream = _capture("test_safe_fields")

    logger.info(
        "safe_event",
        extra={
            "route_id": "analyze",
            "key_hash": "0123456789abcdef",
            "remaining": 29,
            "duration_ms": 150.5,
        },
    )

    output = stream.getvalue()

    assert "analyze" in output
    assert "0123456789abcdef" in output
    assert "29" in output
    assert "[REDACTED]" not in output


def test_sensitive_filter_redacts_nested_dicts():
    """Ensure nested sensitive fields are redacted."""

    logger, stream = _capture("test_nested")

    logger.info(
        "nested_event",
        extra={
            "headers": {
                "authorization": "Bearer secret-key",
                "user-agent": "pytest",
            },
            "safe_data": {
                "count": 5,
                "type": "test",
            },
        },
    )

    output = stream.getvalue()

    assert "secret-key" not in output
    assert "[REDACTED]" in output
    assert "pytest" in output


def test_json_formatter_keeps_cyrillic_readable_and_adds_request_id():
    logger, stream = _capture("test_request_id")

    set_request_id("req-123")
    try:
        logger.info("Превышен лимит запросов")
    finally:
        clear_request_id()

    record = json.loads(stream.getvalue())

    assert record["message"] == "Превышен лимит запросов"
    assert record["request_id"] == "req-123"
    assert record["level"] == "info"


def test_redact_walks_lists_and_keeps_shape():
    value = {
        "messages": [{"role": "user", "text": "черновик"}, {"role": "system", "prompt": "p"}],
        "limits": (30, 600),
    }

    assert redact(value) == {
        "messages": [{"role": "user", "text": "[REDACTED]"}, {"role": "system", "prompt": "[REDACTED]"}],
        "limits": (30, 600),
    }

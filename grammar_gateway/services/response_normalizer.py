"""Turns the upstream's loosely structured output into an AnalysisResult.

The upstream is asked for ``{"errorCount": <int>}`` but is free text in
practice. Parsing is two-tier: a JSON document first, then the first run of
digits in the text, then zero. ``normalize`` never raises.
"""

from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from typing import Any

from grammar_gateway.adapters.llm.base import UpstreamRawResponse
from grammar_gateway.schemas.analysis import AnalysisResult

_FIRST_INTEGER = re.compile(r"-?\d+")


@dataclass(frozen=True)
class ParsedJson:
    value: Any


@dataclass(frozen=True)
class ScannedDigits:
    value: int


@dataclass(frozen=True)
class DefaultZero:
    value: int = 0


ParseOutcome = ParsedJson | ScannedDigits | DefaultZero


def _raw_text(raw: UpstreamRawResponse | str | None) -> str:
    if raw is None:
        return ""
    if isinstance(raw, UpstreamRawResponse):
        return raw.text or ""
    if isinstance(raw, str):
        return raw
    return str(raw)


def parse_raw(raw: UpstreamRawResponse | str | None) -> ParseOutcome:
    """Classify the upstream output by which parsing tier succeeded.

    A JSON document wins even when ``errorCount`` is missing or unusable; the
    value is clamped later. Digits are only scanned when the text is not JSON.
    """
    text = _raw_text(raw)

    try:
        document = json.loads(text)
    except (ValueError, RecursionError):
        match = _FIRST_INTEGER.search(text)
        if match is None:
            return DefaultZero()
        try:
            return ScannedDigits(int(match.group(0)))
        except ValueError:
            # digit run longer than the interpreter's int conversion limit
            return DefaultZero()

    if isinstance(document, dict):
        return ParsedJson(document.get("errorCount", 0))
    return ParsedJson(0)


def coerce_count(value: Any) -> int:
    """Clamp anything to a non-negative int; unusable values become 0."""
    if isinstance(value, bool) or value is None:
        return 0
    if isinstance(value, str):
        try:
            value = float(value.strip())
        except ValueError:
            return 0
    if isinstance(value, int):
        return value if value >= 0 else 0
    if isinstance(value, float):
        if not math.isfinite(value) or value < 0:
            return 0
        return int(value)
    return 0


def normalize(raw: UpstreamRawResponse | str | None) -> AnalysisResult:
    """Total mapping from upstream output to ``{"errorCount": n >= 0}``.

    Examples:
        >>> normalize('{"errorCount": 3}').error_count
        3
        >>> normalize("I found 2 errors.").error_count
        2
        >>> normalize("no issues").error_count
        0
        >>> normalize('{"errorCount": -5}').error_count
        0
    """
    outcome = parse_raw(raw)
    return AnalysisResult(error_count=coerce_count(outcome.value))

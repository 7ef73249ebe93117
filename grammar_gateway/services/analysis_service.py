"""Grammar analysis service orchestrating the upstream call and normalization.

This service turns a validated AnalysisRequest into an AnalysisResult:
- builds the fixed grammar-checker instruction
- calls the upstream once, bounded by the inbound request's deadline
- normalizes whatever text comes back (never fails once the upstream answered 2xx)
"""

import asyncio
import logging

from grammar_gateway.adapters.llm.base import AbstractLLMClient
from grammar_gateway.core.errors import UpstreamAppError
from grammar_gateway.schemas.analysis import AnalysisRequest, AnalysisResult
from grammar_gateway.services.response_normalizer import coerce_count, parse_raw

logger = logging.getLogger(__name__)

# Prompt version, logged with every analysis to correlate behaviour changes
PROMPT_VERSION = "v1"

SYSTEM_PROMPT = (
    "Ты — строгий проверяющий грамматики. Подсчитай количество грамматических, "
    "орфографических и пунктуационных ошибок в присланном тексте. "
    'Ответь ТОЛЬКО одним JSON без пояснений, строго вида: {"errorCount": <целое число>}.'
)


def build_system_prompt() -> str:
    """Instruction constraining the upstream to a single strict JSON object."""
    return SYSTEM_PROMPT


class AnalysisService:
    """Service counting errors in a text through the upstream model.

    Attributes:
        llm: Upstream client adapter.
        timeout_seconds: Deadline for one upstream call.
    """

    def __init__(self, llm: AbstractLLMClient, *, timeout_seconds: float = 25.0) -> None:
        """Initialize analysis service with dependencies.

        Args:
            llm: Configured LLM client instance.
            timeout_seconds: Deadline inherited from the inbound request lifecycle.
        """
        self.llm = llm
        self.timeout_seconds = timeout_seconds

    async def analyze(self, request: AnalysisRequest) -> AnalysisResult:
        """Count errors in ``request.text``.

        Args:
            request: Validated analysis request.

        Returns:
            AnalysisResult with a non-negative error count.

        Raises:
            UpstreamAppError: If the upstream fails, answers non-2xx, or
                misses the deadline.
        """
        try:
            raw = await asyncio.wait_for(
                self.llm.complete_text(build_system_prompt(), request.text),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            logger.warning(
                "analysis.upstream_deadline_exceeded",
                extra={"timeout_seconds": self.timeout_seconds},
            )
            raise UpstreamAppError(
                code="upstream_timeout",
                message="Upstream analysis service timed out",
            ) from exc

        outcome = parse_raw(raw)
        result = AnalysisResult(error_count=coerce_count(outcome.value))

        logger.info(
            "analysis.completed",
            extra={
                "prompt_version": PROMPT_VERSION,
                "parse_path": type(outcome).__name__,
                "error_count": result.error_count,
                "text_chars": len(request.text),
            },
        )
        return result

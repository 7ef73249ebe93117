"""OpenAI LLM client adapter."""

import logging
from typing import Any

from openai import APIConnectionError, APIStatusError, APITimeoutError, AsyncOpenAI

from grammar_gateway.adapters.llm.base import AbstractLLMClient, UpstreamRawResponse
from grammar_gateway.core.errors import UpstreamAppError

logger = logging.getLogger(__name__)

DEFAULT_UPSTREAM_ERROR = "OpenAI error"


def extract_error_message(body: Any) -> str:
    """Pick a short client-facing message out of an upstream error payload.

    The Responses API answers errors with ``{"error": {"message": ...}}``;
    the SDK sometimes hands over the inner object or a bare string.
    """
    if isinstance(body, dict):
        inner = body.get("error", body)
        if isinstance(inner, dict):
            message = inner.get("message")
            if isinstance(message, str) and message:
                return message
        elif isinstance(inner, str) and inner:
            return inner
    elif isinstance(body, str) and body:
        return body
    return DEFAULT_UPSTREAM_ERROR


class OpenAIClient(AbstractLLMClient):
    """Client for the OpenAI Responses API returning the collected output text.

    Uses the official OpenAI Python SDK with async support. SDK retries are
    disabled: a failed call is surfaced once and the caller decides.
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 20.0,
        max_output_tokens: int = 50,
    ) -> None:
        """Initialize OpenAI async client.

        Args:
            api_key: OpenAI API key for authentication.
            model: Model name (e.g., "gpt-4.1-mini").
            base_url: Optional custom base URL for OpenAI API.
            timeout_seconds: Timeout for requests in seconds.
            max_output_tokens: Output token budget per call.
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
            max_retries=0,
        )
        self.model = model
        self.max_output_tokens = max_output_tokens

    def build_request(self, system_prompt: str, user_text: str) -> dict[str, Any]:
        """Deterministic request parameters; the user text is the only variable."""
        return {
            "model": self.model,
            "temperature": 0,
            "input": [
                {
                    "role": "system",
                    "content": [{"type": "input_text", "text": system_prompt}],
                },
                {
                    "role": "user",
                    "content": [{"type": "input_text", "text": user_text}],
                },
            ],
            "max_output_tokens": self.max_output_tokens,
        }

    async def complete_text(
        self,
        system_prompt: str,
        user_text: str,
    ) -> UpstreamRawResponse:
        """Call the Responses API once.

        Raises:
            UpstreamAppError: Non-2xx status (with status and payload) or
                transport failure (status_code=None).
        """
        request_params = self.build_request(system_prompt, user_text)

        try:
            response = await self.client.responses.create(**request_params)
        except APIStatusError as exc:
            body = exc.body
            logger.warning(
                "upstream.error_status",
                extra={"upstream_status": exc.status_code, "model": self.model},
            )
            raise UpstreamAppError(
                code="upstream_error_status",
                message=extract_error_message(body),
                details={"upstream_status": exc.status_code},
                status_code=exc.status_code,
                body=body,
            ) from exc
        except APITimeoutError as exc:
            logger.warning("upstream.timeout", extra={"model": self.model})
            raise UpstreamAppError(
                code="upstream_timeout",
                message="Upstream analysis service timed out",
            ) from exc
        except APIConnectionError as exc:
            logger.warning(
                "upstream.unreachable",
                extra={"model": self.model, "error_type": type(exc).__name__},
            )
            raise UpstreamAppError(
                code="upstream_unreachable",
                message="Upstream analysis service unreachable",
            ) from exc

        return UpstreamRawResponse(text=response.output_text or "")

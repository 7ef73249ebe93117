"""Factory pattern for creating LLM client instances."""

from grammar_gateway.adapters.llm.base import AbstractLLMClient
from grammar_gateway.adapters.llm.openai_client import OpenAIClient
from grammar_gateway.core.config import settings
from grammar_gateway.core.errors import ConfigurationAppError


def create_llm_client() -> AbstractLLMClient:
    """Instantiate the upstream client based on provider.

    Reads configuration from grammar_gateway.core.config.settings.

    Returns:
        AbstractLLMClient: Configured LLM client instance.

    Raises:
        ConfigurationAppError: If provider-specific requirements are not met.
    """
    provider = settings.llm.provider.lower()

    if provider == "openai":
        if not settings.llm.api_key:
            raise ConfigurationAppError(
                code="llm_missing_api_key",
                message="OpenAI provider requires LLM_API_KEY environment variable",
            )
        return OpenAIClient(
            api_key=settings.llm.api_key,
            model=settings.llm.model,
            base_url=settings.llm.base_url,
            timeout_seconds=settings.llm.timeout_seconds,
            max_output_tokens=settings.llm.max_output_tokens,
        )

    raise ConfigurationAppError(
        code="llm_unknown_provider",
        message=(
            f"Unknown LLM provider: '{provider}'. Supported providers: openai"
        ),
    )

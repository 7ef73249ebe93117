"""LLM adapter layer - abstracts over the upstream analysis provider."""

from grammar_gateway.adapters.llm.base import AbstractLLMClient, UpstreamRawResponse
from grammar_gateway.adapters.llm.factory import create_llm_client
from grammar_gateway.adapters.llm.openai_client import OpenAIClient

__all__ = [
    "AbstractLLMClient",
    "OpenAIClient",
    "UpstreamRawResponse",
    "create_llm_client",
]

"""Pytest configuration and fixtures shared across all test modules.

Environment variables are set before any grammar_gateway import so the
global settings object is built for tests: in-memory window store, a fake
upstream credential, no .env file.
"""

import os

# CRITICAL: Set this before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("LLM_PROVIDER", "openai")
os.environ.setdefault("LLM_MODEL", "gpt-4.1-mini")
os.environ.setdefault("LLM_API_KEY", "test-key-123")
os.environ.setdefault("REDIS_BACKEND", "memory")

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from grammar_gateway.adapters.llm.base import AbstractLLMClient, UpstreamRawResponse
from grammar_gateway.adapters.rate_limit.in_memory import InMemoryWindowStore
from grammar_gateway.core.app_factory import create_app


class FakeClock:
    """Millisecond clock tests can move forward by hand."""

    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def window_store() -> InMemoryWindowStore:
    return InMemoryWindowStore()


@pytest.fixture
def llm_client() -> MagicMock:
    """Upstream client answering a strict JSON object."""
    client = MagicMock(spec=AbstractLLMClient)
    client.complete_text = AsyncMock(return_value=UpstreamRawResponse(text='{"errorCount": 2}'))
    return client


@pytest.fixture
def app(window_store: InMemoryWindowStore, llm_client: MagicMock, clock: FakeClock) -> FastAPI:
    return create_app(
        window_store=window_store,
        llm_client=llm_client,
        clock=clock,
        configure_logs=False,
    )


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    """Create FastAPI test client (lifespan not started; the store needs no connection)."""
    return TestClient(app)

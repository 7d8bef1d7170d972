# tests/conftest.py - v2
"""Shared test fixtures for all unit and integration tests.

Stub analysis agents, in-memory stores and a recording sleep. No network
or model access: every collaborator is a fake from tests/factories.py.
"""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from factlens.core.models import ImageAsset
from factlens.llm.models import LLMResponse
from factlens.llm.retry import RetryPolicy
from factlens.pipeline.executor import StageExecutor
from factlens.pipeline.orchestrator import PipelineOrchestrator
from factlens.storage.memory_store import MemoryHistoryStore, MemoryRecordStore
from tests.factories import RecordingSleep, StubAgents

# === Fixtures ===


@pytest.fixture
def stub_agents() -> StubAgents:
    return StubAgents()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def retry_policy(recording_sleep: RecordingSleep) -> RetryPolicy:
    return RetryPolicy(max_attempts=3, base_delay_s=2.0, backoff_factor=2.0, sleep=recording_sleep)


@pytest.fixture
def history_store() -> MemoryHistoryStore:
    return MemoryHistoryStore()


@pytest.fixture
def record_store() -> MemoryRecordStore:
    return MemoryRecordStore()


@pytest.fixture
def executor(stub_agents, retry_policy, record_store) -> StageExecutor:
    return StageExecutor(
        agents=stub_agents,
        retry_policy=retry_policy,
        frame_extractor=None,
        record_store=record_store,
    )


@pytest.fixture
def events() -> list:
    return []


@pytest.fixture
def orchestrator(executor, history_store, record_store, events) -> PipelineOrchestrator:
    return PipelineOrchestrator(
        executor=executor,
        history_store=history_store,
        record_store=record_store,
        observers=[events.append],
    )


@pytest.fixture
def sample_image() -> ImageAsset:
    return ImageAsset(data=b"\xff\xd8\xff\xe0fake-jpeg", media_type="image/jpeg", name="photo.jpg")


# === FIXTURES: Mock LLM ===


@pytest.fixture
def mock_llm_response() -> LLMResponse:
    return LLMResponse(
        content="{}",
        input_tokens=100,
        output_tokens=50,
        model="gemini-2.5-flash",
        provider="google",
        latency_ms=500,
    )


@pytest.fixture
def mock_llm_client(mock_llm_response: LLMResponse) -> AsyncMock:
    """Mock BaseLLMClient with default response."""
    client = AsyncMock()
    client.complete = AsyncMock(return_value=mock_llm_response)
    client.complete_with_vision = AsyncMock(return_value=mock_llm_response)
    client.supports_vision = True
    client.provider_name = "mock"
    return client

# tests/integration/conftest.py - v8
"""Shared fixtures for integration tests.

No network or provider access: a scripted BaseLLMClient answers every
LLM call and an httpx.MockTransport serves article pages. Stores are the
real JSON backends under tmp_path.
"""

from __future__ import annotations

import json
from typing import Any, AsyncIterator

import httpx
import pytest
from pydantic import BaseModel

from factlens.agents.ingestion import HttpContentFetcher
from factlens.agents.llm_agents import LLMAnalysisAgents
from factlens.agents.rate_limited import RateLimitedAgents
from factlens.config.settings import Settings
from factlens.llm.base_client import BaseLLMClient
from factlens.llm.config import LLM_COMPONENTS
from factlens.llm.models import ImageInput, LLMResponse, Message
from factlens.llm.rate_limiter import TokenBucket

ARTICLE_HTML = """
<html><head><title>Shocking cure</title></head><body>
<article>
  <h1>Doctors HATE this one shocking cure</h1>
  <p>Officials are hiding the truth, and you should be terrified.</p>
  <p>Share before it gets deleted!</p>
</article>
</body></html>
"""

DEFAULT_REPLIES: dict[str, dict[str, Any]] = {
    "_TextualReply": {
        "summary": "Claims a hidden miracle cure.",
        "entities": ["Officials"],
        "sentiment": "Negative",
        "keywords": ["cure", "cover-up"],
    },
    "_EmotionReply": {
        "dominant_emotion": "Fear",
        "manipulation_level": "High",
        "explanation": "Urgent, fear-inducing wording.",
    },
    "_VisualReply": {
        "visual_insights": [
            {"description": "A staged photo.", "labels": ["pill"], "manipulation_flag": "Medium"}
        ]
    },
    "_SourceReply": {
        "source_validity": "Low",
        "trust_score": 20,
        "source_validity_explanation": "Repeatedly fact-checked as false.",
        "evidence": [{"description": "Multiple failed fact checks.", "finding": "Negative"}],
    },
}

REPORT_CHUNKS = ["## Executive Summary\n", "High-risk content ", "from a low-trust source."]


class ScriptedLLMClient(BaseLLMClient):
    """Replies by requested response schema; queued errors are raised first."""

    def __init__(self) -> None:
        self.replies = {k: json.dumps(v) for k, v in DEFAULT_REPLIES.items()}
        self.errors: dict[str, list[Exception]] = {}
        self.stream_chunks = list(REPORT_CHUNKS)
        self.calls: list[str] = []

    def _reply(self, response_format: type[BaseModel] | None) -> LLMResponse:
        name = response_format.__name__ if response_format else "text"
        self.calls.append(name)
        queued = self.errors.get(name)
        if queued:
            raise queued.pop(0)
        return LLMResponse(content=self.replies[name], model="scripted", provider="scripted")

    async def complete(self, messages, system=None, max_tokens=4096, temperature=0.2,
                       response_format=None) -> LLMResponse:
        return self._reply(response_format)

    async def complete_with_vision(self, messages, images: list[ImageInput], system=None,
                                   max_tokens=4096, response_format=None) -> LLMResponse:
        return self._reply(response_format)

    async def stream(self, messages: list[Message], system=None, max_tokens=4096,
                     temperature=0.2) -> AsyncIterator[str]:
        self.calls.append("stream")
        for chunk in self.stream_chunks:
            yield chunk

    @property
    def supports_vision(self) -> bool:
        return True

    @property
    def provider_name(self) -> str:
        return "scripted"


def _serve_article(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/missing":
        return httpx.Response(404)
    return httpx.Response(200, text=ARTICLE_HTML)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(_env_file=None, store_root=tmp_path / "store")


@pytest.fixture
def llm() -> ScriptedLLMClient:
    return ScriptedLLMClient()


@pytest.fixture
def agents(llm, settings) -> RateLimitedAgents:
    fetcher = HttpContentFetcher(transport=httpx.MockTransport(_serve_article))
    inner = LLMAnalysisAgents({c: llm for c in LLM_COMPONENTS}, fetcher, settings)
    return RateLimitedAgents(inner, TokenBucket(rate_per_s=1000.0, burst=10))

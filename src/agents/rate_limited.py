# src/agents/rate_limited.py - v1
"""Pace backend calls of any BaseAnalysisAgents through a token bucket.

Ingestion is HTTP-backed and bypasses the bucket unless ``pace_ingestion``
is set.
"""

from __future__ import annotations

from typing import AsyncIterator, Sequence

from factlens.agents.base_agents import BaseAnalysisAgents, FollowUpSession
from factlens.core.models import (
    EmotionAnalysisOutput,
    HistoryEntry,
    ImageAsset,
    IngestionOutput,
    ResultAggregate,
    SourceIntelligenceOutput,
    TextualAnalysisOutput,
    VisualAnalysisOutput,
)
from factlens.llm.models import Message
from factlens.llm.rate_limiter import TokenBucket


class _RateLimitedSession(FollowUpSession):
    def __init__(self, inner: FollowUpSession, bucket: TokenBucket) -> None:
        self._inner = inner
        self._bucket = bucket

    @property
    def report(self) -> str:
        return self._inner.report

    @property
    def messages(self) -> list[Message]:
        return self._inner.messages

    async def send(self, message: str) -> AsyncIterator[str]:
        await self._bucket.acquire()
        async for chunk in self._inner.send(message):
            yield chunk


class RateLimitedAgents(BaseAnalysisAgents):
    """Decorator acquiring one token before each backend call."""

    def __init__(
        self, inner: BaseAnalysisAgents, bucket: TokenBucket, pace_ingestion: bool = False
    ) -> None:
        self._inner = inner
        self._bucket = bucket
        self._pace_ingestion = pace_ingestion

    @property
    def bucket(self) -> TokenBucket:
        return self._bucket

    async def ingest(self, url: str) -> IngestionOutput:
        if self._pace_ingestion:
            await self._bucket.acquire()
        return await self._inner.ingest(url)

    async def analyze_text(self, text: str) -> TextualAnalysisOutput:
        await self._bucket.acquire()
        return await self._inner.analyze_text(text)

    async def analyze_emotion(self, text: str) -> EmotionAnalysisOutput:
        await self._bucket.acquire()
        return await self._inner.analyze_emotion(text)

    async def analyze_visual(
        self, images: Sequence[ImageAsset], from_video: bool = False
    ) -> VisualAnalysisOutput:
        await self._bucket.acquire()
        return await self._inner.analyze_visual(images, from_video=from_video)

    async def analyze_source(self, domain: str) -> SourceIntelligenceOutput:
        await self._bucket.acquire()
        return await self._inner.analyze_source(domain)

    async def synthesize(self, aggregate: ResultAggregate) -> AsyncIterator[str]:
        await self._bucket.acquire()
        async for chunk in self._inner.synthesize(aggregate):
            yield chunk

    async def compare(self, entries: Sequence[HistoryEntry]) -> AsyncIterator[str]:
        await self._bucket.acquire()
        async for chunk in self._inner.compare(entries):
            yield chunk

    def start_follow_up(self, report: str) -> FollowUpSession:
        return _RateLimitedSession(self._inner.start_follow_up(report), self._bucket)

# src/agents/base_agents.py - v1
"""Capability interface consumed by the pipeline.

Each operation is a single async call with a fixed input/output contract.
Implementations raise AgentError (tagged with an ErrorKind) on failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import AsyncIterator, Sequence

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


class FollowUpSession(ABC):
    """Conversation about one finished report."""

    @property
    @abstractmethod
    def report(self) -> str:
        """Report text the session is grounded on."""

    @property
    @abstractmethod
    def messages(self) -> list[Message]:
        """Conversation so far (user and assistant turns)."""

    @abstractmethod
    def send(self, message: str) -> AsyncIterator[str]:
        """Ask a question; yields the answer in chunks."""


class BaseAnalysisAgents(ABC):
    """The analysis capabilities behind the six pipeline stages."""

    @abstractmethod
    async def ingest(self, url: str) -> IngestionOutput:
        """Retrieve readable text and the domain for a URL.

        Raises:
            IngestionError: Content is inaccessible, blocked or empty.
        """

    @abstractmethod
    async def analyze_text(self, text: str) -> TextualAnalysisOutput:
        """Summary, entities, sentiment and keywords."""

    @abstractmethod
    async def analyze_emotion(self, text: str) -> EmotionAnalysisOutput:
        """Dominant emotion and manipulation level."""

    @abstractmethod
    async def analyze_visual(
        self, images: Sequence[ImageAsset], from_video: bool = False
    ) -> VisualAnalysisOutput:
        """One insight for a single image, or for an ordered sequence of
        frames sampled from a video when ``from_video`` is set."""

    @abstractmethod
    async def analyze_source(self, domain: str) -> SourceIntelligenceOutput:
        """Credibility assessment for a domain."""

    @abstractmethod
    def synthesize(self, aggregate: ResultAggregate) -> AsyncIterator[str]:
        """Stream the final report. Finite and not restartable."""

    @abstractmethod
    def compare(self, entries: Sequence[HistoryEntry]) -> AsyncIterator[str]:
        """Stream a comparative brief over several past runs."""

    @abstractmethod
    def start_follow_up(self, report: str) -> FollowUpSession:
        """Open a conversation seeded with the report text."""

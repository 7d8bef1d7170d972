# src/pipeline/stages.py - v1
"""Definitions of the five analysis stages.

Each stage declares when it applies, how it invokes its capability and
what progress details it reports. Applicability only looks at the raw
input and at results of earlier stages. Final synthesis streams and is
driven by the orchestrator; its gate lives here as ``can_synthesize``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable

from factlens.agents.base_agents import BaseAnalysisAgents
from factlens.agents.fallbacks import emotion_fallback, source_fallback, textual_fallback
from factlens.core.errors import AgentError
from factlens.core.models import (
    EmotionAnalysisOutput,
    IngestionOutput,
    ResultAggregate,
    RunInput,
    SourceIntelligenceOutput,
    StageOutput,
    TextualAnalysisOutput,
    VisualAnalysisOutput,
)
from factlens.media.frame_extractor import BaseFrameExtractor
from factlens.pipeline.state import StageName

NO_SYNTHESIS_DATA = "No data available to generate a brief. Provide a URL, image, or text."
FALLBACK_SUFFIX = " (fallback: service unavailable)"

SYNTHESIS_RUNNING = "Generating final brief..."
SYNTHESIS_COMPLETED = "Brief generated successfully"


@dataclass(frozen=True)
class StageContext:
    """Everything a stage may read: the raw input, earlier results and collaborators."""

    run_input: RunInput
    results: ResultAggregate
    agents: BaseAnalysisAgents
    frame_extractor: BaseFrameExtractor | None = None
    video_frame_count: int = 5


ProgressCallback = Callable[[str], None]


class Stage(ABC):
    """One analysis stage."""

    name: StageName
    skip_detail: str
    # Only stages with a fallback are wrapped by the retry policy.
    fallback: Callable[[], StageOutput] | None = None

    @abstractmethod
    def applies(self, ctx: StageContext) -> bool:
        """Whether the stage's inputs are present."""

    @abstractmethod
    def running_detail(self, ctx: StageContext) -> str:
        """Detail shown while the stage is running."""

    @abstractmethod
    async def invoke(self, ctx: StageContext, progress: ProgressCallback) -> StageOutput:
        """Call the capability and return its output."""

    @abstractmethod
    def completed_detail(self, ctx: StageContext, output: StageOutput) -> str:
        """Detail shown once the stage completed."""


def _has_text(ctx: StageContext) -> bool:
    return bool(ctx.results.ingestion and ctx.results.ingestion.text)


class ContentIngestionStage(Stage):
    name = StageName.CONTENT_INGESTION
    skip_detail = "No URL or text provided"

    def applies(self, ctx: StageContext) -> bool:
        return bool(ctx.run_input.url or ctx.run_input.raw_text)

    def running_detail(self, ctx: StageContext) -> str:
        return "Ingesting content from URL..." if ctx.run_input.url else "Processing direct text..."

    async def invoke(self, ctx: StageContext, progress: ProgressCallback) -> IngestionOutput:
        if ctx.run_input.url:
            return await ctx.agents.ingest(ctx.run_input.url)
        # Direct text has no domain, so source intelligence will skip.
        return IngestionOutput(text=ctx.run_input.raw_text or "", domain="", images=[])

    def completed_detail(self, ctx: StageContext, output: StageOutput) -> str:
        return "Text extracted" if ctx.run_input.url else "Text processed"


class TextualAnalysisStage(Stage):
    name = StageName.TEXTUAL_ANALYSIS
    skip_detail = "No text to analyze"
    fallback = staticmethod(textual_fallback)

    def applies(self, ctx: StageContext) -> bool:
        return _has_text(ctx)

    def running_detail(self, ctx: StageContext) -> str:
        return "Analyzing text..."

    async def invoke(self, ctx: StageContext, progress: ProgressCallback) -> TextualAnalysisOutput:
        return await ctx.agents.analyze_text(ctx.results.ingestion.text)

    def completed_detail(self, ctx: StageContext, output: StageOutput) -> str:
        return "Summary and entities extracted"


class EmotionAnalysisStage(Stage):
    name = StageName.EMOTION_ANALYSIS
    skip_detail = "No text to analyze"
    fallback = staticmethod(emotion_fallback)

    def applies(self, ctx: StageContext) -> bool:
        return _has_text(ctx)

    def running_detail(self, ctx: StageContext) -> str:
        return "Analyzing emotional tone..."

    async def invoke(self, ctx: StageContext, progress: ProgressCallback) -> EmotionAnalysisOutput:
        return await ctx.agents.analyze_emotion(ctx.results.ingestion.text)

    def completed_detail(self, ctx: StageContext, output: StageOutput) -> str:
        assert isinstance(output, EmotionAnalysisOutput)
        return f"Emotion: {output.dominant_emotion}"


class VisualAnalysisStage(Stage):
    name = StageName.VISUAL_ANALYSIS
    skip_detail = "No visual media uploaded"

    def applies(self, ctx: StageContext) -> bool:
        return ctx.run_input.image is not None or ctx.run_input.video is not None

    def running_detail(self, ctx: StageContext) -> str:
        if ctx.run_input.image is not None:
            return "Analyzing uploaded image..."
        return "Extracting frames from video..."

    async def invoke(self, ctx: StageContext, progress: ProgressCallback) -> VisualAnalysisOutput:
        if ctx.run_input.image is not None:
            return await ctx.agents.analyze_visual([ctx.run_input.image])

        if ctx.frame_extractor is None:
            raise AgentError("Video input requires a frame extractor", agent="visual_analysis")
        frames = await ctx.frame_extractor.extract(ctx.run_input.video, ctx.video_frame_count)
        progress("Analyzing video frames...")
        return await ctx.agents.analyze_visual(frames, from_video=True)

    def completed_detail(self, ctx: StageContext, output: StageOutput) -> str:
        if ctx.run_input.image is not None:
            return "Image analysis complete"
        return "Video analysis complete"


class SourceIntelligenceStage(Stage):
    name = StageName.SOURCE_INTELLIGENCE
    skip_detail = "No domain to verify"
    fallback = staticmethod(source_fallback)

    def applies(self, ctx: StageContext) -> bool:
        return bool(ctx.results.ingestion and ctx.results.ingestion.domain)

    def running_detail(self, ctx: StageContext) -> str:
        return "Verifying source credibility..."

    async def invoke(
        self, ctx: StageContext, progress: ProgressCallback
    ) -> SourceIntelligenceOutput:
        return await ctx.agents.analyze_source(ctx.results.ingestion.domain)

    def completed_detail(self, ctx: StageContext, output: StageOutput) -> str:
        assert isinstance(output, SourceIntelligenceOutput)
        return f"Credibility: {output.source_validity}"


ANALYSIS_STAGES: tuple[Stage, ...] = (
    ContentIngestionStage(),
    TextualAnalysisStage(),
    EmotionAnalysisStage(),
    VisualAnalysisStage(),
    SourceIntelligenceStage(),
)


def can_synthesize(results: ResultAggregate) -> bool:
    """Synthesis needs a textual or a visual result."""
    return results.can_synthesize

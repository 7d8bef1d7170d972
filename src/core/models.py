# src/core/models.py - v2
"""Shared Pydantic domain models used across modules.

Stage outputs form a tagged union discriminated by ``kind``; the
ResultAggregate only accepts each kind once per run.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from factlens.core.errors import AggregateConflictError, PreconditionError
from factlens.pipeline.state import PipelineState

Severity = Literal["Low", "Medium", "High"]
Sentiment = Literal["Positive", "Negative", "Neutral"]
Finding = Literal["Positive", "Negative", "Neutral"]
Emotion = Literal["Anger", "Fear", "Joy", "Sadness", "Surprise", "Neutral", "Mixed"]
Validity = Literal["High", "Medium", "Low", "Unknown"]

DIRECT_TEXT_DESCRIPTOR = "Direct Text Input"


# === INPUT ===


class ImageAsset(BaseModel):
    """A still image, either uploaded or sampled from a video."""

    model_config = ConfigDict(frozen=True)

    data: bytes
    media_type: str = "image/jpeg"
    name: str = "image"


class VideoAsset(BaseModel):
    """A video file on disk; reduced to still frames before analysis."""

    model_config = ConfigDict(frozen=True)

    path: Path
    name: str = ""
    media_type: str = "video/mp4"

    @property
    def display_name(self) -> str:
        return self.name or self.path.name


class RunInput(BaseModel):
    """What the user submitted for one run.

    At least one of url, raw_text, image or video must be present. A URL
    takes precedence over raw text for ingestion.
    """

    model_config = ConfigDict(frozen=True)

    url: str | None = None
    raw_text: str | None = None
    image: ImageAsset | None = None
    video: VideoAsset | None = None

    @field_validator("url", "raw_text")
    @classmethod
    def _blank_is_absent(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip()

    @property
    def is_empty(self) -> bool:
        return not (self.url or self.raw_text or self.image or self.video)

    def require_content(self) -> None:
        """Raise PreconditionError when nothing usable was supplied."""
        if self.is_empty:
            raise PreconditionError("Provide a URL, text, image, or video to analyze.")

    @property
    def descriptor(self) -> str:
        """Short label identifying the input in history listings."""
        if self.url:
            return self.url
        if self.raw_text:
            return DIRECT_TEXT_DESCRIPTOR
        if self.image is not None:
            return self.image.name
        if self.video is not None:
            return self.video.display_name
        return ""


# === STAGE OUTPUTS ===


class IngestionOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ingestion"] = "ingestion"
    text: str
    domain: str = ""
    images: list[str] = Field(default_factory=list)


class TextualAnalysisOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["textual"] = "textual"
    summary: str
    entities: list[str] = Field(default_factory=list)
    sentiment: Sentiment
    keywords: list[str] = Field(default_factory=list)
    degraded: bool = False


class EmotionAnalysisOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["emotion"] = "emotion"
    dominant_emotion: Emotion
    manipulation_level: Severity
    explanation: str
    degraded: bool = False


class VisualInsight(BaseModel):
    model_config = ConfigDict(frozen=True)

    image: str = ""
    description: str
    labels: list[str] = Field(default_factory=list)
    manipulation_flag: Severity


class VisualAnalysisOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["visual"] = "visual"
    visual_insights: list[VisualInsight] = Field(min_length=1)

    @property
    def primary(self) -> VisualInsight:
        return self.visual_insights[0]


class EvidenceItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    description: str
    finding: Finding


class SourceIntelligenceOutput(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["source"] = "source"
    source_validity: Validity
    trust_score: int = Field(ge=0, le=100)
    source_validity_explanation: str
    evidence: list[EvidenceItem] = Field(default_factory=list)
    degraded: bool = False


StageOutput = Annotated[
    Union[
        IngestionOutput,
        TextualAnalysisOutput,
        EmotionAnalysisOutput,
        VisualAnalysisOutput,
        SourceIntelligenceOutput,
    ],
    Field(discriminator="kind"),
]


class ResultAggregate(BaseModel):
    """Structured results accumulated across stages.

    Each field is written at most once, by its own stage, and never cleared.
    """

    model_config = ConfigDict(frozen=True)

    ingestion: IngestionOutput | None = None
    textual: TextualAnalysisOutput | None = None
    emotion: EmotionAnalysisOutput | None = None
    visual: VisualAnalysisOutput | None = None
    source: SourceIntelligenceOutput | None = None

    def with_result(self, output: StageOutput) -> ResultAggregate:
        """Return a copy with the field matching ``output.kind`` set."""
        if getattr(self, output.kind) is not None:
            raise AggregateConflictError(f"Result '{output.kind}' is already set for this run")
        return self.model_copy(update={output.kind: output})

    @property
    def has_signals(self) -> bool:
        """True when any stage that feeds the risk score has produced output."""
        return any(
            x is not None for x in (self.source, self.emotion, self.visual, self.textual)
        )

    @property
    def can_synthesize(self) -> bool:
        return self.textual is not None or self.visual is not None


# === PERSISTED RECORDS ===


def generate_entry_id(timestamp: datetime | None = None) -> str:
    """Time-derived unique id: yyyymmdd_hhmmss_{uuid4_short}."""
    ts = timestamp or datetime.now(timezone.utc)
    return f"{ts.strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


class HistoryEntry(BaseModel):
    """Immutable record of one successfully completed run."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=generate_entry_id)
    input_descriptor: str
    report: str
    state: PipelineState
    results: ResultAggregate
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class MisinformationRecord(BaseModel):
    """Flag persisted for a domain whose trust score fell below threshold."""

    model_config = ConfigDict(frozen=True)

    domain: str
    url: str
    trust_score: int
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class RiskAssessment(BaseModel):
    model_config = ConfigDict(frozen=True)

    score: int = Field(ge=0, le=100)
    factors: list[str] = Field(default_factory=list)

    @property
    def label(self) -> str:
        if self.score >= 70:
            return "High Risk"
        if self.score >= 40:
            return "Medium Risk"
        return "Low Risk"

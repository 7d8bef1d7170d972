# src/agents/llm_agents.py - v1
"""LLM-backed implementation of the analysis capabilities.

Structured capabilities ask the model for JSON and validate the reply
with pydantic; anything unparseable raises AgentError(INVALID_RESPONSE).
Synthesis, comparison and follow-up answers are streamed.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, AsyncIterator, Sequence

from pydantic import BaseModel, Field, ValidationError

from factlens.agents.base_agents import BaseAnalysisAgents, FollowUpSession
from factlens.agents.ingestion import HttpContentFetcher
from factlens.config.settings import Settings
from factlens.core.errors import AgentError, ErrorKind, PreconditionError
from factlens.core.models import (
    Emotion,
    EmotionAnalysisOutput,
    EvidenceItem,
    HistoryEntry,
    ImageAsset,
    IngestionOutput,
    ResultAggregate,
    Sentiment,
    Severity,
    SourceIntelligenceOutput,
    TextualAnalysisOutput,
    Validity,
    VisualAnalysisOutput,
    VisualInsight,
)
from factlens.llm.base_client import BaseLLMClient
from factlens.llm.models import ImageInput, Message

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent.parent / "prompts"

UPLOADED_IMAGE_LABEL = "Uploaded Image"
VIDEO_CLIP_LABEL = "Video Clip"


# --- Wire formats (what the model is asked to return) ---


class _TextualReply(BaseModel):
    summary: str
    entities: list[str] = Field(default_factory=list)
    sentiment: Sentiment
    keywords: list[str] = Field(default_factory=list)


class _EmotionReply(BaseModel):
    dominant_emotion: Emotion
    manipulation_level: Severity
    explanation: str


class _InsightReply(BaseModel):
    image: str = ""
    description: str
    labels: list[str] = Field(default_factory=list)
    manipulation_flag: Severity


class _VisualReply(BaseModel):
    visual_insights: list[_InsightReply] = Field(min_length=1)


class _SourceReply(BaseModel):
    source_validity: Validity
    trust_score: int = Field(ge=0, le=100)
    source_validity_explanation: str
    evidence: list[EvidenceItem] = Field(default_factory=list)


def load_prompt(name: str) -> str:
    return (_PROMPTS_DIR / f"{name}.txt").read_text(encoding="utf-8")


def parse_reply(content: str, schema: type[BaseModel], agent: str) -> Any:
    """Parse a JSON reply (optionally fenced in markdown) into ``schema``.

    Raises:
        AgentError: kind INVALID_RESPONSE when the reply is not valid JSON
            or does not match the schema.
    """
    text = content.strip()
    if text.startswith("```"):
        lines = [l for l in text.split("\n") if not l.strip().startswith("```")]
        text = "\n".join(lines)
    try:
        return schema.model_validate(json.loads(text))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.warning("%s returned an unusable reply: %s", agent, exc)
        raise AgentError(
            f"{agent} returned an invalid response", kind=ErrorKind.INVALID_RESPONSE, agent=agent
        ) from exc


def _results_payload(aggregate: ResultAggregate) -> str:
    """JSON view of the structured results handed to synthesis."""
    payload = aggregate.model_dump(mode="json", exclude={"ingestion"}, exclude_none=True)
    if aggregate.ingestion is not None:
        payload["source_domain"] = aggregate.ingestion.domain
    return json.dumps(payload, indent=2)


class LLMFollowUpSession(FollowUpSession):
    """Chat seeded with one report; the model only sees that report as context."""

    def __init__(self, client: BaseLLMClient, report: str, max_tokens: int = 2048) -> None:
        self._client = client
        self._report = report
        self._max_tokens = max_tokens
        self._system = load_prompt("follow_up").format(report=report)
        self._messages: list[Message] = []

    @property
    def report(self) -> str:
        return self._report

    @property
    def messages(self) -> list[Message]:
        return list(self._messages)

    async def send(self, message: str) -> AsyncIterator[str]:
        if not message.strip():
            raise PreconditionError("Follow-up question must not be empty.")
        history = [*self._messages, Message(role="user", content=message)]
        answer: list[str] = []
        async for chunk in self._client.stream(
            history, system=self._system, max_tokens=self._max_tokens
        ):
            answer.append(chunk)
            yield chunk
        # History only grows once the answer finished streaming.
        self._messages = [*history, Message(role="assistant", content="".join(answer))]


class LLMAnalysisAgents(BaseAnalysisAgents):
    """Analysis capabilities backed by per-component LLM clients.

    Args:
        clients: component name -> client, see ``create_component_clients``.
        fetcher: HTTP fetcher used for content ingestion.
        settings: Token limits, temperature and input truncation.
    """

    def __init__(
        self,
        clients: dict[str, BaseLLMClient],
        fetcher: HttpContentFetcher,
        settings: Settings | None = None,
    ) -> None:
        self._clients = clients
        self._fetcher = fetcher
        self._settings = settings or Settings()

    def _client(self, component: str) -> BaseLLMClient:
        try:
            return self._clients[component]
        except KeyError:
            raise AgentError(f"No LLM client configured for {component}", agent=component) from None

    def _clip(self, text: str) -> str:
        limit = self._settings.analysis_max_chars
        return text if len(text) <= limit else text[:limit]

    async def _structured(
        self, component: str, prompt: str, user_text: str, schema: type[BaseModel]
    ) -> Any:
        response = await self._client(component).complete(
            messages=[Message(role="user", content=user_text)],
            system=load_prompt(prompt),
            max_tokens=self._settings.llm_max_tokens,
            temperature=self._settings.llm_temperature,
            response_format=schema,
        )
        return parse_reply(response.content, schema, component)

    async def ingest(self, url: str) -> IngestionOutput:
        return await self._fetcher.fetch(url)

    async def analyze_text(self, text: str) -> TextualAnalysisOutput:
        reply = await self._structured(
            "textual_analysis", "textual_analysis",
            f'Analyze the following text:\n\n"{self._clip(text)}"', _TextualReply,
        )
        return TextualAnalysisOutput(**reply.model_dump())

    async def analyze_emotion(self, text: str) -> EmotionAnalysisOutput:
        reply = await self._structured(
            "emotion_analysis", "emotion_analysis",
            f'Analyze the emotional tone of the following text:\n\n"{self._clip(text)}"',
            _EmotionReply,
        )
        return EmotionAnalysisOutput(**reply.model_dump())

    async def analyze_visual(
        self, images: Sequence[ImageAsset], from_video: bool = False
    ) -> VisualAnalysisOutput:
        if not images:
            raise PreconditionError("Visual analysis needs at least one image")
        label = VIDEO_CLIP_LABEL if from_video else UPLOADED_IMAGE_LABEL
        instruction = (
            f"Analyze these {len(images)} frames from a video clip."
            if from_video
            else "Analyze this image."
        )

        client = self._client("visual_analysis")
        response = await client.complete_with_vision(
            messages=[Message(role="user", content=instruction)],
            images=[ImageInput.from_asset(img) for img in images],
            system=load_prompt("visual_video" if from_video else "visual_image"),
            max_tokens=self._settings.llm_max_tokens,
            response_format=_VisualReply,
        )
        reply = parse_reply(response.content, _VisualReply, "visual_analysis")
        insights = [
            VisualInsight(**{**i.model_dump(), "image": label}) for i in reply.visual_insights
        ]
        return VisualAnalysisOutput(visual_insights=insights)

    async def analyze_source(self, domain: str) -> SourceIntelligenceOutput:
        reply = await self._structured(
            "source_intelligence", "source_intelligence",
            f'Analyze the credibility of the domain: "{domain}"', _SourceReply,
        )
        return SourceIntelligenceOutput(**reply.model_dump())

    async def synthesize(self, aggregate: ResultAggregate) -> AsyncIterator[str]:
        user_text = (
            "Synthesize the following data into an actionable intelligence brief:\n\n"
            f"{_results_payload(aggregate)}"
        )
        async for chunk in self._client("final_synthesis").stream(
            [Message(role="user", content=user_text)],
            system=load_prompt("final_synthesis"),
            max_tokens=self._settings.llm_max_tokens,
            temperature=self._settings.llm_temperature,
        ):
            yield chunk

    async def compare(self, entries: Sequence[HistoryEntry]) -> AsyncIterator[str]:
        sections = [
            f"--- REPORT {i} ---\n"
            f"Source: {e.input_descriptor}\n"
            f"Analyzed on: {e.timestamp.isoformat()}\n\n"
            f"Brief:\n{e.report}\n--- END REPORT {i} ---"
            for i, e in enumerate(entries, start=1)
        ]
        user_text = (
            "Compare the following intelligence reports and generate a synthesized "
            "comparative brief:\n\n" + "\n\n".join(sections)
        )
        async for chunk in self._client("final_synthesis").stream(
            [Message(role="user", content=user_text)],
            system=load_prompt("comparison"),
            max_tokens=self._settings.llm_max_tokens,
            temperature=self._settings.llm_temperature,
        ):
            yield chunk

    def start_follow_up(self, report: str) -> FollowUpSession:
        return LLMFollowUpSession(
            self._client("follow_up"), report, max_tokens=self._settings.llm_max_tokens
        )

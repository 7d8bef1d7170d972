# src/api/facade.py - v2
"""Public API facade: wire collaborators from Settings and run verifications.

Usage:
    from factlens.api.facade import verify
    outcome = await verify(RunInput(url="https://example.com/story"))
"""

from __future__ import annotations

import logging
from typing import Sequence

from factlens.agents.base_agents import BaseAnalysisAgents
from factlens.config.settings import Settings
from factlens.core.models import RunInput
from factlens.llm.retry import RetryPolicy
from factlens.media.frame_extractor import BaseFrameExtractor, OpenCVFrameExtractor
from factlens.pipeline.executor import StageExecutor
from factlens.pipeline.orchestrator import PipelineOrchestrator, RunOutcome
from factlens.pipeline.progress import Observer
from factlens.storage.base_history_store import BaseHistoryStore
from factlens.storage.base_record_store import BaseRecordStore
from factlens.storage.store_factory import create_history_store, create_record_store

logger = logging.getLogger(__name__)


def build_agents(settings: Settings) -> BaseAnalysisAgents:
    """LLM-backed agents, paced by a token bucket when rate limiting is on."""
    from factlens.agents.ingestion import HttpContentFetcher
    from factlens.agents.llm_agents import LLMAnalysisAgents
    from factlens.llm.client_factory import create_component_clients

    fetcher = HttpContentFetcher(
        timeout_s=settings.ingestion_timeout_s,
        user_agent=settings.ingestion_user_agent,
        max_chars=settings.ingestion_max_chars,
    )
    agents: BaseAnalysisAgents = LLMAnalysisAgents(
        create_component_clients(settings), fetcher, settings
    )

    if settings.rate_limit_enabled:
        from factlens.agents.rate_limited import RateLimitedAgents
        from factlens.llm.rate_limiter import TokenBucket

        bucket = TokenBucket(settings.rate_limit_per_s, burst=settings.rate_limit_burst)
        agents = RateLimitedAgents(agents, bucket)
    return agents


def build_orchestrator(
    settings: Settings | None = None,
    agents: BaseAnalysisAgents | None = None,
    history_store: BaseHistoryStore | None = None,
    record_store: BaseRecordStore | None = None,
    frame_extractor: BaseFrameExtractor | None = None,
    observers: Sequence[Observer] | None = None,
) -> PipelineOrchestrator:
    """Assemble a PipelineOrchestrator; any collaborator may be injected."""
    settings = settings or Settings()
    record_store = record_store or create_record_store(settings)

    executor = StageExecutor(
        agents=agents or build_agents(settings),
        retry_policy=RetryPolicy(
            max_attempts=settings.retry_max_attempts,
            base_delay_s=settings.retry_base_delay_s,
            backoff_factor=settings.retry_backoff_factor,
        ),
        frame_extractor=frame_extractor or OpenCVFrameExtractor(),
        record_store=record_store,
        misinformation_threshold=settings.misinformation_threshold,
        video_frame_count=settings.video_frame_count,
    )
    return PipelineOrchestrator(
        executor=executor,
        history_store=history_store or create_history_store(settings),
        record_store=record_store,
        observers=observers,
    )


async def verify(
    run_input: RunInput,
    settings: Settings | None = None,
    observers: Sequence[Observer] | None = None,
) -> RunOutcome:
    """Run one verification end-to-end with collaborators built from settings.

    Raises:
        PreconditionError: Nothing to analyze.
        PipelineFailedError: A stage failed.
    """
    orchestrator = build_orchestrator(settings, observers=observers)
    return await orchestrator.run(run_input)

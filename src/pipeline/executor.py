# src/pipeline/executor.py - v1
"""Runs a single analysis stage: applicability, invocation, status, fold.

Stage lifecycle: Pending -> Running -> Completed | Skipped | Error. The
tracker emits a progress event after every transition. Failures mark the
stage Error with a friendly message and are re-raised unchanged.
"""

from __future__ import annotations

import logging

from factlens.agents.base_agents import BaseAnalysisAgents
from factlens.core.models import MisinformationRecord, RunInput, SourceIntelligenceOutput
from factlens.llm.retry import RetryPolicy
from factlens.logging.context import stage_context
from factlens.media.frame_extractor import BaseFrameExtractor
from factlens.pipeline.diagnostics import friendly_error_message
from factlens.pipeline.progress import RunTracker
from factlens.pipeline.stages import FALLBACK_SUFFIX, Stage, StageContext
from factlens.pipeline.state import StageName, StageStatus
from factlens.storage.base_record_store import BaseRecordStore

logger = logging.getLogger(__name__)

DEFAULT_MISINFORMATION_THRESHOLD = 40


class StageExecutor:
    """Executes stages against one set of collaborators.

    Args:
        agents: Analysis capabilities.
        retry_policy: Wraps stages that declare a fallback.
        frame_extractor: Needed for video input only.
        record_store: Receives misinformation records; optional.
        misinformation_threshold: Trust scores below this are recorded.
        video_frame_count: Frames sampled from a video.
    """

    def __init__(
        self,
        agents: BaseAnalysisAgents,
        retry_policy: RetryPolicy | None = None,
        frame_extractor: BaseFrameExtractor | None = None,
        record_store: BaseRecordStore | None = None,
        misinformation_threshold: int = DEFAULT_MISINFORMATION_THRESHOLD,
        video_frame_count: int = 5,
    ) -> None:
        self._agents = agents
        self._retry = retry_policy or RetryPolicy()
        self._frame_extractor = frame_extractor
        self._record_store = record_store
        self._threshold = misinformation_threshold
        self._video_frame_count = video_frame_count

    @property
    def agents(self) -> BaseAnalysisAgents:
        return self._agents

    async def execute(self, stage: Stage, run_input: RunInput, tracker: RunTracker) -> StageStatus:
        """Run ``stage`` and fold its output into ``tracker.results``.

        Returns:
            The final status of the stage (Completed or Skipped).

        Raises:
            Exception: Whatever the capability raised; the stage is marked
                Error first.
        """
        ctx = StageContext(
            run_input=run_input,
            results=tracker.results,
            agents=self._agents,
            frame_extractor=self._frame_extractor,
            video_frame_count=self._video_frame_count,
        )

        with stage_context(stage.name.value):
            if not stage.applies(ctx):
                tracker.transition(stage.name, StageStatus.SKIPPED, stage.skip_detail)
                return StageStatus.SKIPPED

            tracker.transition(stage.name, StageStatus.RUNNING, stage.running_detail(ctx))

            def progress(detail: str) -> None:
                tracker.transition(stage.name, StageStatus.RUNNING, detail)

            try:
                if stage.fallback is not None:
                    output = await self._retry.execute(
                        lambda: stage.invoke(ctx, progress),
                        fallback=stage.fallback,
                        label=stage.name.value,
                    )
                else:
                    output = await stage.invoke(ctx, progress)
            except Exception as exc:
                logger.error("%s failed: %s", stage.name.value, exc)
                tracker.transition(stage.name, StageStatus.ERROR, friendly_error_message(exc))
                raise

            tracker.fold(output)
            detail = stage.completed_detail(ctx, output)
            if getattr(output, "degraded", False):
                detail += FALLBACK_SUFFIX
            tracker.transition(stage.name, StageStatus.COMPLETED, detail)

            if stage.name == StageName.SOURCE_INTELLIGENCE:
                await self._record_misinformation(run_input, tracker, output)

            return StageStatus.COMPLETED

    async def _record_misinformation(
        self, run_input: RunInput, tracker: RunTracker, output: SourceIntelligenceOutput
    ) -> None:
        """Upsert a record for low-trust domains; a failing write is only logged."""
        if self._record_store is None or output.trust_score >= self._threshold:
            return
        domain = tracker.results.ingestion.domain
        record = MisinformationRecord(
            domain=domain, url=run_input.url or "", trust_score=output.trust_score
        )
        try:
            await self._record_store.put(domain, record)
            logger.info("Recorded low-trust domain %s (trust %d)", domain, output.trust_score)
        except Exception as exc:
            logger.warning("Failed to save misinformation record for %s: %s", domain, exc)

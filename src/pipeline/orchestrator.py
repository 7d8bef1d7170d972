# src/pipeline/orchestrator.py - v3
"""Pipeline orchestrator: drives the six stages of one verification run.

Order is fixed: Content Ingestion, Textual Analysis, Emotion Analysis,
Visual Analysis, Source Intelligence, Final Synthesis. Stages run one at a
time; the report is streamed chunk by chunk to observers. A history entry
is written if and only if Final Synthesis completes; a failed write is
logged and reported on the outcome, never turned into a run failure.
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import aclosing
from dataclasses import dataclass
from typing import AsyncIterator, Sequence

from factlens.agents.base_agents import FollowUpSession
from factlens.agents.ingestion import domain_of
from factlens.core.errors import (
    AgentError,
    PipelineBusyError,
    PipelineCancelledError,
    PipelineFailedError,
    PreconditionError,
    StoreError,
)
from factlens.core.models import (
    HistoryEntry,
    MisinformationRecord,
    ResultAggregate,
    RiskAssessment,
    RunInput,
    generate_entry_id,
)
from factlens.logging.context import clear_context, set_run_context, stage_context
from factlens.pipeline.diagnostics import friendly_error_message, stage_failure_message
from factlens.pipeline.executor import StageExecutor
from factlens.pipeline.progress import Observer, RunTracker
from factlens.pipeline.stages import (
    ANALYSIS_STAGES,
    NO_SYNTHESIS_DATA,
    SYNTHESIS_COMPLETED,
    SYNTHESIS_RUNNING,
    can_synthesize,
)
from factlens.pipeline.state import PipelineState, StageName, StageStatus
from factlens.scoring.risk import score
from factlens.storage.base_history_store import BaseHistoryStore
from factlens.storage.base_record_store import BaseRecordStore

logger = logging.getLogger(__name__)

CANCELLED_DETAIL = "Run cancelled"
MIN_COMPARISON_ENTRIES = 2


@dataclass(frozen=True)
class RunOutcome:
    """Everything a successful run produced."""

    entry: HistoryEntry
    state: PipelineState
    results: ResultAggregate
    report: str
    risk: RiskAssessment
    follow_up: FollowUpSession
    prior_warning: MisinformationRecord | None = None
    history_saved: bool = True


class PipelineOrchestrator:
    """Top-level orchestrator for verification runs.

    One run at a time: a second ``run()`` while one is in flight raises
    PipelineBusyError. ``cancel()`` stops the current run at the next stage
    boundary or report chunk.

    Args:
        executor: Runs the five analysis stages.
        history_store: Receives one HistoryEntry per completed run.
        record_store: Misinformation records, used for prior warnings.
        observers: Called synchronously with every progress event.
    """

    def __init__(
        self,
        executor: StageExecutor,
        history_store: BaseHistoryStore,
        record_store: BaseRecordStore | None = None,
        observers: Sequence[Observer] | None = None,
    ) -> None:
        self._executor = executor
        self._history = history_store
        self._records = record_store
        self._observers: list[Observer] = list(observers or [])
        self._tracker: RunTracker | None = None
        self._follow_up: FollowUpSession | None = None
        self._running = False
        self._cancel_requested = False

    # --- Observation ---

    def add_observer(self, observer: Observer) -> None:
        self._observers.append(observer)

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def state(self) -> PipelineState:
        """Snapshot of the current (or last) run."""
        return self._tracker.state if self._tracker else PipelineState.initial()

    @property
    def results(self) -> ResultAggregate:
        return self._tracker.results if self._tracker else ResultAggregate()

    @property
    def report(self) -> str:
        return self._tracker.report if self._tracker else ""

    @property
    def follow_up(self) -> FollowUpSession | None:
        return self._follow_up

    @property
    def history_store(self) -> BaseHistoryStore:
        return self._history

    # --- Run ---

    def cancel(self) -> None:
        """Request cancellation of the in-flight run; no-op when idle."""
        if self._running:
            logger.info("Cancellation requested")
            self._cancel_requested = True

    async def run(self, run_input: RunInput) -> RunOutcome:
        """Execute the full pipeline for one input.

        Raises:
            PreconditionError: The input carries nothing to analyze.
            PipelineBusyError: Another run is in flight.
            PipelineFailedError: A stage failed; carries the final state.
            PipelineCancelledError: ``cancel()`` was called.
        """
        run_input.require_content()
        if self._running:
            raise PipelineBusyError("A verification run is already in progress")

        self._running = True
        self._cancel_requested = False
        self._follow_up = None
        tracker = RunTracker(self._observers)
        self._tracker = tracker

        run_id = generate_entry_id()
        set_run_context(run_id)
        start = time.monotonic()
        logger.info("Run started for %s", run_input.descriptor)

        try:
            prior_warning = await self._prior_warning(run_input)

            for stage in ANALYSIS_STAGES:
                self._check_cancelled(tracker)
                await self._executor.execute(stage, run_input, tracker)

            self._check_cancelled(tracker)
            report = await self._synthesize(tracker)

            entry = HistoryEntry(
                id=run_id,
                input_descriptor=run_input.descriptor,
                report=report,
                state=tracker.state,
                results=tracker.results,
            )
            history_saved = await self._save_history(entry)

            risk = score(tracker.results)
            self._follow_up = self._executor.agents.start_follow_up(report)

            logger.info(
                "Run complete in %.1fs: %s (%d)",
                time.monotonic() - start, risk.label, risk.score,
            )
            return RunOutcome(
                entry=entry,
                state=tracker.state,
                results=tracker.results,
                report=report,
                risk=risk,
                follow_up=self._follow_up,
                prior_warning=prior_warning,
                history_saved=history_saved,
            )

        except PipelineCancelledError:
            raise
        except asyncio.CancelledError:
            self._mark_cancelled(tracker)
            raise
        except Exception as exc:
            raise self._failure(tracker, exc) from exc
        finally:
            self._running = False
            self._cancel_requested = False
            clear_context()

    async def _synthesize(self, tracker: RunTracker) -> str:
        stage = StageName.FINAL_SYNTHESIS
        with stage_context(stage.value):
            if not can_synthesize(tracker.results):
                tracker.transition(stage, StageStatus.ERROR, NO_SYNTHESIS_DATA)
                raise AgentError(NO_SYNTHESIS_DATA, agent="final_synthesis")

            tracker.transition(stage, StageStatus.RUNNING, SYNTHESIS_RUNNING)
            stream = self._executor.agents.synthesize(tracker.results)
            async with aclosing(stream):
                async for chunk in stream:
                    self._check_cancelled(tracker)
                    tracker.append_chunk(chunk)
            tracker.transition(stage, StageStatus.COMPLETED, SYNTHESIS_COMPLETED)
        return tracker.report

    async def _save_history(self, entry: HistoryEntry) -> bool:
        try:
            await self._history.append(entry)
        except StoreError as exc:
            logger.warning("Failed to save history entry %s: %s", entry.id, exc)
            return False
        return True

    async def _prior_warning(self, run_input: RunInput) -> MisinformationRecord | None:
        """Earlier misinformation record for the URL's domain, if any."""
        if self._records is None or not run_input.url:
            return None
        domain = domain_of(run_input.url)
        if not domain:
            return None
        try:
            record = await self._records.get(domain)
        except Exception as exc:
            logger.warning("Could not check misinformation records for %s: %s", domain, exc)
            return None
        if record is not None:
            logger.warning(
                "%s was previously flagged (trust score %d)", domain, record.trust_score
            )
        return record

    def _check_cancelled(self, tracker: RunTracker) -> None:
        if self._cancel_requested:
            self._mark_cancelled(tracker)
            raise PipelineCancelledError(tracker.state)

    @staticmethod
    def _mark_cancelled(tracker: RunTracker) -> None:
        running = tracker.state.running_stage
        if running is not None:
            tracker.transition(running, StageStatus.ERROR, CANCELLED_DETAIL)
        logger.info("Run cancelled")

    @staticmethod
    def _failure(tracker: RunTracker, exc: Exception) -> PipelineFailedError:
        """Mark the failing stage and build the stage-specific diagnostic."""
        state = tracker.state
        stage = state.running_stage or state.error_stage
        if state.running_stage is not None:
            tracker.transition(stage, StageStatus.ERROR, friendly_error_message(exc))

        message = stage_failure_message(stage, exc)
        logger.error(message)
        return PipelineFailedError(message, stage, tracker.state, tracker.results)

    # --- History features ---

    async def history(self) -> list[HistoryEntry]:
        """All past runs, newest first."""
        return await self._history.list_all()

    async def clear_history(self) -> None:
        await self._history.clear()

    def open_follow_up(self, entry: HistoryEntry) -> FollowUpSession:
        """Re-open a follow-up conversation about a past report."""
        session = self._executor.agents.start_follow_up(entry.report)
        self._follow_up = session
        return session

    async def compare(self, entry_ids: Sequence[str]) -> AsyncIterator[str]:
        """Stream a comparative brief over stored runs.

        Validation happens on first iteration.

        Raises:
            PreconditionError: Fewer than two distinct ids, or an unknown id.
        """
        ids = list(dict.fromkeys(entry_ids))
        if len(ids) < MIN_COMPARISON_ENTRIES:
            raise PreconditionError(
                f"Select at least {MIN_COMPARISON_ENTRIES} reports to compare."
            )

        entries: list[HistoryEntry] = []
        for entry_id in ids:
            entry = await self._history.get(entry_id)
            if entry is None:
                raise PreconditionError(f"No history entry with id {entry_id!r}")
            entries.append(entry)

        logger.info("Comparing %d reports", len(entries))
        stream = self._executor.agents.compare(entries)
        async with aclosing(stream):
            async for chunk in stream:
                yield chunk

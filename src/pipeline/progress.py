# src/pipeline/progress.py - v1
"""Run bookkeeping and progress events.

RunTracker owns the current PipelineState and ResultAggregate of one run.
Every transition replaces the snapshot and notifies observers
synchronously, in order, before the pipeline proceeds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Union

from factlens.core.models import ResultAggregate, StageOutput
from factlens.pipeline.state import PipelineState, StageName, StageStatus

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageEvent:
    """A stage changed status (or its running detail changed)."""

    stage: StageName
    status: StageStatus
    details: str | None
    state: PipelineState


@dataclass(frozen=True)
class ReportChunkEvent:
    """A chunk of the final report arrived."""

    chunk: str
    report: str


ProgressEvent = Union[StageEvent, ReportChunkEvent]
Observer = Callable[[ProgressEvent], None]


class RunTracker:
    """Mutable holder of the immutable per-run snapshots."""

    def __init__(self, observers: list[Observer] | None = None) -> None:
        self._observers = list(observers or [])
        self.state = PipelineState.initial()
        self.results = ResultAggregate()
        self._report: list[str] = []

    @property
    def report(self) -> str:
        return "".join(self._report)

    def transition(
        self, stage: StageName, status: StageStatus, details: str | None = None
    ) -> PipelineState:
        self.state = self.state.with_status(stage, status, details)
        logger.debug("%s -> %s%s", stage.value, status.value, f" ({details})" if details else "")
        self._emit(StageEvent(stage=stage, status=status, details=details, state=self.state))
        return self.state

    def fold(self, output: StageOutput) -> ResultAggregate:
        self.results = self.results.with_result(output)
        return self.results

    def append_chunk(self, chunk: str) -> None:
        self._report.append(chunk)
        self._emit(ReportChunkEvent(chunk=chunk, report=self.report))

    def _emit(self, event: ProgressEvent) -> None:
        for observer in self._observers:
            try:
                observer(event)
            except Exception:
                # Observer failures are logged, never propagated.
                logger.exception("Progress observer %r raised", observer)

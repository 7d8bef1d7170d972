# src/logging/context.py - v2
"""Contextual logging support: attach run_id, stage and step to log records."""

from __future__ import annotations

import contextvars
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator

# Set per pipeline run; asyncio tasks inherit a copy.
_run_id: contextvars.ContextVar[str | None] = contextvars.ContextVar("run_id", default=None)
_stage: contextvars.ContextVar[str | None] = contextvars.ContextVar("stage", default=None)
_step: contextvars.ContextVar[str | None] = contextvars.ContextVar("step", default=None)


@dataclass(frozen=True)
class LogContext:
    """Immutable snapshot of current logging context."""

    run_id: str | None = None
    stage: str | None = None
    step: str | None = None

    def as_dict(self) -> dict[str, Any]:
        """Non-None fields, for JSON log injection."""
        return {k: v for k, v in self.__dict__.items() if v is not None}


def get_context() -> LogContext:
    return LogContext(run_id=_run_id.get(), stage=_stage.get(), step=_step.get())


def set_run_context(run_id: str) -> None:
    """Called once at the start of each pipeline run."""
    _run_id.set(run_id)
    _stage.set(None)
    _step.set(None)


def set_stage_context(stage: str | None, step: str | None = None) -> None:
    _stage.set(stage)
    _step.set(step)


@contextmanager
def stage_context(stage: str, step: str | None = None) -> Iterator[None]:
    """Scope stage/step for the duration of a block."""
    stage_token = _stage.set(stage)
    step_token = _step.set(step)
    try:
        yield
    finally:
        _stage.reset(stage_token)
        _step.reset(step_token)


def clear_context() -> None:
    _run_id.set(None)
    _stage.set(None)
    _step.set(None)

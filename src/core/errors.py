# src/core/errors.py - v2
"""Exception hierarchy shared by agents, pipeline and stores.

Agent adapters tag every failure with an ErrorKind at the boundary so the
retry layer can match on the kind instead of parsing message text.
"""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from factlens.core.models import ResultAggregate
    from factlens.pipeline.state import PipelineState, StageName


class ErrorKind(str, Enum):
    """Structured failure class attached by collaborator adapters."""

    OVERLOAD = "overload"
    QUOTA = "quota"
    RATE_LIMIT = "rate_limit"
    TIMEOUT = "timeout"
    INVALID_RESPONSE = "invalid_response"
    INACCESSIBLE = "inaccessible"
    FATAL = "fatal"

    @property
    def is_transient(self) -> bool:
        return self in TRANSIENT_KINDS


TRANSIENT_KINDS: frozenset[ErrorKind] = frozenset(
    {ErrorKind.OVERLOAD, ErrorKind.QUOTA, ErrorKind.RATE_LIMIT}
)


class FactLensError(Exception):
    """Base class for all factlens errors."""


class PreconditionError(FactLensError):
    """Run input is unusable; raised before any stage starts."""


class ConfigurationError(FactLensError):
    """Settings are internally inconsistent."""


class AgentError(FactLensError):
    """Failure reported by an analysis capability."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.FATAL, agent: str = "") -> None:
        self.kind = kind
        self.agent = agent
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        return self.kind.is_transient


class IngestionError(AgentError):
    """Content could not be retrieved (inaccessible, blocked or empty)."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.INACCESSIBLE) -> None:
        super().__init__(message, kind=kind, agent="ingestion")


class AggregateConflictError(FactLensError):
    """A ResultAggregate field was written twice during one run."""


class StoreError(FactLensError):
    """History or record store operation failed."""


class PipelineBusyError(FactLensError):
    """A run was requested while another one is still in flight."""


class PipelineFailedError(FactLensError):
    """A stage failed fatally; carries the final state snapshot.

    Attributes:
        stage: Failing stage, or None if the failure happened outside a stage.
        message: User-facing diagnostic.
        state: PipelineState at the moment the run halted.
        results: ResultAggregate accumulated before the failure.
    """

    def __init__(
        self,
        message: str,
        stage: StageName | None,
        state: PipelineState,
        results: ResultAggregate,
    ) -> None:
        self.message = message
        self.stage = stage
        self.state = state
        self.results = results
        super().__init__(message)


class PipelineCancelledError(FactLensError):
    """The run was cancelled through PipelineOrchestrator.cancel()."""

    def __init__(self, state: PipelineState) -> None:
        self.state = state
        super().__init__("Run cancelled")

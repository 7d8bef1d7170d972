# src/pipeline/state.py - v2
"""Per-stage state machine for one pipeline run.

PipelineState is an immutable value: every transition returns a new
instance, so observers holding a snapshot never see it change under them.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class StageName(str, Enum):
    """Pipeline stages. Declaration order is execution order."""

    CONTENT_INGESTION = "Content Ingestion"
    TEXTUAL_ANALYSIS = "Textual Analysis"
    EMOTION_ANALYSIS = "Emotion Analysis"
    VISUAL_ANALYSIS = "Visual Analysis"
    SOURCE_INTELLIGENCE = "Source Intelligence"
    FINAL_SYNTHESIS = "Final Synthesis"

    @property
    def rank(self) -> int:
        return STAGE_ORDER.index(self)


STAGE_ORDER: tuple[StageName, ...] = tuple(StageName)


class StageStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    ERROR = "error"

    @property
    def is_final(self) -> bool:
        return self in (StageStatus.COMPLETED, StageStatus.SKIPPED, StageStatus.ERROR)


class StageRecord(BaseModel):
    """Status of a single stage plus an optional progress note."""

    model_config = ConfigDict(frozen=True)

    stage: StageName
    status: StageStatus = StageStatus.PENDING
    details: str | None = None


class PipelineState(BaseModel):
    """Ordered StageRecord snapshot covering all six stages."""

    model_config = ConfigDict(frozen=True)

    records: tuple[StageRecord, ...]

    @model_validator(mode="after")
    def _check_records(self) -> PipelineState:
        stages = tuple(r.stage for r in self.records)
        if stages != STAGE_ORDER:
            raise ValueError(
                f"PipelineState must cover stages in order {[s.value for s in STAGE_ORDER]}, "
                f"got {[s.value for s in stages]}"
            )
        errors = [r.stage for r in self.records if r.status == StageStatus.ERROR]
        if len(errors) > 1:
            raise ValueError(f"At most one stage may be in error, got {len(errors)}")
        return self

    @classmethod
    def initial(cls) -> PipelineState:
        """Fresh state with every stage pending."""
        return cls(records=tuple(StageRecord(stage=s) for s in STAGE_ORDER))

    def record(self, stage: StageName) -> StageRecord:
        return self.records[stage.rank]

    def status(self, stage: StageName) -> StageStatus:
        return self.records[stage.rank].status

    def with_status(
        self, stage: StageName, status: StageStatus, details: str | None = None
    ) -> PipelineState:
        """Return a copy with one stage transitioned."""
        records = list(self.records)
        records[stage.rank] = StageRecord(stage=stage, status=status, details=details)
        return PipelineState(records=tuple(records))

    @property
    def running_stage(self) -> StageName | None:
        for r in self.records:
            if r.status == StageStatus.RUNNING:
                return r.stage
        return None

    @property
    def error_stage(self) -> StageName | None:
        for r in self.records:
            if r.status == StageStatus.ERROR:
                return r.stage
        return None

    @property
    def is_terminal(self) -> bool:
        """True once no stage is pending or running."""
        return all(r.status.is_final for r in self.records)

    @property
    def is_successful(self) -> bool:
        return all(
            r.status in (StageStatus.COMPLETED, StageStatus.SKIPPED) for r in self.records
        )

    def as_dict(self) -> dict[str, dict[str, str | None]]:
        """Stage display name -> {status, details}, for reports and logs."""
        return {
            r.stage.value: {"status": r.status.value, "details": r.details}
            for r in self.records
        }

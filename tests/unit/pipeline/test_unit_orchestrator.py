# tests/unit/pipeline/test_unit_orchestrator.py - v2
"""Tests for pipeline/orchestrator.py - full runs against stub agents."""

from __future__ import annotations

import asyncio

import pytest

from factlens.core.errors import (
    AgentError,
    ErrorKind,
    IngestionError,
    PipelineBusyError,
    PipelineCancelledError,
    PipelineFailedError,
    PreconditionError,
    StoreError,
)
from factlens.core.models import MisinformationRecord, RunInput
from factlens.pipeline.orchestrator import CANCELLED_DETAIL, PipelineOrchestrator
from factlens.pipeline.progress import ReportChunkEvent, StageEvent
from factlens.pipeline.stages import NO_SYNTHESIS_DATA
from factlens.pipeline.state import STAGE_ORDER, StageName, StageStatus
from factlens.scoring.risk import score
from tests.factories import StubAgents, make_ingestion, make_source

URL_INPUT = RunInput(url="https://news.example.com/story")

S = StageStatus


def _final(state) -> dict[StageName, StageStatus]:
    return {s: state.status(s) for s in STAGE_ORDER}


class TestSuccessfulRuns:
    @pytest.mark.asyncio
    async def test_url_run(self, orchestrator, stub_agents, history_store, events):
        outcome = await orchestrator.run(URL_INPUT)

        assert _final(outcome.state) == {
            StageName.CONTENT_INGESTION: S.COMPLETED,
            StageName.TEXTUAL_ANALYSIS: S.COMPLETED,
            StageName.EMOTION_ANALYSIS: S.COMPLETED,
            StageName.VISUAL_ANALYSIS: S.SKIPPED,
            StageName.SOURCE_INTELLIGENCE: S.COMPLETED,
            StageName.FINAL_SYNTHESIS: S.COMPLETED,
        }
        assert outcome.report == "".join(stub_agents.report_chunks)
        assert outcome.risk == score(outcome.results)
        assert outcome.prior_warning is None
        assert stub_agents.calls == [
            "ingest", "analyze_text", "analyze_emotion", "analyze_source", "synthesize",
        ]

        stored = await history_store.list_all()
        assert [e.id for e in stored] == [outcome.entry.id]
        assert stored[0].input_descriptor == URL_INPUT.url
        assert stored[0].report == outcome.report

    @pytest.mark.asyncio
    async def test_events_are_ordered(self, orchestrator, events):
        await orchestrator.run(URL_INPUT)
        stage_events = [e for e in events if isinstance(e, StageEvent)]
        ranks = [e.stage.rank for e in stage_events]
        assert ranks == sorted(ranks)
        assert stage_events[0].stage == StageName.CONTENT_INGESTION
        assert stage_events[0].status == S.RUNNING
        assert stage_events[-1].status == S.COMPLETED
        assert stage_events[-1].details == "Brief generated successfully"

        chunks = [e.chunk for e in events if isinstance(e, ReportChunkEvent)]
        assert "".join(chunks) == orchestrator.report

    @pytest.mark.asyncio
    async def test_text_only_skips_source(self, orchestrator, stub_agents):
        outcome = await orchestrator.run(RunInput(raw_text="A claim to check."))
        assert outcome.state.status(StageName.SOURCE_INTELLIGENCE) == S.SKIPPED
        assert outcome.entry.input_descriptor == "Direct Text Input"
        assert "ingest" not in stub_agents.calls

    @pytest.mark.asyncio
    async def test_image_only(self, orchestrator, stub_agents, sample_image):
        outcome = await orchestrator.run(RunInput(image=sample_image))
        assert _final(outcome.state) == {
            StageName.CONTENT_INGESTION: S.SKIPPED,
            StageName.TEXTUAL_ANALYSIS: S.SKIPPED,
            StageName.EMOTION_ANALYSIS: S.SKIPPED,
            StageName.VISUAL_ANALYSIS: S.COMPLETED,
            StageName.SOURCE_INTELLIGENCE: S.SKIPPED,
            StageName.FINAL_SYNTHESIS: S.COMPLETED,
        }
        assert outcome.results.textual is None
        assert outcome.results.visual is not None

    @pytest.mark.asyncio
    async def test_degraded_stage_still_completes_run(self, orchestrator, stub_agents, history_store):
        stub_agents.emotion_result = [AgentError("busy", kind=ErrorKind.OVERLOAD)] * 3
        outcome = await orchestrator.run(URL_INPUT)
        assert outcome.results.emotion.degraded
        assert outcome.state.is_successful
        assert len(await history_store.list_all()) == 1

    @pytest.mark.asyncio
    async def test_follow_up_seeded_with_report(self, orchestrator):
        outcome = await orchestrator.run(URL_INPUT)
        assert outcome.follow_up is orchestrator.follow_up
        assert outcome.follow_up.report == outcome.report
        answer = "".join([c async for c in outcome.follow_up.send("Who said it?")])
        assert answer == "It says so."


class TestFailures:
    @pytest.mark.asyncio
    async def test_empty_input_rejected_before_any_stage(self, orchestrator, events):
        with pytest.raises(PreconditionError):
            await orchestrator.run(RunInput(raw_text="   "))
        assert events == []
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_fatal_stage_halts_pipeline(self, orchestrator, stub_agents, history_store):
        stub_agents.emotion_result = AgentError("could not parse", kind=ErrorKind.INVALID_RESPONSE)
        with pytest.raises(PipelineFailedError) as exc_info:
            await orchestrator.run(URL_INPUT)

        err = exc_info.value
        assert err.stage == StageName.EMOTION_ANALYSIS
        assert err.message.startswith("Emotion Analysis failed.")
        assert err.message.endswith("Details: could not parse")
        assert _final(err.state) == {
            StageName.CONTENT_INGESTION: S.COMPLETED,
            StageName.TEXTUAL_ANALYSIS: S.COMPLETED,
            StageName.EMOTION_ANALYSIS: S.ERROR,
            StageName.VISUAL_ANALYSIS: S.PENDING,
            StageName.SOURCE_INTELLIGENCE: S.PENDING,
            StageName.FINAL_SYNTHESIS: S.PENDING,
        }
        assert err.results.textual is not None
        assert "analyze_source" not in stub_agents.calls
        assert await history_store.list_all() == []
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_ingestion_failure_message(self, orchestrator, stub_agents):
        stub_agents.ingest_result = IngestionError("Server responded with HTTP 404")
        with pytest.raises(PipelineFailedError) as exc_info:
            await orchestrator.run(URL_INPUT)
        assert exc_info.value.message == (
            "Content Ingestion failed: Server responded with HTTP 404. "
            "Please check if the URL is correct and publicly accessible."
        )

    @pytest.mark.asyncio
    async def test_nothing_to_synthesize(self, orchestrator, stub_agents, history_store):
        stub_agents.ingest_result = make_ingestion(text="")
        with pytest.raises(PipelineFailedError) as exc_info:
            await orchestrator.run(URL_INPUT)
        err = exc_info.value
        assert err.stage == StageName.FINAL_SYNTHESIS
        assert NO_SYNTHESIS_DATA in err.message
        assert err.state.record(StageName.FINAL_SYNTHESIS).details == NO_SYNTHESIS_DATA
        assert "synthesize" not in stub_agents.calls
        assert await history_store.list_all() == []

    @pytest.mark.asyncio
    async def test_synthesis_stream_failure(self, orchestrator, stub_agents, history_store):
        stub_agents.synthesis_error = AgentError("stream reset")
        with pytest.raises(PipelineFailedError) as exc_info:
            await orchestrator.run(URL_INPUT)
        err = exc_info.value
        assert err.stage == StageName.FINAL_SYNTHESIS
        assert err.state.status(StageName.FINAL_SYNTHESIS) == S.ERROR
        assert await history_store.list_all() == []

    @pytest.mark.asyncio
    async def test_history_write_failure_keeps_run(
        self, orchestrator, stub_agents, history_store, monkeypatch
    ):
        async def broken_append(entry):
            raise StoreError("disk full")

        monkeypatch.setattr(history_store, "append", broken_append)
        outcome = await orchestrator.run(URL_INPUT)

        assert outcome.history_saved is False
        assert outcome.state.is_successful
        assert outcome.state.error_stage is None
        assert outcome.state.status(StageName.FINAL_SYNTHESIS) == S.COMPLETED
        assert outcome.report == "".join(stub_agents.report_chunks)
        assert outcome.risk == score(outcome.results)
        assert outcome.follow_up is not None
        assert orchestrator.follow_up is outcome.follow_up
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_history_saved_flag(self, orchestrator):
        outcome = await orchestrator.run(URL_INPUT)
        assert outcome.history_saved is True

    @pytest.mark.asyncio
    async def test_orchestrator_reusable_after_failure(self, orchestrator, stub_agents):
        stub_agents.textual_result = [AgentError("bad"), stub_agents.textual_result]
        with pytest.raises(PipelineFailedError):
            await orchestrator.run(URL_INPUT)
        outcome = await orchestrator.run(URL_INPUT)
        assert outcome.state.is_successful


class _BlockingAgents(StubAgents):
    def __init__(self) -> None:
        super().__init__()
        self.release = asyncio.Event()
        self.entered = asyncio.Event()

    async def ingest(self, url):
        self.entered.set()
        await self.release.wait()
        return await super().ingest(url)


class TestConcurrencyAndCancel:
    @pytest.mark.asyncio
    async def test_second_run_is_rejected(self, retry_policy, history_store):
        from factlens.pipeline.executor import StageExecutor

        agents = _BlockingAgents()
        orchestrator = PipelineOrchestrator(StageExecutor(agents, retry_policy), history_store)
        task = asyncio.create_task(orchestrator.run(URL_INPUT))
        await agents.entered.wait()
        assert orchestrator.is_running

        with pytest.raises(PipelineBusyError):
            await orchestrator.run(URL_INPUT)

        agents.release.set()
        outcome = await task
        assert outcome.state.is_successful
        assert len(await history_store.list_all()) == 1

    @pytest.mark.asyncio
    async def test_cancel_between_stages(self, orchestrator, history_store):
        def cancel_after_textual(event):
            if (
                isinstance(event, StageEvent)
                and event.stage == StageName.TEXTUAL_ANALYSIS
                and event.status == S.COMPLETED
            ):
                orchestrator.cancel()

        orchestrator.add_observer(cancel_after_textual)
        with pytest.raises(PipelineCancelledError) as exc_info:
            await orchestrator.run(URL_INPUT)
        state = exc_info.value.state
        assert state.status(StageName.TEXTUAL_ANALYSIS) == S.COMPLETED
        assert state.status(StageName.EMOTION_ANALYSIS) == S.PENDING
        assert await history_store.list_all() == []
        assert not orchestrator.is_running

    @pytest.mark.asyncio
    async def test_cancel_during_report_stream(self, orchestrator, stub_agents, history_store):
        def cancel_on_first_chunk(event):
            if isinstance(event, ReportChunkEvent):
                orchestrator.cancel()

        orchestrator.add_observer(cancel_on_first_chunk)
        with pytest.raises(PipelineCancelledError) as exc_info:
            await orchestrator.run(URL_INPUT)
        record = exc_info.value.state.record(StageName.FINAL_SYNTHESIS)
        assert record.status == S.ERROR
        assert record.details == CANCELLED_DETAIL
        assert orchestrator.report == stub_agents.report_chunks[0]
        assert await history_store.list_all() == []

    def test_cancel_when_idle_is_noop(self, orchestrator):
        orchestrator.cancel()
        assert not orchestrator.is_running


class TestMisinformationRecords:
    @pytest.mark.asyncio
    async def test_prior_warning(self, orchestrator, record_store):
        record = MisinformationRecord(domain="news.example.com", url="https://news.example.com/old",
                                      trust_score=12)
        await record_store.put("news.example.com", record)
        outcome = await orchestrator.run(URL_INPUT)
        assert outcome.prior_warning == record

    @pytest.mark.asyncio
    async def test_low_trust_run_records_domain(self, orchestrator, stub_agents, record_store):
        stub_agents.source_result = make_source(trust=15, validity="Low")
        await orchestrator.run(URL_INPUT)
        assert (await record_store.get("news.example.com")).trust_score == 15

        second = await orchestrator.run(URL_INPUT)
        assert second.prior_warning is not None


class TestHistoryFeatures:
    @pytest.mark.asyncio
    async def test_history_newest_first_and_clear(self, orchestrator):
        first = await orchestrator.run(URL_INPUT)
        second = await orchestrator.run(RunInput(raw_text="Other claim."))
        entries = await orchestrator.history()
        assert {e.id for e in entries} == {first.entry.id, second.entry.id}
        assert entries[0].timestamp >= entries[1].timestamp

        await orchestrator.clear_history()
        assert await orchestrator.history() == []

    @pytest.mark.asyncio
    async def test_compare(self, orchestrator, stub_agents):
        a = await orchestrator.run(URL_INPUT)
        b = await orchestrator.run(RunInput(raw_text="Other claim."))
        chunks = [c async for c in orchestrator.compare([a.entry.id, b.entry.id, a.entry.id])]
        assert chunks == ["Compared 2 reports."]
        assert stub_agents.compared == [[a.entry.id, b.entry.id]]

    @pytest.mark.asyncio
    async def test_compare_needs_two_entries(self, orchestrator):
        a = await orchestrator.run(URL_INPUT)
        with pytest.raises(PreconditionError, match="at least 2"):
            [c async for c in orchestrator.compare([a.entry.id, a.entry.id])]

    @pytest.mark.asyncio
    async def test_compare_unknown_id(self, orchestrator):
        a = await orchestrator.run(URL_INPUT)
        with pytest.raises(PreconditionError, match="nope"):
            [c async for c in orchestrator.compare([a.entry.id, "nope"])]

    @pytest.mark.asyncio
    async def test_open_follow_up_for_past_entry(self, orchestrator):
        a = await orchestrator.run(URL_INPUT)
        session = orchestrator.open_follow_up(a.entry)
        assert session.report == a.report
        assert orchestrator.follow_up is session

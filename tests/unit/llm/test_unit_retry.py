# tests/unit/llm/test_unit_retry.py - v3
"""Tests for llm/retry.py - classification, backoff schedule, fallback."""

from __future__ import annotations

import pytest

from factlens.core.errors import AgentError, ErrorKind
from factlens.llm.retry import RetryPolicy, classify_error, is_transient
from tests.factories import RecordingSleep


class _ApiError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class _Calls:
    """Callable failing with the queued errors, then returning ``result``."""

    def __init__(self, errors: list[Exception], result: str = "ok") -> None:
        self.errors = list(errors)
        self.result = result
        self.count = 0

    async def __call__(self) -> str:
        self.count += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class TestClassifyError:
    def test_agent_error_kind_wins(self):
        err = AgentError("model is overloaded", kind=ErrorKind.INVALID_RESPONSE)
        assert classify_error(err) == ErrorKind.INVALID_RESPONSE

    @pytest.mark.parametrize(
        "status,kind",
        [(429, ErrorKind.RATE_LIMIT), (503, ErrorKind.OVERLOAD), (529, ErrorKind.OVERLOAD),
         (504, ErrorKind.TIMEOUT)],
    )
    def test_status_codes(self, status, kind):
        assert classify_error(_ApiError("x", status_code=status)) == kind

    @pytest.mark.parametrize(
        "message,kind",
        [
            ("The model is OVERLOADED. Try again later.", ErrorKind.OVERLOAD),
            ('{"error": {"status": "RESOURCE_EXHAUSTED"}}', ErrorKind.QUOTA),
            ("You exceeded your current quota", ErrorKind.QUOTA),
            ("Rate limit reached for requests", ErrorKind.RATE_LIMIT),
            ("429 Too Many Requests", ErrorKind.RATE_LIMIT),
            ("503 Service Unavailable", ErrorKind.OVERLOAD),
        ],
    )
    def test_message_fallback(self, message, kind):
        assert classify_error(RuntimeError(message)) == kind

    @pytest.mark.parametrize(
        "message",
        [
            "Document 14290 not found",
            "Upstream returned 429 bytes of garbage",
            "Requested model is unavailable in your region",
        ],
    )
    def test_incidental_words_are_fatal(self, message):
        assert classify_error(ValueError(message)) == ErrorKind.FATAL
        assert not is_transient(ValueError(message))

    def test_unknown_is_fatal(self):
        assert classify_error(ValueError("schema mismatch")) == ErrorKind.FATAL
        assert not is_transient(ValueError("schema mismatch"))


class TestRetryPolicy:
    def test_delay_schedule(self):
        policy = RetryPolicy()
        assert [policy.delay_for(a) for a in (1, 2, 3)] == [2.0, 4.0, 8.0]
        assert policy.worst_case_delay_s == 6.0

    @pytest.mark.asyncio
    async def test_success_first_try(self, retry_policy, recording_sleep):
        call = _Calls([])
        assert await retry_policy.execute(call) == "ok"
        assert call.count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_two_transient_failures_then_success(self, retry_policy, recording_sleep):
        call = _Calls([AgentError("busy", kind=ErrorKind.OVERLOAD)] * 2)
        assert await retry_policy.execute(call, fallback=lambda: "fallback") == "ok"
        assert call.count == 3
        assert recording_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhaustion_returns_fallback(self, retry_policy, recording_sleep):
        call = _Calls([AgentError("quota", kind=ErrorKind.QUOTA)] * 3)
        assert await retry_policy.execute(call, fallback=lambda: "fallback") == "fallback"
        assert call.count == 3
        # No wait after the final attempt.
        assert recording_sleep.delays == [2.0, 4.0]

    @pytest.mark.asyncio
    async def test_exhaustion_without_fallback_reraises(self, retry_policy):
        call = _Calls([AgentError("busy", kind=ErrorKind.OVERLOAD)] * 3)
        with pytest.raises(AgentError):
            await retry_policy.execute(call)
        assert call.count == 3

    @pytest.mark.asyncio
    async def test_non_retryable_raises_immediately(self, retry_policy, recording_sleep):
        call = _Calls([AgentError("bad json", kind=ErrorKind.INVALID_RESPONSE)])
        with pytest.raises(AgentError, match="bad json"):
            await retry_policy.execute(call, fallback=lambda: "fallback")
        assert call.count == 1
        assert recording_sleep.delays == []

    @pytest.mark.asyncio
    async def test_custom_predicate_and_attempts(self):
        sleep = RecordingSleep()
        policy = RetryPolicy(base_delay_s=1.0, sleep=sleep)
        call = _Calls([KeyError("a"), KeyError("b")])
        result = await policy.execute(
            call, is_retryable=lambda e: isinstance(e, KeyError), fallback=lambda: "fb", max_attempts=2
        )
        assert result == "fb"
        assert sleep.delays == [1.0]

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValueError):
            RetryPolicy(max_attempts=0)

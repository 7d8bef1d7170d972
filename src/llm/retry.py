# src/llm/retry.py - v3
"""Bounded exponential-backoff retry with a deterministic fallback.

Only transient failures (overload, quota, rate limit) are retried. Once
attempts are exhausted the policy returns the caller's fallback value
instead of raising; any other failure propagates on first sight.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from factlens.core.errors import AgentError, ErrorKind

logger = logging.getLogger(__name__)

T = TypeVar("T")

_STATUS_KINDS: dict[int, ErrorKind] = {
    429: ErrorKind.RATE_LIMIT,
    503: ErrorKind.OVERLOAD,
    529: ErrorKind.OVERLOAD,
    504: ErrorKind.TIMEOUT,
}

# Checked in order; first hit wins. Bare status numbers are only trusted
# through the status-code attribute.
_MESSAGE_KINDS: tuple[tuple[str, ErrorKind], ...] = (
    ("resource_exhausted", ErrorKind.QUOTA),
    ("quota", ErrorKind.QUOTA),
    ("overload", ErrorKind.OVERLOAD),
    ("rate limit", ErrorKind.RATE_LIMIT),
    ("ratelimit", ErrorKind.RATE_LIMIT),
    ("too many requests", ErrorKind.RATE_LIMIT),
    ("service unavailable", ErrorKind.OVERLOAD),
    ("timeout", ErrorKind.TIMEOUT),
    ("timed out", ErrorKind.TIMEOUT),
)


def classify_error(error: BaseException) -> ErrorKind:
    """Classify an exception into an ErrorKind.

    Tagged AgentErrors keep their kind. Untagged SDK exceptions are matched
    on their HTTP status code, then on the normalized message text.
    """
    if isinstance(error, AgentError):
        return error.kind

    status = getattr(error, "status_code", None) or getattr(error, "code", None)
    if isinstance(status, int) and status in _STATUS_KINDS:
        return _STATUS_KINDS[status]

    msg = " ".join(str(error).lower().replace("_", " ").split())
    name = type(error).__name__.lower()
    if "timeout" in name:
        return ErrorKind.TIMEOUT
    if "ratelimit" in name:
        return ErrorKind.RATE_LIMIT
    for needle, kind in _MESSAGE_KINDS:
        if needle.replace("_", " ") in msg:
            return kind
    return ErrorKind.FATAL


def is_transient(error: BaseException) -> bool:
    """Default retry predicate: overload, quota or rate limit."""
    return classify_error(error).is_transient


class RetryPolicy:
    """Retry a single async call on transient failures.

    Args:
        max_attempts: Total attempts including the first one.
        base_delay_s: Delay after the first failed attempt.
        backoff_factor: Multiplier applied per subsequent attempt.
        sleep: Awaitable sleep, replaceable in tests.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay_s: float = 2.0,
        backoff_factor: float = 2.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        self.max_attempts = max_attempts
        self.base_delay_s = base_delay_s
        self.backoff_factor = backoff_factor
        self._sleep = sleep

    def delay_for(self, attempt: int) -> float:
        """Delay after the given failed attempt (1-indexed): 2s, 4s, 8s..."""
        return self.base_delay_s * (self.backoff_factor ** (attempt - 1))

    @property
    def worst_case_delay_s(self) -> float:
        # No sleep follows the final attempt.
        return sum(self.delay_for(a) for a in range(1, self.max_attempts))

    async def execute(
        self,
        call: Callable[[], Awaitable[T]],
        is_retryable: Callable[[BaseException], bool] = is_transient,
        fallback: Callable[[], T] | None = None,
        max_attempts: int | None = None,
        label: str = "call",
    ) -> T:
        """Run ``call`` with retry.

        Returns:
            The call's result, or ``fallback()`` after exhausting attempts
            on retryable failures.

        Raises:
            Exception: Any non-retryable failure, immediately. A retryable
                failure is re-raised on exhaustion only when no fallback
                was given.
        """
        attempts_allowed = max_attempts or self.max_attempts
        attempt = 0

        while True:
            attempt += 1
            try:
                return await call()
            except Exception as exc:
                if not is_retryable(exc):
                    raise

                if attempt >= attempts_allowed:
                    if fallback is None:
                        raise
                    logger.warning(
                        "%s: %s after %d attempts, using fallback result",
                        label, classify_error(exc).value, attempt,
                    )
                    return fallback()

                delay = self.delay_for(attempt)
                logger.warning(
                    "%s: %s (attempt %d/%d), retrying in %.1fs",
                    label, classify_error(exc).value, attempt, attempts_allowed, delay,
                )
                await self._sleep(delay)

"""Retry with exponential backoff for agent sessions."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
)

from wikigen.constants.generation import (
    DEFAULT_MAX_RETRY_ATTEMPTS,
    DEFAULT_RETRY_DELAY_MS,
    MAX_RETRY_DELAY_MS,
    RETRY_JITTER_MS,
    TRANSIENT_ERROR_MARKERS,
)
from wikigen.generation.errors import AgentExecutionError
from wikigen.llm.client import (
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceUnavailableError,
    LLMTimeoutError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

TRANSIENT_ERROR_TYPES: tuple[type[BaseException], ...] = (
    LLMConnectionError,
    LLMRateLimitError,
    LLMServiceUnavailableError,
    LLMTimeoutError,
    ConnectionError,
    TimeoutError,
)


def is_transient_error(error: BaseException) -> bool:
    """Whether an error is worth retrying.

    Connection, timeout, rate-limit and availability errors are transient by
    type. Any other error is transient when its message carries one of the
    known markers, such as an HTTP 503 status.
    """
    if isinstance(error, TRANSIENT_ERROR_TYPES):
        return True
    message = str(error).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


def compute_retry_delay(
    attempt: int, base_delay_ms: int, jitter_ms: Optional[float] = None
) -> float:
    """Delay in milliseconds before retrying after ``attempt`` failed.

    ``base * 2^(attempt-1)`` plus up to RETRY_JITTER_MS of jitter, capped
    at MAX_RETRY_DELAY_MS.
    """
    if jitter_ms is None:
        jitter_ms = random.uniform(0, RETRY_JITTER_MS)
    return min(base_delay_ms * 2 ** (attempt - 1) + jitter_ms, MAX_RETRY_DELAY_MS)


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = DEFAULT_MAX_RETRY_ATTEMPTS
    base_delay_ms: int = DEFAULT_RETRY_DELAY_MS

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")


async def run_with_retry(
    operation: Callable[[int], Awaitable[T]],
    policy: RetryPolicy,
    operation_name: str,
    sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
) -> T:
    """Run ``operation(attempt)`` until it succeeds or retries run out.

    Args:
        operation: Coroutine factory called with the 1-based attempt number.
        policy: Attempt limit and base backoff delay.
        operation_name: Name used in logs and errors.
        sleep: Awaitable sleep taking seconds.

    Returns:
        The first successful result.

    Raises:
        AgentExecutionError: When the last attempt failed or a failure was
            not transient. The failure is chained as ``__cause__``.
    """

    def backoff(retry_state: RetryCallState) -> float:
        return compute_retry_delay(retry_state.attempt_number, policy.base_delay_ms) / 1000

    def log_retry(retry_state: RetryCallState) -> None:
        failure = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
        logger.warning(
            f"{operation_name} attempt {retry_state.attempt_number}/{policy.max_attempts} "
            f"failed: {failure}. Retrying in {delay * 1000:.0f} ms"
        )

    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.max_attempts),
        wait=backoff,
        retry=retry_if_exception(is_transient_error),
        before_sleep=log_retry,
        sleep=sleep,
        reraise=False,
    )
    attempt_number = 0
    try:
        async for attempt in retrying:
            attempt_number = attempt.retry_state.attempt_number
            with attempt:
                result = await operation(attempt_number)
    except RetryError as e:
        attempts = e.last_attempt.attempt_number
        failure = e.last_attempt.exception()
        logger.error(f"{operation_name} failed after {attempts} attempts: {failure}")
        raise AgentExecutionError(operation_name, attempts, str(failure)) from failure
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error(f"{operation_name} failed with a non-retryable error: {e}")
        raise AgentExecutionError(operation_name, attempt_number, str(e)) from e
    return result

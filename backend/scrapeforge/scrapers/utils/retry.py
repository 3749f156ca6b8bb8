"""Retry policy with exponential backoff for page navigation."""

from typing import Awaitable, Callable, Optional

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)
from playwright.async_api import Error as PlaywrightError

from scrapeforge.core.exceptions import NavigationError
from scrapeforge.scrapers.utils.fingerprint import backoff_delay, BACKOFF_BASE_MS


# Exceptions treated as transient navigation failures
RETRYABLE_NAVIGATION_ERRORS = (
    NavigationError,
    PlaywrightError,
    TimeoutError,
    ConnectionError,
)


def jittered_backoff(base_ms: int = BACKOFF_BASE_MS) -> Callable[[RetryCallState], float]:
    """tenacity wait strategy built on :func:`backoff_delay`.

    The first retry waits ``backoff_delay(0)``, the second ``backoff_delay(1)``,
    and so on. Returns seconds, as tenacity expects.
    """

    def _wait(retry_state: RetryCallState) -> float:
        return backoff_delay(retry_state.attempt_number - 1, base_ms=base_ms) / 1000

    return _wait


def stop_when(predicate: Callable[[], bool]) -> Callable[[RetryCallState], bool]:
    """tenacity stop condition that fires when ``predicate()`` is true."""

    def _stop(retry_state: RetryCallState) -> bool:
        return predicate()

    return _stop


def navigation_retrying(
    attempts: int,
    base_ms: int = BACKOFF_BASE_MS,
    is_cancelled: Optional[Callable[[], bool]] = None,
    before_sleep: Optional[Callable[[RetryCallState], Awaitable[None]]] = None,
) -> AsyncRetrying:
    """Build the retry controller used for one URL.

    Args:
        attempts: Total attempts, including the first one (at least 1)
        base_ms: Backoff base delay in milliseconds
        is_cancelled: Stops retrying as soon as it returns True
        before_sleep: Async hook called before each backoff wait

    Returns:
        tenacity AsyncRetrying that re-raises the last error
    """
    stop = stop_after_attempt(max(1, attempts))
    if is_cancelled is not None:
        stop = stop | stop_when(is_cancelled)

    return AsyncRetrying(
        stop=stop,
        wait=jittered_backoff(base_ms),
        retry=retry_if_exception_type(RETRYABLE_NAVIGATION_ERRORS),
        before_sleep=before_sleep,
        reraise=True,
    )

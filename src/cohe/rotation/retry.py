"""Generic retry wrapper for flaky async operations.

Fixed delay between attempts, no exponential growth and no jitter. The
wrapper never raises to its caller: exhausting every attempt yields None.
"""

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from structlog import get_logger
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from cohe.rotation.constants import DEFAULT_RETRY_ATTEMPTS, DEFAULT_RETRY_DELAY_SECONDS


logger = get_logger(__name__)

T = TypeVar("T")


class _RejectedResultError(Exception):
    """Internal: the validator refused an otherwise successful result."""

    def __init__(self, result: Any):
        self.result = result
        super().__init__("Result rejected by validator")


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = DEFAULT_RETRY_ATTEMPTS,
    validator: Callable[[T], bool] | None = None,
    delay: float = DEFAULT_RETRY_DELAY_SECONDS,
    context: str = "operation",
) -> T | None:
    """Run an async operation until it succeeds or attempts run out.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt
        max_attempts: Total attempts, including the first
        validator: Returns False to treat a result as a failed attempt
        delay: Seconds to wait between attempts
        context: Label used in log events

    Returns:
        The first accepted result, or None if every attempt failed
    """

    def before_sleep_log(retry_state: Any) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.info(
            "operation_retry",
            context=context,
            attempt=retry_state.attempt_number,
            max_attempts=max_attempts,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else 0,
            error=str(exc) if exc else None,
        )

    try:
        async for attempt in AsyncRetrying(
            wait=wait_fixed(delay),
            stop=stop_after_attempt(max_attempts),
            retry=retry_if_exception_type(Exception),
            before_sleep=before_sleep_log,
        ):
            with attempt:
                result = await operation()
                if validator is not None and not validator(result):
                    raise _RejectedResultError(result)
                return result
    except RetryError as e:
        exc = e.last_attempt.exception()
        logger.warning(
            "operation_retries_exhausted",
            context=context,
            attempts=max_attempts,
            error=str(exc) if exc else None,
        )
    return None

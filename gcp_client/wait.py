"""Generic wait/polling utilities.

Provides a retry-with-deadline primitive shared by every operation wait.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, TypeAlias, TypeVar

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception_type,
    retry_if_result,
    stop_after_delay,
    wait_fixed,
)

if TYPE_CHECKING:
    from loguru import Logger

log = logger.bind(component="wait")

Sleep: TypeAlias = Callable[[float], Awaitable[None]]

T = TypeVar("T")


class PollTimeoutError(TimeoutError):
    """The deadline passed before the polled resource became ready."""


async def wait_for_ready(
    poll_fn: Callable[[], Awaitable[T | None]],
    ready_check: Callable[[T], bool],
    *,
    timeout: float = 300.0,
    interval: float = 5.0,
    retry_on: tuple[type[BaseException], ...] = (),
    description: str = "resource",
    sleep: Sleep = asyncio.sleep,
    log: Logger = log,
) -> T:
    """Wait until poll_fn returns something that passes ready_check.

    The deadline is tracked on a monotonic clock and also bounds a poll that
    is still in flight: a stuck ``poll_fn`` is cancelled when it passes.

    Args:
        poll_fn: Async function that polls for the resource state.
        ready_check: Function that returns True when resource is ready.
        timeout: Maximum time to wait in seconds.
        interval: Time between polls in seconds.
        retry_on: Exception types that count as "not ready yet" for one
            interval instead of aborting the wait.
        description: Description for log and error messages.
        sleep: Coroutine used to suspend between polls.
        log: Logger that receives per-poll events.

    Returns:
        The ready resource.

    Raises:
        PollTimeoutError: If timeout is exceeded.
    """

    def _log_retry(state: RetryCallState) -> None:
        outcome = state.outcome
        if outcome is not None and outcome.failed:
            log.warning(
                "Poll {n} for {what} failed: {err}",
                n=state.attempt_number, what=description, err=outcome.exception(),
            )
        else:
            log.trace(
                "Poll {n}: {what} not ready yet",
                n=state.attempt_number, what=description,
            )

    retrying = AsyncRetrying(
        stop=stop_after_delay(timeout),
        wait=wait_fixed(interval),
        retry=(
            retry_if_result(lambda r: r is None or not ready_check(r))
            | retry_if_exception_type(retry_on)
        ),
        before_sleep=_log_retry,
        sleep=sleep,
    )

    message = f"Timeout waiting for {description} after {timeout:.1f}s"
    try:
        async with asyncio.timeout(timeout) as deadline:
            return await retrying(poll_fn)  # type: ignore[return-value]
    except RetryError as e:
        raise PollTimeoutError(message) from e
    except TimeoutError as e:
        if not deadline.expired():
            raise
        log.debug("Deadline passed while polling {what}", what=description)
        raise PollTimeoutError(message) from e

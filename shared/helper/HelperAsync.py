"""Async control-flow helpers: bounded polling and bounded retries."""

import asyncio
import logging
from typing import Awaitable, Callable, TypeVar

from shared.clients.ClientErrors import ClientError, PollTimeoutError

T = TypeVar("T")


async def poll_until(
    fetch: Callable[[], Awaitable[T | None]],
    interval: float,
    max_attempts: int,
    description: str = "job",
    logger: logging.Logger | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fetch`` every ``interval`` seconds until it returns a value.

    ``fetch`` signals "not ready yet" by returning None. Errors raised by
    it propagate immediately.

    Args:
        fetch: Coroutine factory returning the final result or None.
        interval (float): Seconds to wait before each attempt.
        max_attempts (int): Upper bound on fetch calls.
        description (str): Label used in log lines and the timeout error.
        logger (logging.Logger | None): Optional logger for progress lines.
        sleep: Awaitable sleep function, replaceable in tests.

    Returns:
        T: The first non-None result of ``fetch``.

    Raises:
        PollTimeoutError: If no attempt produced a result.
        ValueError: If ``max_attempts`` is smaller than 1.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1.")
    for attempt in range(1, max_attempts + 1):
        await sleep(interval)
        result = await fetch()
        if result is not None:
            return result
        if logger:
            logger.info("Waiting for %s: attempt %d/%d", description, attempt, max_attempts)
    raise PollTimeoutError(f"{description} not ready after {max_attempts} attempts ({max_attempts * interval:.1f}s).")


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_retries: int,
    backoff: float,
    description: str = "operation",
    logger: logging.Logger | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> tuple[T, int]:
    """Run ``operation`` and retry retryable client errors with exponential backoff.

    Only ClientError instances whose ``retryable`` flag is set are retried;
    everything else propagates on the first failure.

    Args:
        operation: Coroutine factory to run.
        max_retries (int): Retries after the first attempt (0 = single try).
        backoff (float): Base delay; attempt n waits ``backoff * 2 ** (n - 1)``.
        description (str): Label used in log lines.
        logger (logging.Logger | None): Optional logger for retry warnings.
        sleep: Awaitable sleep function, replaceable in tests.

    Returns:
        tuple[T, int]: The operation result and the number of attempts used.

    Raises:
        ClientError: The last error once retries are exhausted.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return await operation(), attempt
        except ClientError as exc:
            if not exc.retryable or attempt > max_retries:
                raise
            delay = backoff * (2 ** (attempt - 1))
            if logger:
                logger.warning(
                    "%s failed (attempt %d/%d): %s. Retrying in %.2fs.",
                    description, attempt, max_retries + 1, exc, delay,
                )
            await sleep(delay)

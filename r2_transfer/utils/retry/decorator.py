from __future__ import annotations

import asyncio
from functools import wraps
import logging
import time
from typing import TYPE_CHECKING, ParamSpec, TypeVar

from r2_transfer.infra.metrics.tracking import (
    track_retry_attempt,
    track_retry_exhausted,
    track_retry_success,
)

from .exceptions import RetryError, RetryStatistics
from .strategies import RetryStrategy

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


async def retry_call(
    func: Callable[[], Awaitable[R]],
    strategy: RetryStrategy,
    *,
    operation: str,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    on_retry: Callable[[Exception, int], None] | None = None,
) -> R:
    """Await ``func()`` until it succeeds or ``strategy`` gives up.

    ``func`` is a zero-argument coroutine factory so every attempt starts from
    scratch. Exceptions the strategy does not retry propagate unchanged; when
    attempts run out a ``RetryError`` wraps the last one. Cancellation is not
    caught, so cancelling the caller stops the loop during an attempt or a
    backoff sleep.
    """
    statistics = RetryStatistics(operation=operation, start_time=time.monotonic())
    attempt = 0

    while True:
        attempt += 1
        statistics.attempts = attempt
        try:
            result = await func()
        except Exception as e:
            statistics.exceptions.append(type(e).__name__)
            if not strategy.should_retry(e):
                statistics.end_time = time.monotonic()
                logger.debug(
                    f"Non-retryable exception in {operation}: {e}",
                    extra={"operation": operation, "exception": str(e)},
                )
                raise

            decision = strategy.decide(attempt)
            if not decision.retry:
                statistics.end_time = time.monotonic()
                track_retry_exhausted(operation)
                logger.error(
                    f"All retry attempts exhausted for {operation}",
                    extra={
                        "operation": operation,
                        "attempts": attempt,
                        "last_exception": str(e),
                        "total_delay": statistics.total_delay,
                        "duration": statistics.duration,
                    },
                )
                raise RetryError(e, attempt, statistics, operation=operation) from e

            statistics.delays.append(decision.delay)
            track_retry_attempt(operation, attempt + 1)
            logger.warning(
                f"Retrying {operation} after {decision.delay:.2f}s (attempt {attempt}/{strategy.max_attempts})",
                extra={
                    "operation": operation,
                    "attempt": attempt,
                    "max_attempts": strategy.max_attempts,
                    "delay": decision.delay,
                    "exception": str(e),
                },
            )
            if on_retry:
                on_retry(e, attempt)

            await sleep(decision.delay)
        else:
            statistics.end_time = time.monotonic()
            if attempt > 1:
                track_retry_success(operation, attempt)
            return result


def retry(
    max_attempts: int = 3,
    exponential_base: float = 2.0,
    max_delay: float | None = None,
    exceptions: tuple[type[Exception], ...] = (Exception,),
    retry_if: Callable[[Exception], bool] | None = None,
    on_retry: Callable[[Exception, int], None] | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    strategy = RetryStrategy(
        max_attempts=max_attempts,
        exponential_base=exponential_base,
        max_delay=max_delay,
        exceptions=exceptions,
        retry_if=retry_if,
    )

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            return await retry_call(
                lambda: func(*args, **kwargs),
                strategy,
                operation=func.__name__,
                on_retry=on_retry,
                sleep=sleep,
            )

        return async_wrapper

    return decorator

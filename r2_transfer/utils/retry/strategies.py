from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class RetryDecision:
    """Outcome of evaluating a failed attempt."""

    retry: bool
    delay: float = 0.0


def backoff_decision(attempt: int, max_attempts: int, base: float = 2.0) -> RetryDecision:
    """Decide whether to run another attempt after attempt ``attempt`` failed.

    Attempts are 1-indexed. Another attempt runs while ``attempt < max_attempts``
    and is preceded by a wait of ``base ** attempt`` seconds, so the default
    policy waits 2s, 4s, 8s, ...

    Example:
        >>> backoff_decision(1, 3)
        RetryDecision(retry=True, delay=2.0)
        >>> backoff_decision(3, 3)
        RetryDecision(retry=False, delay=0.0)
    """
    if attempt < 1:
        msg = f"attempt must be >= 1, got {attempt}"
        raise ValueError(msg)
    if attempt >= max_attempts:
        return RetryDecision(retry=False)
    return RetryDecision(retry=True, delay=float(base**attempt))


class RetryStrategy:
    def __init__(
        self,
        max_attempts: int = 3,
        exponential_base: float = 2.0,
        max_delay: float | None = None,
        exceptions: tuple[type[Exception], ...] = (Exception,),
        retry_if: Callable[[Exception], bool] | None = None,
    ) -> None:
        if max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {max_attempts}"
            raise ValueError(msg)
        self.max_attempts = max_attempts
        self.exponential_base = exponential_base
        self.max_delay = max_delay
        self.exceptions = exceptions
        self.retry_if = retry_if

    def should_retry(self, exception: Exception) -> bool:
        if not isinstance(exception, self.exceptions):
            return False
        if self.retry_if is not None:
            return self.retry_if(exception)
        return True

    def decide(self, attempt: int) -> RetryDecision:
        decision = backoff_decision(attempt, self.max_attempts, self.exponential_base)
        if decision.retry and self.max_delay is not None and decision.delay > self.max_delay:
            return RetryDecision(retry=True, delay=self.max_delay)
        return decision

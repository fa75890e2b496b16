"""Retry bookkeeping and the error raised when attempts run out."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class RetryStatistics:
    """What happened across the attempts of one operation.

    ``delays`` holds the backoff wait before each retry, in order, so a
    three-attempt run with the default policy records ``[2.0, 4.0]``.
    """

    operation: str = ""
    attempts: int = 0
    delays: list[float] = field(default_factory=list)
    exceptions: list[str] = field(default_factory=list)
    start_time: float = 0.0
    end_time: float = 0.0

    @property
    def total_delay(self) -> float:
        return sum(self.delays)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


class RetryError(Exception):
    """Every attempt of ``operation`` failed; ``last_exception`` is the final cause."""

    def __init__(
        self,
        last_exception: Exception,
        attempts: int,
        statistics: RetryStatistics | None = None,
        operation: str | None = None,
    ) -> None:
        self.last_exception = last_exception
        self.attempts = attempts
        self.statistics = statistics
        self.operation = operation or (statistics.operation if statistics else None)
        prefix = f"{self.operation} failed" if self.operation else "Failed"
        super().__init__(f"{prefix} after {attempts} attempts. Last error: {last_exception}")

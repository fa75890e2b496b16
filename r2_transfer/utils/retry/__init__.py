from __future__ import annotations

from r2_transfer.utils.retry.decorator import retry, retry_call
from r2_transfer.utils.retry.exceptions import RetryError, RetryStatistics
from r2_transfer.utils.retry.strategies import RetryDecision, RetryStrategy, backoff_decision

__all__ = [
    "RetryDecision",
    "RetryError",
    "RetryStatistics",
    "RetryStrategy",
    "backoff_decision",
    "retry",
    "retry_call",
]

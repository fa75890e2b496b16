"""Upload progress events and their fan-out to subscribers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Cumulative progress of one upload."""

    key: str
    bytes_transferred: int
    total_bytes: int

    @property
    def percentage(self) -> int:
        """Percent complete, rounded half up. An empty payload is 100% done."""
        if self.total_bytes <= 0:
            return 100
        return (200 * self.bytes_transferred + self.total_bytes) // (2 * self.total_bytes)

    @property
    def done(self) -> bool:
        return self.bytes_transferred >= self.total_bytes

    def to_dict(self) -> dict[str, int | str]:
        return {
            "key": self.key,
            "progress": self.percentage,
            "bytes_transferred": self.bytes_transferred,
            "total_bytes": self.total_bytes,
        }


_CLOSED: Final = object()


class ProgressSubscription:
    """Async iterator over the events a channel delivers to one subscriber.

    Example:
        with channel.subscribe("images/a.png") as events:
            async for event in events:
                print(event.percentage)
    """

    def __init__(self, channel: ProgressChannel, key: str | None, maxsize: int) -> None:
        self._channel = channel
        self.key = key
        self._queue: asyncio.Queue[object] = asyncio.Queue(maxsize=maxsize)
        self.dropped = 0

    def matches(self, key: str) -> bool:
        return self.key is None or self.key == key

    def offer(self, item: object) -> None:
        # A full queue sheds its oldest event; the latest cumulative value wins.
        while True:
            try:
                self._queue.put_nowait(item)
            except asyncio.QueueFull:
                self._queue.get_nowait()
                self.dropped += 1
            else:
                return

    def __aiter__(self) -> ProgressSubscription:
        return self

    async def __anext__(self) -> ProgressEvent:
        item = await self._queue.get()
        if item is _CLOSED:
            raise StopAsyncIteration
        return item  # type: ignore[return-value]

    def close(self) -> None:
        self.offer(_CLOSED)
        self._channel.unsubscribe(self)

    def __enter__(self) -> ProgressSubscription:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


class ProgressChannel:
    """Publish progress events to any number of subscribers.

    Publishing never blocks the upload: each subscriber has its own queue and
    a bounded queue drops its oldest entry when full. ``finish(key)`` ends the
    iteration for subscribers of that key.
    """

    def __init__(self, maxsize: int = 0) -> None:
        self.maxsize = maxsize
        self._subscribers: list[ProgressSubscription] = []

    def subscribe(self, key: str | None = None) -> ProgressSubscription:
        """Subscribe to events for ``key``, or to every key when None."""
        subscription = ProgressSubscription(self, key, self.maxsize)
        self._subscribers.append(subscription)
        return subscription

    def unsubscribe(self, subscription: ProgressSubscription) -> None:
        if subscription in self._subscribers:
            self._subscribers.remove(subscription)

    def publish(self, event: ProgressEvent) -> None:
        for subscription in self._subscribers:
            if subscription.matches(event.key):
                subscription.offer(event)
        logger.debug(
            "Upload progress",
            extra={"key": event.key, "progress": event.percentage},
        )

    def finish(self, key: str) -> None:
        for subscription in [s for s in self._subscribers if s.key == key]:
            subscription.offer(_CLOSED)
            self.unsubscribe(subscription)

    def callback(self) -> Callable[[ProgressEvent], None]:
        """Adapter for APIs that accept a plain ``on_progress`` callable."""
        return self.publish

"""In-memory transports - page over a list and push events by hand.

Useful for tests, demos and replaying captured data::

    pager = ListPager(records, page_size=100)
    feed = ManualFeed()
    core = StreamCoordinator(pager, feed)
    feed.on_error = core.report_failure
    await core.start()
    feed.push({"device_id": "A", "timestamp": 4, "temperature": 21.0})
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from sensor_stream.transports.base import EventHandler, Page, TransportFailure

__all__ = ["ListPager", "ManualFeed", "ManualSubscription"]

logger = logging.getLogger("sensor_stream.transports.memory")


class ListPager:
    """Serves a fixed list of raw records as consecutive pages.

    Tokens are stringified offsets into the list.

    Parameters:
        records: Raw records to serve.
        page_size: Records per page.
    """

    def __init__(self, records: Iterable[Any], page_size: int = 1000) -> None:
        if page_size < 1:
            raise ValueError(f"page_size must be >= 1, got {page_size}")
        self._records = list(records)
        self.page_size = page_size
        self.calls: list[str | None] = []

    async def __call__(self, token: str | None) -> Page:
        self.calls.append(token)
        try:
            offset = int(token) if token else 0
        except ValueError as exc:
            raise TransportFailure(f"Invalid continuation token {token!r}") from exc

        end = offset + self.page_size
        next_token = str(end) if end < len(self._records) else None
        return Page(items=self._records[offset:end], next_token=next_token)

    def __len__(self) -> int:
        return len(self._records)


class ManualSubscription:
    """Handle returned by :class:`ManualFeed`; ``cancel()`` stops delivery."""

    def __init__(self, feed: ManualFeed, handler: EventHandler) -> None:
        self._feed = feed
        self.handler = handler
        self.cancelled = False

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._feed._detach(self)


class ManualFeed:
    """Subscriber whose events are pushed explicitly with :meth:`push`.

    Attributes:
        on_error: Called by :meth:`fail`; wire it to
            :meth:`StreamCoordinator.report_failure`.
    """

    def __init__(self, on_error: Callable[[BaseException], Any] | None = None) -> None:
        self.on_error = on_error
        self._subscriptions: list[ManualSubscription] = []

    def __call__(self, on_event: EventHandler) -> ManualSubscription:
        subscription = ManualSubscription(self, on_event)
        self._subscriptions.append(subscription)
        logger.debug("ManualFeed subscriber attached (%d active)", len(self._subscriptions))
        return subscription

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)

    def push(self, raw: Any) -> int:
        """Deliver *raw* to every active subscriber; return how many got it."""
        targets = list(self._subscriptions)
        for subscription in targets:
            subscription.handler(raw)
        return len(targets)

    def push_many(self, records: Iterable[Any]) -> int:
        delivered = 0
        for raw in records:
            delivered += self.push(raw)
        return delivered

    def fail(self, error: BaseException | str = "feed failed") -> None:
        """Simulate a non-recoverable transport failure."""
        exc = error if isinstance(error, BaseException) else TransportFailure(error)
        if self.on_error is None:
            raise exc
        self.on_error(exc)

    def _detach(self, subscription: ManualSubscription) -> None:
        if subscription in self._subscriptions:
            self._subscriptions.remove(subscription)

"""Transport abstraction layer - the collaborator contracts of the core.

Provides:
- ``Page``               - one page of historical records plus continuation.
- ``PageFetcher``        - ``fetch_page(token) -> Page`` (sync or async).
- ``Subscriber``         - ``subscribe(on_event) -> SubscriptionHandle``.
- ``SubscriptionHandle`` - anything with a ``cancel()`` (sync or async).
- ``TransportFailure``   - raised by transports on non-recoverable errors.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

__all__ = [
    "EventHandler",
    "Page",
    "PageFetcher",
    "Subscriber",
    "SubscriptionHandle",
    "TransportFailure",
    "coerce_page",
]

EventHandler = Callable[[Any], None]


class TransportFailure(Exception):
    """A collaborator could not deliver data and will not recover on its own."""


class Page(BaseModel):
    """One page of raw historical records.

    Attributes:
        items: Raw records, normalized later by the core.
        next_token: Continuation token; ``None`` or ``""`` means no more pages.
    """

    items: list[Any] = Field(default_factory=list)
    next_token: str | None = None

    @property
    def has_more(self) -> bool:
        return bool(self.next_token)


def coerce_page(value: Page | Mapping[str, Any] | None) -> Page:
    """Accept a :class:`Page` or a plain mapping using either ``next_token``
    or the GraphQL spelling ``nextToken``.
    """
    if isinstance(value, Page):
        return value
    if value is None:
        return Page()
    if not isinstance(value, Mapping):
        raise TransportFailure(f"fetch_page returned {type(value).__name__}, expected a page")
    token = value.get("next_token", value.get("nextToken"))
    return Page(items=list(value.get("items") or []), next_token=token)


@runtime_checkable
class SubscriptionHandle(Protocol):
    def cancel(self) -> Any: ...


@runtime_checkable
class PageFetcher(Protocol):
    def __call__(
        self, token: str | None
    ) -> Page | Mapping[str, Any] | Awaitable[Page | Mapping[str, Any]]: ...


@runtime_checkable
class Subscriber(Protocol):
    def __call__(
        self, on_event: EventHandler
    ) -> SubscriptionHandle | Awaitable[SubscriptionHandle]: ...

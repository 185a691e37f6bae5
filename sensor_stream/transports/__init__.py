"""Collaborator contracts and reference transports for the sensor stream core.

Import what you need directly from this package::

    from sensor_stream.transports import ListPager, ManualFeed, FilePager
"""

from __future__ import annotations

import importlib
from typing import Any

from sensor_stream.transports.base import (
    Page,
    PageFetcher,
    Subscriber,
    SubscriptionHandle,
    TransportFailure,
    coerce_page,
)
from sensor_stream.transports.file import FilePager, load_records
from sensor_stream.transports.memory import ListPager, ManualFeed, ManualSubscription

# Lazy-loaded transports (require optional extras)
#   from sensor_stream.transports.graphql import GraphQLPager

__all__ = [
    "FilePager",
    "ListPager",
    "ManualFeed",
    "ManualSubscription",
    "Page",
    "PageFetcher",
    "Subscriber",
    "SubscriptionHandle",
    "TransportFailure",
    "coerce_page",
    "load_records",
]


def __getattr__(name: str) -> Any:
    """Lazy-import transports that require optional dependencies."""
    _lazy = {
        "GraphQLPager": "sensor_stream.transports.graphql",
    }
    if name in _lazy:
        mod = importlib.import_module(_lazy[name])
        return getattr(mod, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")

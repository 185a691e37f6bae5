"""Sensor Stream Core - merge paginated sensor history with a live event
stream, keep rolling per-device statistics and raise threshold alerts.

Quick start::

    from sensor_stream import StreamCoordinator
    from sensor_stream.transports import ListPager, ManualFeed

    feed = ManualFeed()
    core = StreamCoordinator(ListPager(history, page_size=1000), feed)
    core.on_alert(lambda alert: print(alert.severity, alert.message))
    await core.start()
    feed.push({"device_id": "A", "timestamp": 42, "temperature": 31.5})
    print(core.get_snapshot("A"))
"""

from __future__ import annotations

from sensor_stream.aggregator import RollingAggregator
from sensor_stream.alerts import AlertEngine, Thresholds, evaluate
from sensor_stream.config import StreamConfig, load_yaml_config
from sensor_stream.coordinator import CoordinatorState, CoordinatorStatus, StreamCoordinator
from sensor_stream.models import (
    AggregateSnapshot,
    Alert,
    DateRange,
    MalformedReading,
    Reading,
    Severity,
    TimeRange,
)
from sensor_stream.normalizer import Normalizer, normalize
from sensor_stream.store import IngestResult, TimeSeriesStore

__all__ = [
    "AggregateSnapshot",
    "Alert",
    "AlertEngine",
    "CoordinatorState",
    "CoordinatorStatus",
    "DateRange",
    "IngestResult",
    "MalformedReading",
    "Normalizer",
    "Reading",
    "RollingAggregator",
    "Severity",
    "StreamConfig",
    "StreamCoordinator",
    "Thresholds",
    "TimeRange",
    "TimeSeriesStore",
    "evaluate",
    "load_yaml_config",
    "normalize",
]

__version__ = "0.1.0"

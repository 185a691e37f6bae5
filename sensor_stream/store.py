"""Time-series store - ordered, deduplicated per-device reading series.

Each device owns a list of :class:`Reading` objects sorted by ``timestamp``.
Because the identity key is ``(device_id, timestamp)``, timestamps inside a
series are strictly increasing, which lets both duplicate detection and
range queries use binary search.

Retention evicts the oldest readings of a series.  The store remembers, per
device, the highest timestamp it has ever evicted; a reading at or below
that mark is ``stale`` and never accepted, because its key may already have
been counted.  Every other new reading is accepted, even when retention
evicts it straight away.  The outcome therefore depends only on the order
readings arrive in, not on how they were batched.
"""

from __future__ import annotations

import bisect
import heapq
import logging
import time
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass, field
from typing import Any

from sensor_stream.models import MalformedReading, Reading, TimeRange
from sensor_stream.normalizer import normalize

__all__ = ["IngestResult", "TimeSeriesStore"]

logger = logging.getLogger("sensor_stream.store")


def _timestamp(reading: Reading) -> int:
    return reading.timestamp


def _display_order(reading: Reading) -> tuple[int, float, str]:
    return (reading.timestamp, reading.received_at, reading.device_id)


def _validate_limit(limit: int | None) -> int | None:
    if limit is None:
        return None
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValueError(f"retention_limit must be a positive integer or None, got {limit!r}")
    return limit


@dataclass
class IngestResult:
    """Outcome of an ``ingest_*`` call.

    Attributes:
        accepted: Readings seen for the first time, in arrival order.  With
            a retention limit some may already have been evicted again.
        duplicates: Readings whose identity key was already stored (or
            repeated within the same batch).
        stale: Readings at or below the device's eviction mark.
        out_of_order: Accepted readings whose timestamp is below the newest
            timestamp previously accepted for their device.
        malformed: Raw records the normalizer rejected.
    """

    accepted: list[Reading] = field(default_factory=list)
    duplicates: int = 0
    stale: int = 0
    out_of_order: int = 0
    malformed: list[MalformedReading] = field(default_factory=list)

    @property
    def is_duplicate(self) -> bool:
        return not self.accepted and self.duplicates > 0


class TimeSeriesStore:
    """In-memory store of per-device reading series.

    Parameters:
        retention_limit:
            Maximum readings kept per device.  ``None`` keeps everything.
            When a series overflows, its oldest readings are evicted.
        clock:
            Wall-clock source used to stamp ``received_at`` on raw records.

    The store is not internally synchronized; callers must serialize
    mutations of the same device.
    """

    def __init__(
        self,
        retention_limit: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._retention_limit = _validate_limit(retention_limit)
        self._clock = clock
        self._series: dict[str, list[Reading]] = {}
        # newest timestamp ever accepted per device (survives eviction)
        self._high_water: dict[str, int] = {}
        # newest timestamp ever evicted per device
        self._evicted: dict[str, int] = {}
        self._devices: set[str] = set()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    @property
    def retention_limit(self) -> int | None:
        return self._retention_limit

    def set_retention_limit(self, limit: int | None) -> None:
        """Change the per-device cap and trim existing series to fit."""
        self._retention_limit = _validate_limit(limit)
        if self._retention_limit is None:
            return
        for device_id, series in self._series.items():
            overflow = len(series) - self._retention_limit
            if overflow > 0:
                self._evict(device_id, series, overflow)
                logger.debug("Trimmed %d readings from device %s", overflow, device_id)

    def eviction_mark(self, device_id: str) -> int | None:
        """Highest timestamp evicted from *device_id*, or ``None``."""
        return self._evicted.get(device_id)

    def clear(self) -> None:
        """Forget every reading, eviction mark and device (a new session)."""
        self._series.clear()
        self._high_water.clear()
        self._evicted.clear()
        self._devices.clear()

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest_bulk(self, items: Iterable[Reading | Any]) -> IngestResult:
        """Merge many readings (e.g. a backfill page) into the store.

        Raw records are normalized first.  Each device's new readings are
        sorted once and merged linearly with the existing series.  The
        result is the same as calling :meth:`ingest_one` for each item in
        order.
        """
        result = IngestResult()
        groups: dict[str, list[tuple[int, Reading]]] = {}
        for position, item in enumerate(items):
            reading = self._coerce(item, result)
            if reading is not None:
                groups.setdefault(reading.device_id, []).append((position, reading))

        limit = self._retention_limit
        accepted: list[tuple[int, Reading]] = []
        for device_id, batch in groups.items():
            self._devices.add(device_id)
            series = self._series.setdefault(device_id, [])
            mark = self._evicted.get(device_id)

            # retained timestamps; a sorted list is already a valid min-heap
            window = [r.timestamp for r in series] if limit is not None else []
            fresh: list[tuple[int, Reading]] = []
            seen: set[int] = set()
            for position, reading in batch:
                ts = reading.timestamp
                if mark is not None and ts <= mark:
                    result.stale += 1
                    continue
                if ts in seen or self._find(series, ts) is not None:
                    result.duplicates += 1
                    continue
                seen.add(ts)
                fresh.append((position, reading))
                if limit is not None:
                    heapq.heappush(window, ts)
                    if len(window) > limit:
                        dropped = heapq.heappop(window)
                        mark = dropped if mark is None else max(mark, dropped)

            if not fresh:
                continue

            incoming = sorted((reading for _, reading in fresh), key=_timestamp)
            series[:] = list(heapq.merge(series, incoming, key=_timestamp))
            if limit is not None and len(series) > limit:
                self._evict(device_id, series, len(series) - limit)

            for position, reading in fresh:
                if self._mark_accepted(reading):
                    result.out_of_order += 1
                accepted.append((position, reading))

        accepted.sort(key=lambda entry: entry[0])
        result.accepted = [reading for _, reading in accepted]

        logger.debug(
            "Bulk ingest: %d accepted, %d duplicates, %d stale, %d malformed",
            len(result.accepted),
            result.duplicates,
            result.stale,
            len(result.malformed),
        )
        return result

    def ingest_one(self, item: Reading | Any) -> IngestResult:
        """Insert a single (live) reading, keeping order and dedup invariants.

        A duplicate is a silent no-op: the store is unchanged and the result
        carries ``duplicates == 1``.
        """
        result = IngestResult()
        reading = self._coerce(item, result)
        if reading is None:
            return result

        device_id = reading.device_id
        self._devices.add(device_id)
        series = self._series.setdefault(device_id, [])

        mark = self._evicted.get(device_id)
        if mark is not None and reading.timestamp <= mark:
            result.stale = 1
            logger.debug("Stale reading at or below eviction mark %d ignored: %s", mark, reading.key)
            return result

        index = bisect.bisect_left(series, reading.timestamp, key=_timestamp)
        if index < len(series) and series[index].timestamp == reading.timestamp:
            result.duplicates = 1
            logger.debug("Duplicate reading ignored: %s", reading.key)
            return result

        series.insert(index, reading)
        limit = self._retention_limit
        if limit is not None and len(series) > limit:
            self._evict(device_id, series, len(series) - limit)

        if self._mark_accepted(reading):
            result.out_of_order = 1
            logger.debug("Out-of-order reading accepted: %s", reading.key)
        result.accepted.append(reading)
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def query(
        self,
        device_id: str | None = None,
        time_range: TimeRange | None = None,
    ) -> list[Reading]:
        """Return matching readings ordered by ``timestamp``.

        ``device_id=None`` merges every device into one view, ties broken by
        ``received_at`` then ``device_id``.  The returned list is a copy.
        """
        if device_id is not None:
            return list(self._select(device_id, time_range))

        views = [self._select(dev, time_range) for dev in sorted(self._series)]
        return list(heapq.merge(*views, key=_display_order))

    def devices(self) -> set[str]:
        """Every device id observed this session."""
        return set(self._devices)

    def count(self, device_id: str | None = None) -> int:
        if device_id is not None:
            return len(self._series.get(device_id, ()))
        return sum(len(series) for series in self._series.values())

    def latest(self, device_id: str | None = None) -> Reading | None:
        """Reading with the highest timestamp (for one device or overall)."""
        if device_id is not None:
            series = self._series.get(device_id)
            return series[-1] if series else None
        tails = [series[-1] for series in self._series.values() if series]
        if not tails:
            return None
        return max(tails, key=_display_order)

    def __len__(self) -> int:
        return self.count()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _coerce(self, item: Reading | Any, result: IngestResult) -> Reading | None:
        if isinstance(item, Reading):
            return item
        normalized = normalize(item, received_at=self._clock())
        if isinstance(normalized, MalformedReading):
            result.malformed.append(normalized)
            logger.warning("Skipping malformed reading: %s", normalized.reason)
            return None
        return normalized

    @staticmethod
    def _find(series: list[Reading], timestamp: int) -> int | None:
        index = bisect.bisect_left(series, timestamp, key=_timestamp)
        if index < len(series) and series[index].timestamp == timestamp:
            return index
        return None

    def _evict(self, device_id: str, series: list[Reading], count: int) -> None:
        newest = series[count - 1].timestamp
        del series[:count]
        previous = self._evicted.get(device_id)
        if previous is None or newest > previous:
            self._evicted[device_id] = newest

    def _mark_accepted(self, reading: Reading) -> bool:
        """Record *reading* as accepted; return ``True`` if it arrived out of order."""
        previous = self._high_water.get(reading.device_id)
        if previous is None or reading.timestamp > previous:
            self._high_water[reading.device_id] = reading.timestamp
            return False
        return reading.timestamp < previous

    def _select(self, device_id: str, time_range: TimeRange | None) -> Iterator[Reading]:
        series = self._series.get(device_id, [])
        if time_range is None:
            return iter(list(series))
        if time_range.field != "timestamp":
            return iter([r for r in series if time_range.contains(r)])

        lo = 0
        hi = len(series)
        if time_range.start is not None:
            lo = bisect.bisect_left(series, time_range.start, key=_timestamp)
        if time_range.end is not None:
            hi = bisect.bisect_right(series, time_range.end, key=_timestamp)
        return iter(series[lo:hi])

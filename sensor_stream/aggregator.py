"""Rolling aggregation of per-device statistics.

Every accepted reading is folded into its device's snapshot in O(1) using
the incremental mean ``new = (old * n + value) / (n + 1)``; history is never
rescanned.  The global view is derived from the per-device snapshots.
"""

from __future__ import annotations

import logging

from sensor_stream.models import AggregateSnapshot, Reading

__all__ = ["RollingAggregator"]

logger = logging.getLogger("sensor_stream.aggregator")


def _running_mean(mean: float, count: int, value: float) -> float:
    return (mean * count + value) / (count + 1)


class RollingAggregator:
    """Maintains one :class:`AggregateSnapshot` per device.

    The caller guarantees each reading is applied at most once; the
    aggregator itself does not deduplicate.
    """

    def __init__(self) -> None:
        self._snapshots: dict[str, AggregateSnapshot] = {}
        # device ids ordered by most recent update
        self._recency: dict[str, None] = {}

    def update(self, device_id: str, reading: Reading) -> AggregateSnapshot:
        """Fold *reading* into the snapshot of *device_id* and return a copy of it.

        Raises:
            ValueError: *reading* belongs to a different device.
        """
        if reading.device_id != device_id:
            raise ValueError(f"Reading for device {reading.device_id!r} passed as {device_id!r}")
        snap = self._snapshots.get(reading.device_id)
        if snap is None:
            snap = AggregateSnapshot(device_id=reading.device_id)
            self._snapshots[reading.device_id] = snap
            logger.debug("Started aggregating device %s", reading.device_id)

        count = snap.reading_count
        snap.mean_temperature = _running_mean(snap.mean_temperature, count, reading.temperature)
        snap.mean_humidity = _running_mean(snap.mean_humidity, count, reading.humidity)
        snap.mean_battery_voltage = _running_mean(
            snap.mean_battery_voltage, count, reading.battery_voltage
        )
        snap.total_move_count += reading.move_count
        snap.reading_count = count + 1
        snap.last_reading = reading

        self._recency.pop(reading.device_id, None)
        self._recency[reading.device_id] = None
        return snap.model_copy()

    def snapshot(self, device_id: str) -> AggregateSnapshot | None:
        """Copy of the device's snapshot, or ``None`` if it has no data."""
        snap = self._snapshots.get(device_id)
        return snap.model_copy() if snap is not None else None

    def global_snapshot(self) -> AggregateSnapshot:
        """Statistics across all devices, weighted by reading count.

        Derived from the per-device snapshots only, so the means equal the
        mean over every applied reading.
        """
        total = sum(s.reading_count for s in self._snapshots.values())
        result = AggregateSnapshot(device_id=None, reading_count=total)
        if total == 0:
            return result

        snaps = self._snapshots.values()
        result.mean_temperature = sum(s.mean_temperature * s.reading_count for s in snaps) / total
        result.mean_humidity = sum(s.mean_humidity * s.reading_count for s in snaps) / total
        result.mean_battery_voltage = (
            sum(s.mean_battery_voltage * s.reading_count for s in snaps) / total
        )
        result.total_move_count = sum(s.total_move_count for s in snaps)

        if self._recency:
            newest = next(reversed(self._recency))
            result.last_reading = self._snapshots[newest].last_reading
        return result

    def devices(self) -> list[str]:
        return list(self._snapshots)

    def reset(self) -> None:
        self._snapshots.clear()
        self._recency.clear()

    def __len__(self) -> int:
        return len(self._snapshots)

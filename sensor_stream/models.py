"""Common data models for the sensor stream core.

Defines the :class:`Reading` (the canonical record every component works
with), the per-device :class:`AggregateSnapshot`, the :class:`Alert` event,
the :class:`MalformedReading` rejection value and the :class:`TimeRange`
query window.
"""

from __future__ import annotations

import time
from typing import Any, Literal

try:
    from enum import StrEnum
except ImportError:  # Python < 3.11
    from enum import Enum

    class StrEnum(str, Enum):  # type: ignore[no-redef]
        """Minimal backport of ``enum.StrEnum`` for Python 3.10."""

from pydantic import BaseModel, ConfigDict, Field, model_validator

__all__ = [
    "AggregateSnapshot",
    "Alert",
    "DateRange",
    "MalformedReading",
    "Reading",
    "ReadingKey",
    "Severity",
    "TimeRange",
]

ReadingKey = tuple[str, int]

_DAY_S = 86_400.0


class Reading(BaseModel):
    """A single normalized sensor measurement from one device.

    Readings are immutable once created by the normalizer.  Two readings
    with the same :attr:`key` are duplicates of each other.

    Attributes:
        device_id: Source device identifier (``"unknown"`` when absent).
        timestamp: Source-supplied sequence / time marker.
        received_at: Wall-clock epoch seconds assigned at ingestion.
        temperature: Degrees Celsius.
        humidity: Relative humidity in percent.
        battery_voltage: Battery voltage in volts.
        move_count: Movement counter, never negative.
        field_2: Auxiliary numeric field forwarded by the device.
    """

    model_config = ConfigDict(frozen=True)

    device_id: str = Field(min_length=1)
    timestamp: int
    received_at: float
    temperature: float = 0.0
    humidity: float = 0.0
    battery_voltage: float = 0.0
    move_count: int = Field(default=0, ge=0)
    field_2: float = 0.0

    @property
    def key(self) -> ReadingKey:
        """Identity key used for deduplication."""
        return (self.device_id, self.timestamp)

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Return a plain ``dict`` representation (JSON-safe types)."""
        return self.model_dump()

    def to_json(self) -> str:
        """Return a compact JSON string."""
        return self.model_dump_json()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Reading:
        """Construct a ``Reading`` from an already-canonical dict."""
        return cls.model_validate(data)


class MalformedReading(BaseModel):
    """Rejection produced when a raw record cannot be parsed at all."""

    model_config = ConfigDict(frozen=True)

    reason: str
    raw: str = ""


class AggregateSnapshot(BaseModel):
    """Running statistics for one device (or all devices when
    ``device_id`` is ``None``).

    Means are ``0.0`` until the first reading is applied.
    """

    device_id: str | None = None
    reading_count: int = 0
    mean_temperature: float = 0.0
    mean_humidity: float = 0.0
    mean_battery_voltage: float = 0.0
    total_move_count: int = 0
    last_reading: Reading | None = None


class Severity(StrEnum):
    """Alert severity levels."""

    WARNING = "WARNING"
    CRITICAL = "CRITICAL"


class Alert(BaseModel):
    """A threshold breach detected for a single reading."""

    model_config = ConfigDict(frozen=True)

    severity: Severity
    rule: str
    device_id: str
    message: str
    reading_timestamp: int
    raised_at: float = Field(default_factory=time.time)


class DateRange(StrEnum):
    """Relative windows offered by the dashboard date selector."""

    ALL = "all"
    DAY = "day"
    WEEK = "week"
    MONTH = "month"


_PERIOD_SECONDS = {
    DateRange.DAY: _DAY_S,
    DateRange.WEEK: 7 * _DAY_S,
    DateRange.MONTH: 30 * _DAY_S,
}


class TimeRange(BaseModel):
    """Inclusive window over either ``timestamp`` or ``received_at``.

    Either bound may be ``None`` for an open-ended window.
    """

    model_config = ConfigDict(frozen=True)

    start: float | None = None
    end: float | None = None
    field: Literal["timestamp", "received_at"] = "timestamp"

    @model_validator(mode="after")
    def _check_bounds(self) -> TimeRange:
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError(f"start ({self.start}) is after end ({self.end})")
        return self

    def contains(self, reading: Reading) -> bool:
        value = getattr(reading, self.field)
        if self.start is not None and value < self.start:
            return False
        if self.end is not None and value > self.end:
            return False
        return True

    @classmethod
    def last(cls, period: DateRange | str, now: float | None = None) -> TimeRange | None:
        """Window covering the last day / week / month of source ``timestamp``.

        Timestamps are epoch milliseconds, the unit the normalizer also uses
        for readings that arrive without one.  *now* is epoch seconds.
        Returns ``None`` for :attr:`DateRange.ALL` (no filtering).
        """
        period = DateRange(period)
        if period is DateRange.ALL:
            return None
        now = time.time() if now is None else now
        return cls(start=(now - _PERIOD_SECONDS[period]) * 1000, field="timestamp")

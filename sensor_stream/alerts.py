"""Alert engine - stateless threshold evaluation for a single reading.

Rule families are evaluated independently and in a fixed order
(temperature, humidity, battery voltage, move count).  Within a family only
the most severe matching condition fires.

Example::

    from sensor_stream.alerts import Thresholds, evaluate

    thresholds = Thresholds.model_validate(
        {"temperature": {"high": 30, "critical_high": 40}}
    )
    alerts = evaluate(reading, thresholds)
"""

from __future__ import annotations

import time

from pydantic import BaseModel, ConfigDict, Field

from sensor_stream.models import Alert, Reading, Severity

__all__ = [
    "AlertEngine",
    "BatteryThresholds",
    "MovementThresholds",
    "RangeThresholds",
    "Thresholds",
    "evaluate",
]


# -----------------------------------------------------------------------
# Threshold configuration
# -----------------------------------------------------------------------


class RangeThresholds(BaseModel):
    """Bounds for a value with a normal band (temperature, humidity).

    ``None`` disables the corresponding rule.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    low: float | None = None
    high: float | None = None
    critical_high: float | None = None


class BatteryThresholds(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    low: float | None = None
    critical_low: float | None = None


class MovementThresholds(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    high: float | None = None


class Thresholds(BaseModel):
    """Full threshold set.  Families left out of a config dict are disabled.

    Use :meth:`defaults` for the dashboard's stock limits.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    temperature: RangeThresholds = Field(default_factory=RangeThresholds)
    humidity: RangeThresholds = Field(default_factory=RangeThresholds)
    battery_voltage: BatteryThresholds = Field(default_factory=BatteryThresholds)
    move_count: MovementThresholds = Field(default_factory=MovementThresholds)

    @classmethod
    def defaults(cls) -> Thresholds:
        return cls(
            temperature=RangeThresholds(low=10.0, critical_high=30.0),
            humidity=RangeThresholds(low=20.0, critical_high=80.0),
            battery_voltage=BatteryThresholds(critical_low=2.5),
            move_count=MovementThresholds(high=100),
        )


# -----------------------------------------------------------------------
# Evaluation
# -----------------------------------------------------------------------


def _band_rule(
    family: str,
    label: str,
    unit: str,
    value: float,
    limits: RangeThresholds,
) -> tuple[str, Severity, str] | None:
    if limits.critical_high is not None and value > limits.critical_high:
        return (
            f"{family}_critical_high",
            Severity.CRITICAL,
            f"Critically high {label} detected: {value}{unit}",
        )
    if limits.high is not None and value > limits.high:
        return f"{family}_high", Severity.WARNING, f"High {label} detected: {value}{unit}"
    if limits.low is not None and value < limits.low:
        return f"{family}_low", Severity.WARNING, f"Low {label} detected: {value}{unit}"
    return None


def _battery_rule(value: float, limits: BatteryThresholds) -> tuple[str, Severity, str] | None:
    if limits.critical_low is not None and value < limits.critical_low:
        return "battery_voltage_critical_low", Severity.CRITICAL, f"Critically low battery: {value}V"
    if limits.low is not None and value < limits.low:
        return "battery_voltage_low", Severity.WARNING, f"Low battery: {value}V"
    return None


def _movement_rule(value: int, limits: MovementThresholds) -> tuple[str, Severity, str] | None:
    if limits.high is not None and value > limits.high:
        return "move_count_high", Severity.WARNING, f"High movement detected: {value} movements"
    return None


def evaluate(
    reading: Reading,
    thresholds: Thresholds,
    *,
    now: float | None = None,
) -> list[Alert]:
    """Return the alerts *reading* triggers under *thresholds*.

    Pure: no state is read or kept, so concurrent calls are safe.
    """
    fired = [
        _band_rule("temperature", "temperature", "°C", reading.temperature, thresholds.temperature),
        _band_rule("humidity", "humidity", "%", reading.humidity, thresholds.humidity),
        _battery_rule(reading.battery_voltage, thresholds.battery_voltage),
        _movement_rule(reading.move_count, thresholds.move_count),
    ]

    raised_at = time.time() if now is None else now
    return [
        Alert(
            severity=severity,
            rule=rule,
            device_id=reading.device_id,
            message=message,
            reading_timestamp=reading.timestamp,
            raised_at=raised_at,
        )
        for rule, severity, message in (hit for hit in fired if hit is not None)
    ]


class AlertEngine:
    """Binds a :class:`Thresholds` set to :func:`evaluate`."""

    def __init__(self, thresholds: Thresholds | None = None) -> None:
        self.thresholds = thresholds if thresholds is not None else Thresholds.defaults()

    def evaluate(self, reading: Reading, *, now: float | None = None) -> list[Alert]:
        return evaluate(reading, self.thresholds, now=now)

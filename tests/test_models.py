"""Tests for sensor_stream.models - Reading, snapshots, alerts and time ranges."""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError

from sensor_stream.models import (
    AggregateSnapshot,
    Alert,
    DateRange,
    Reading,
    Severity,
    TimeRange,
)

# -----------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------


def _reading(timestamp: int = 1, **overrides) -> Reading:
    data = {
        "device_id": "dev-1",
        "timestamp": timestamp,
        "received_at": 1_700_000_000.0,
        "temperature": 21.5,
        "humidity": 40.0,
        "battery_voltage": 3.7,
        "move_count": 2,
        "field_2": 0.0,
    }
    data.update(overrides)
    return Reading(**data)


# -----------------------------------------------------------------------
# Reading
# -----------------------------------------------------------------------


class TestReading:
    """Reading construction, identity and immutability."""

    def test_key_is_device_and_timestamp(self) -> None:
        assert _reading(42).key == ("dev-1", 42)

    def test_defaults_for_measurements(self) -> None:
        rec = Reading(device_id="d", timestamp=1, received_at=0.0)
        assert rec.temperature == 0.0
        assert rec.humidity == 0.0
        assert rec.battery_voltage == 0.0
        assert rec.move_count == 0
        assert rec.field_2 == 0.0

    def test_is_frozen(self) -> None:
        rec = _reading()
        with pytest.raises(ValidationError):
            rec.temperature = 99.0  # type: ignore[misc]

    def test_rejects_empty_device_id(self) -> None:
        with pytest.raises(ValidationError):
            _reading(device_id="")

    def test_rejects_negative_move_count(self) -> None:
        with pytest.raises(ValidationError):
            _reading(move_count=-1)

    def test_equal_readings_compare_equal(self) -> None:
        assert _reading(5) == _reading(5)


class TestReadingSerialisation:
    """to_dict / to_json / from_dict."""

    def test_to_dict(self) -> None:
        d = _reading(7).to_dict()
        assert d["device_id"] == "dev-1"
        assert d["timestamp"] == 7

    def test_to_json_is_valid_json(self) -> None:
        parsed = json.loads(_reading(7).to_json())
        assert parsed["temperature"] == 21.5

    def test_from_dict(self) -> None:
        rec = _reading(9)
        assert Reading.from_dict(rec.to_dict()) == rec


# -----------------------------------------------------------------------
# Snapshot and alert
# -----------------------------------------------------------------------


class TestAggregateSnapshot:
    def test_empty_defaults(self) -> None:
        snap = AggregateSnapshot()
        assert snap.device_id is None
        assert snap.reading_count == 0
        assert snap.mean_temperature == 0.0
        assert snap.last_reading is None


class TestAlert:
    def test_raised_at_defaults_to_now(self) -> None:
        alert = Alert(
            severity=Severity.WARNING,
            rule="temperature_high",
            device_id="d",
            message="hot",
            reading_timestamp=1,
        )
        assert alert.raised_at > 0

    def test_severity_values(self) -> None:
        assert Severity("WARNING") is Severity.WARNING
        assert Severity.CRITICAL.value == "CRITICAL"


# -----------------------------------------------------------------------
# TimeRange
# -----------------------------------------------------------------------


class TestTimeRange:
    """Inclusive bounds, validation and dashboard presets."""

    def test_contains_inclusive(self) -> None:
        window = TimeRange(start=2, end=4)
        assert window.contains(_reading(2))
        assert window.contains(_reading(4))
        assert not window.contains(_reading(1))
        assert not window.contains(_reading(5))

    def test_open_ended(self) -> None:
        assert TimeRange(start=3).contains(_reading(1_000))
        assert TimeRange(end=3).contains(_reading(-5))

    def test_start_after_end_rejected(self) -> None:
        with pytest.raises(ValidationError):
            TimeRange(start=10, end=1)

    def test_received_at_field(self) -> None:
        window = TimeRange(start=100.0, field="received_at")
        assert window.contains(_reading(1, received_at=150.0))
        assert not window.contains(_reading(1, received_at=50.0))

    def test_last_all_is_none(self) -> None:
        assert TimeRange.last(DateRange.ALL) is None
        assert TimeRange.last("all") is None

    @pytest.mark.parametrize(
        ("period", "days"),
        [("day", 1), ("week", 7), ("month", 30)],
    )
    def test_last_presets(self, period: str, days: int) -> None:
        now = 10_000_000.0
        window = TimeRange.last(period, now=now)
        assert window is not None
        assert window.field == "timestamp"
        assert window.start == (now - days * 86_400) * 1000
        assert window.end is None

    def test_last_unknown_period(self) -> None:
        with pytest.raises(ValueError):
            TimeRange.last("fortnight")

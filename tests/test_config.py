"""Tests for sensor_stream.config - YAML config loading and parsing."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from sensor_stream.alerts import BatteryThresholds, RangeThresholds, Thresholds
from sensor_stream.config import StreamConfig, load_yaml_config

# -----------------------------------------------------------------------
# StreamConfig model
# -----------------------------------------------------------------------


class TestStreamConfig:
    """StreamConfig defaults and validation."""

    def test_defaults(self) -> None:
        cfg = StreamConfig()
        assert cfg.retention_limit is None
        assert cfg.thresholds == Thresholds.defaults()
        assert cfg.alert_on_backfill is False
        assert cfg.alert_buffer_limit == 1000
        assert cfg.page_limit == 1000
        assert cfg.log_level == "INFO"

    def test_custom_values(self) -> None:
        cfg = StreamConfig(retention_limit=50, alert_on_backfill=True, page_limit=10)
        assert cfg.retention_limit == 50
        assert cfg.alert_on_backfill is True
        assert cfg.page_limit == 10

    @pytest.mark.parametrize("field", ["retention_limit", "alert_buffer_limit", "page_limit"])
    def test_non_positive_limits_rejected(self, field: str) -> None:
        with pytest.raises(ValidationError):
            StreamConfig(**{field: 0})

    def test_unknown_option_rejected(self) -> None:
        with pytest.raises(ValidationError):
            StreamConfig(retention=5)

    def test_thresholds_from_dict(self) -> None:
        cfg = StreamConfig.model_validate({"thresholds": {"humidity": {"high": 70}}})
        assert cfg.thresholds.humidity.high == 70
        assert cfg.thresholds.temperature == RangeThresholds()


# -----------------------------------------------------------------------
# load_yaml_config
# -----------------------------------------------------------------------


class TestLoadYAMLConfig:
    """load_yaml_config() parsing from temporary YAML files."""

    def test_missing_file_raises(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_yaml_config(tmp_path / "nonexistent.yaml")

    def test_empty_file_gives_defaults(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "empty.yaml"
        cfg_file.write_text("")
        assert load_yaml_config(cfg_file) == StreamConfig()

    def test_stream_section(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "stream.yaml"
        cfg_file.write_text("""\
stream:
  retention_limit: 250
  alert_on_backfill: true
  alert_buffer_limit: 20
  page_limit: 100
  log_level: debug
""")
        cfg = load_yaml_config(cfg_file)
        assert cfg.retention_limit == 250
        assert cfg.alert_on_backfill is True
        assert cfg.alert_buffer_limit == 20
        assert cfg.page_limit == 100
        assert cfg.log_level == "DEBUG"
        # no thresholds section keeps the stock limits
        assert cfg.thresholds == Thresholds.defaults()

    def test_thresholds_section_replaces_defaults(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "stream.yaml"
        cfg_file.write_text("""\
thresholds:
  temperature:
    high: 30
    critical_high: 40
  battery_voltage:
    low: 3.0
    critical_low: 2.5
""")
        cfg = load_yaml_config(cfg_file)
        assert cfg.thresholds.temperature == RangeThresholds(high=30, critical_high=40)
        assert cfg.thresholds.battery_voltage == BatteryThresholds(low=3.0, critical_low=2.5)
        assert cfg.thresholds.humidity == RangeThresholds()
        assert cfg.thresholds.move_count.high is None

    def test_empty_thresholds_section_disables_all(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "stream.yaml"
        cfg_file.write_text("thresholds:\n")
        assert load_yaml_config(cfg_file).thresholds == Thresholds()

    def test_invalid_value_raises(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "bad.yaml"
        cfg_file.write_text("stream:\n  retention_limit: -1\n")
        with pytest.raises(ValidationError):
            load_yaml_config(cfg_file)

    def test_accepts_str_path(self, tmp_path: Path) -> None:
        cfg_file = tmp_path / "stream.yaml"
        cfg_file.write_text("stream:\n  page_limit: 5\n")
        assert load_yaml_config(str(cfg_file)).page_limit == 5

    def test_sample_config_round_trips(self, tmp_path: Path) -> None:
        from sensor_stream.__main__ import _SAMPLE_CONFIG

        cfg_file = tmp_path / "sample.yaml"
        cfg_file.write_text(_SAMPLE_CONFIG)
        cfg = load_yaml_config(cfg_file)
        assert cfg.retention_limit == 5000
        assert cfg.thresholds.temperature.critical_high == 30
        assert cfg.thresholds.temperature.high is None
        assert cfg.thresholds.humidity.critical_high == 80
        assert cfg.thresholds.battery_voltage.critical_low == 2.5

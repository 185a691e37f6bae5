"""Configuration loader for the sensor stream core.

Parses YAML files with the following top-level sections::

    stream:        # retention, backfill and alert buffering knobs
    thresholds:    # alert thresholds per rule family

Example:

.. code-block:: yaml

    stream:
      retention_limit: 5000
      page_limit: 1000
      alert_on_backfill: false
      alert_buffer_limit: 500
      log_level: INFO

    thresholds:
      temperature: {low: 10, high: 30, critical_high: 40}
      humidity: {low: 20, high: 80}
      battery_voltage: {critical_low: 2.5}
      move_count: {high: 100}

A ``thresholds`` section replaces the stock thresholds as a whole; rule
families it leaves out are disabled.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field

from sensor_stream.alerts import Thresholds

__all__ = ["StreamConfig", "load_yaml_config"]

logger = logging.getLogger("sensor_stream.config")


class StreamConfig(BaseModel):
    """Runtime options for :class:`~sensor_stream.coordinator.StreamCoordinator`.

    Attributes:
        retention_limit: Readings kept per device (``None`` = unbounded).
        thresholds: Alert thresholds.
        alert_on_backfill: Also evaluate alerts for historical readings.
        alert_buffer_limit: Alerts held for :meth:`poll_alerts`; the oldest
            are dropped past this size (``None`` = unbounded).
        page_limit: Page size requested from paginating transports.
        log_level: Logging level string used by the CLI.
    """

    model_config = ConfigDict(extra="forbid")

    retention_limit: int | None = Field(default=None, ge=1)
    thresholds: Thresholds = Field(default_factory=Thresholds.defaults)
    alert_on_backfill: bool = False
    alert_buffer_limit: int | None = Field(default=1000, ge=1)
    page_limit: int = Field(default=1000, ge=1)
    log_level: str = "INFO"


def load_yaml_config(path: str | Path) -> StreamConfig:
    """Load and validate a YAML configuration file.

    Returns a :class:`StreamConfig`; an empty file yields the defaults.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r") as fh:
        raw: dict[str, Any] = yaml.safe_load(fh) or {}

    # --- stream section ---
    data: dict[str, Any] = dict(raw.get("stream") or {})
    if "log_level" in data:
        data["log_level"] = str(data["log_level"]).upper()

    # --- thresholds section ---
    if "thresholds" in raw:
        data["thresholds"] = Thresholds.model_validate(raw["thresholds"] or {})

    config = StreamConfig.model_validate(data)

    logger.info(
        "Loaded config: retention_limit=%s, alert_on_backfill=%s",
        config.retention_limit,
        config.alert_on_backfill,
    )
    return config

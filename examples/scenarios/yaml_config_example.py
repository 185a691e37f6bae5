#!/usr/bin/env python3
"""YAML config-driven example -- load stream settings from a YAML file and
replay a synthetic history through the coordinator.

All knobs (retention, backfill alerting, thresholds) live in
``stream_config.yaml``; the Python code is minimal.

Directly runnable (no external services required).

Usage::

    python examples/scenarios/yaml_config_example.py

Equivalent CLI::

    sensor-stream replay readings.json --config examples/configs/stream_config.yaml
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path


async def _run(cfg) -> None:
    from sensor_stream import StreamCoordinator
    from sensor_stream.transports import ListPager, ManualFeed

    history = [
        {"device_id": "greenhouse-1", "timestamp": i, "temperature": 20 + i * 0.5, "humidity": 60 + i}
        for i in range(30)
    ]
    core = StreamCoordinator(ListPager(history, page_size=cfg.page_limit), ManualFeed(), config=cfg)

    async with core:
        await core.start()
        alerts = core.poll_alerts()
        print(f"  Readings ingested: {core.status().readings_accepted}")
        print(f"  Alerts raised:     {len(alerts)}")
        for alert in alerts[:5]:
            print(f"    [{alert.severity.value}] {alert.message}")
        if len(alerts) > 5:
            print(f"    ... and {len(alerts) - 5} more")


def main() -> None:
    print("=== YAML Config-Driven Example ===\n")

    # Resolve the config file relative to this script
    config_path = Path(__file__).parent.parent / "configs" / "stream_config.yaml"

    if not config_path.exists():
        print(f"  Config file not found: {config_path}")
        return

    print(f"  Config file: {config_path}\n")

    # --- Load the YAML configuration ---
    from sensor_stream.config import load_yaml_config
    cfg = load_yaml_config(config_path)

    # Set up logging
    logging.basicConfig(
        level=getattr(logging, cfg.log_level, logging.INFO),
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    print(f"  Retention limit:   {cfg.retention_limit}")
    print(f"  Alert on backfill: {cfg.alert_on_backfill}")
    print(f"  Thresholds:        {cfg.thresholds.model_dump(exclude_none=True)}")
    print()

    asyncio.run(_run(cfg))


if __name__ == "__main__":
    main()

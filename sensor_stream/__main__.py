"""CLI entry point for the sensor stream core.

Usage::

    sensor-stream replay readings.json
    sensor-stream replay readings.jsonl --live --config stream.yaml
    sensor-stream replay readings.json --device sensor-01 --window day
    sensor-stream thresholds --config stream.yaml
    sensor-stream init-config --output stream.yaml
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
import textwrap
from typing import Any

# ---------------------------------------------------------------------------
# Sample YAML config template for init-config
# ---------------------------------------------------------------------------
_SAMPLE_CONFIG = """\
# Sensor stream core configuration

stream:
  retention_limit: 5000               # readings kept per device (omit for unbounded)
  page_limit: 1000                    # page size requested during backfill
  alert_on_backfill: false            # also raise alerts for historical readings
  alert_buffer_limit: 1000            # alerts kept for poll_alerts()
  # log_level: INFO                   # DEBUG, INFO, WARNING, ERROR

# Alert thresholds. A family left out here is disabled.
thresholds:
  temperature:
    low: 10                           # WARNING below (°C)
    critical_high: 30                 # CRITICAL above (°C)
    # high: 25                        # WARNING above (°C)
  humidity:
    low: 20                           # WARNING below (%)
    critical_high: 80                 # CRITICAL above (%)
  battery_voltage:
    critical_low: 2.5                 # CRITICAL below (V)
    # low: 3.0                        # WARNING below (V)
  move_count:
    high: 100                         # WARNING above (movements)
"""

_KNOWN_COMMANDS = {"replay", "thresholds", "init-config"}


# ======================================================================
# Main entry point
# ======================================================================


def main(argv: list[str] | None = None) -> None:
    epilog = textwrap.dedent("""\
        examples:
          sensor-stream replay readings.json
          sensor-stream replay readings.jsonl --live --config stream.yaml
          sensor-stream replay readings.json --device sensor-01 --format json
          sensor-stream thresholds
          sensor-stream init-config --output stream.yaml
    """)

    parser = argparse.ArgumentParser(
        prog="sensor-stream",
        description="Replay sensor readings through the aggregation and alerting core.",
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    subparsers = parser.add_subparsers(dest="command", title="commands")

    # -- replay ------------------------------------------------------------
    replay_parser = subparsers.add_parser(
        "replay",
        help="Load readings from a JSON/JSONL file and print statistics and alerts.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=textwrap.dedent("""\
            examples:
              sensor-stream replay readings.json
              sensor-stream replay readings.jsonl --live --retention 500
        """),
    )
    replay_parser.add_argument("path", type=str, help="JSON array or JSON-lines file of readings.")
    replay_parser.add_argument(
        "--config",
        "-c",
        type=str,
        default=None,
        help="Path to YAML config file.",
    )
    replay_parser.add_argument(
        "--live",
        action="store_true",
        help="Deliver records as live events (alerts fire) instead of as backfill pages.",
    )
    replay_parser.add_argument(
        "--device",
        "-d",
        type=str,
        default=None,
        help="Only report on this device id.",
    )
    replay_parser.add_argument(
        "--window",
        "-w",
        type=str,
        default="all",
        choices=["all", "day", "week", "month"],
        help="Count readings whose timestamp falls within this window (default: all).",
    )
    replay_parser.add_argument(
        "--page-size",
        type=int,
        default=None,
        help="Backfill page size (default: stream.page_limit from config).",
    )
    replay_parser.add_argument(
        "--retention",
        type=int,
        default=None,
        help="Override the per-device retention limit.",
    )
    replay_parser.add_argument(
        "--format",
        type=str,
        default="text",
        choices=["text", "json"],
        help="Output format (default: text).",
    )
    replay_parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: from config, else INFO).",
    )

    # -- thresholds --------------------------------------------------------
    thresholds_parser = subparsers.add_parser(
        "thresholds",
        help="Print the effective alert thresholds.",
    )
    thresholds_parser.add_argument("--config", "-c", type=str, default=None, help="Path to YAML config file.")

    # -- init-config -------------------------------------------------------
    init_parser = subparsers.add_parser(
        "init-config",
        help="Generate a sample YAML configuration file.",
    )
    init_parser.add_argument(
        "--output",
        "-o",
        type=str,
        default=None,
        help="Write config to this file instead of stdout.",
    )

    # A bare file path means "replay", so `sensor-stream data.json` works.
    raw_args = argv if argv is not None else sys.argv[1:]
    if raw_args and raw_args[0] not in _KNOWN_COMMANDS and raw_args[0] not in ("-h", "--help"):
        raw_args = ["replay", *list(raw_args)]

    args = parser.parse_args(raw_args)

    if args.command is None:
        parser.print_help()
        return

    # -- Dispatch ----------------------------------------------------------
    if args.command == "replay":
        _cmd_replay(args)
    elif args.command == "thresholds":
        _cmd_thresholds(args.config)
    elif args.command == "init-config":
        _cmd_init_config(args.output)
    else:
        parser.print_help()


# ======================================================================
# Command implementations
# ======================================================================


def _load_config(path: str | None) -> Any:
    from sensor_stream.config import StreamConfig, load_yaml_config

    if path is None:
        return StreamConfig()
    try:
        return load_yaml_config(path)
    except FileNotFoundError as exc:
        print(f"Error: {exc}")
        sys.exit(1)


def _cmd_replay(args: argparse.Namespace) -> None:
    """Run the replay and print the report."""
    from pathlib import Path

    from sensor_stream.config import StreamConfig
    from sensor_stream.transports.file import load_records

    if not Path(args.path).exists():
        print(f"Error: readings file not found: {args.path}")
        sys.exit(1)
    try:
        records = load_records(args.path)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)

    cfg = _load_config(args.config)
    if args.retention is not None:
        cfg = StreamConfig.model_validate({**cfg.model_dump(), "retention_limit": args.retention})

    logging.basicConfig(
        level=getattr(logging, args.log_level or cfg.log_level, logging.INFO),
        format="%(asctime)s %(name)-30s %(levelname)-7s %(message)s",
        datefmt="%H:%M:%S",
    )

    report = asyncio.run(
        _replay(
            records=records,
            cfg=cfg,
            live=args.live,
            page_size=args.page_size or cfg.page_limit,
            window=args.window,
            device=args.device,
            echo_alerts=args.format == "text",
        )
    )

    if args.format == "json":
        print(json.dumps(report, indent=2, default=str))
    else:
        _print_report(report)

    if report["status"]["state"] == "error":
        sys.exit(1)


async def _replay(
    *,
    records: list[Any],
    cfg: Any,
    live: bool,
    page_size: int,
    window: str,
    device: str | None,
    echo_alerts: bool,
) -> dict[str, Any]:
    from sensor_stream.coordinator import StreamCoordinator
    from sensor_stream.models import TimeRange
    from sensor_stream.transports.memory import ListPager, ManualFeed

    pager = ListPager([] if live else records, page_size=page_size)
    feed = ManualFeed()

    core = StreamCoordinator(pager, feed, config=cfg)
    feed.on_error = core.report_failure
    if echo_alerts:
        core.on_alert(lambda alert: print(f"  [{alert.severity.value}] {alert.device_id}: {alert.message}"))

    async with core:
        await core.start()
        if live:
            feed.push_many(records)

        devices = sorted(core.get_devices())
        if device is not None:
            devices = [d for d in devices if d == device]
        time_range = TimeRange.last(window)

        return {
            "devices": {
                dev: {
                    "snapshot": _dump(core.get_snapshot(dev)),
                    "retained": len(core.get_series(dev)),
                    "in_window": len(core.get_series(dev, time_range)),
                }
                for dev in devices
            },
            "global": _dump(core.get_global_snapshot()),
            "alerts": [alert.model_dump(mode="json") for alert in core.poll_alerts()],
            "status": core.status().model_dump(mode="json"),
            "window": window,
        }


def _dump(snapshot: Any) -> dict[str, Any] | None:
    if snapshot is None:
        return None
    data = snapshot.model_dump(mode="json", exclude={"last_reading"})
    data["last_timestamp"] = snapshot.last_reading.timestamp if snapshot.last_reading else None
    return data


def _print_report(report: dict[str, Any]) -> None:
    status = report["status"]
    print(f"\n{'Device':<24} {'Readings':>8} {'Temp':>8} {'Humid':>8} {'Batt':>7} {'Moves':>8} {'Shown':>7}")
    print("-" * 76)
    for dev, entry in report["devices"].items():
        snap = entry["snapshot"] or {}
        print(
            f"{dev:<24} {snap.get('reading_count', 0):>8} "
            f"{snap.get('mean_temperature', 0.0):>8.1f} {snap.get('mean_humidity', 0.0):>8.1f} "
            f"{snap.get('mean_battery_voltage', 0.0):>7.2f} {snap.get('total_move_count', 0):>8} "
            f"{entry['in_window']:>7}"
        )
    glob = report["global"]
    print("-" * 76)
    print(
        f"{'ALL':<24} {glob['reading_count']:>8} "
        f"{glob['mean_temperature']:>8.1f} {glob['mean_humidity']:>8.1f} "
        f"{glob['mean_battery_voltage']:>7.2f} {glob['total_move_count']:>8}"
    )
    print()
    print(
        f"state={status['state']} pages={status['pages_fetched']} "
        f"accepted={status['readings_accepted']} duplicates={status['duplicates']} "
        f"malformed={status['malformed']} alerts={status['alerts_raised']}"
    )
    if status["last_error"]:
        print(f"error: {status['last_error']}")
    print()


# -- thresholds -------------------------------------------------------------


def _cmd_thresholds(config_path: str | None) -> None:
    cfg = _load_config(config_path)
    thresholds = cfg.thresholds.model_dump()

    print(f"\n{'Family':<18} {'Bound':<15} {'Value':>8}  Severity")
    print("-" * 54)
    for family, bounds in thresholds.items():
        for bound, value in bounds.items():
            shown = "-" if value is None else f"{value:g}"
            severity = "CRITICAL" if bound.startswith("critical") else "WARNING"
            print(f"{family:<18} {bound:<15} {shown:>8}  {severity}")
    print()


# -- init-config ------------------------------------------------------------


def _cmd_init_config(output_path: str | None) -> None:
    if output_path:
        from pathlib import Path

        Path(output_path).parent.mkdir(parents=True, exist_ok=True)
        Path(output_path).write_text(_SAMPLE_CONFIG)
        print(f"Sample config written to {output_path}")
    else:
        print(_SAMPLE_CONFIG)


# ======================================================================
if __name__ == "__main__":
    main()

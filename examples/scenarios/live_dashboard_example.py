#!/usr/bin/env python3
"""Live dashboard examples -- 4 cases showing backfill-then-live ingestion,
alert listeners, retention and failure recovery.

Directly runnable (no external services required).

Usage::

    python examples/scenarios/live_dashboard_example.py           # Case 1 (default)
    python examples/scenarios/live_dashboard_example.py --case 2   # Alert listeners vs polling
    python examples/scenarios/live_dashboard_example.py --case 3   # Retention window
    python examples/scenarios/live_dashboard_example.py --case 4   # Transport failure + restart
"""

from __future__ import annotations

import argparse
import asyncio
import random
import time


def _history(devices: int, per_device: int, start_ms: int) -> list[dict]:
    """Synthesize a page-able history of readings."""
    rng = random.Random(7)
    records = []
    for d in range(devices):
        for i in range(per_device):
            records.append(
                {
                    "device_id": f"sensor-{d + 1:02d}",
                    "timestamp": str(start_ms + i * 60_000),
                    "temperature": round(rng.gauss(22.0, 3.0), 2),
                    "humidity": round(rng.uniform(35.0, 65.0), 1),
                    "battery_voltage": round(rng.uniform(3.3, 4.1), 2),
                    "move_count": rng.randint(0, 20),
                }
            )
    rng.shuffle(records)
    return records


# ---------------------------------------------------------------------------
# Case 1: Backfill then live, duplicates ignored
# ---------------------------------------------------------------------------


async def run_case_1() -> None:
    """Backfill three devices page by page, then push live events.

    Knobs demonstrated:
      - page_size=25   -> several backfill pages
      - duplicate push -> silently ignored, counted in status()
    """
    from sensor_stream import StreamCoordinator
    from sensor_stream.transports import ListPager, ManualFeed

    print("=== Case 1: Backfill then live ===\n")

    start_ms = int(time.time() * 1000) - 3_600_000
    history = _history(devices=3, per_device=40, start_ms=start_ms)

    feed = ManualFeed()
    core = StreamCoordinator(ListPager(history, page_size=25), feed)
    feed.on_error = core.report_failure

    async with core:
        await core.start()
        print(f"  After backfill: {core.status().pages_fetched} pages, {len(core.get_series())} readings")

        # One event already seen in history, one new
        feed.push(history[0])
        feed.push({"device_id": "sensor-01", "timestamp": str(start_ms + 99 * 60_000), "temperature": 23.0})

        for device in sorted(core.get_devices()):
            snap = core.get_snapshot(device)
            print(
                f"  {device}: n={snap.reading_count:<4d} "
                f"temp={snap.mean_temperature:6.2f}  humid={snap.mean_humidity:6.2f}  "
                f"batt={snap.mean_battery_voltage:5.2f}  moves={snap.total_move_count}"
            )
        status = core.status()
        print(f"\n  accepted={status.readings_accepted} duplicates={status.duplicates}")


# ---------------------------------------------------------------------------
# Case 2: Alert listeners vs polling
# ---------------------------------------------------------------------------


async def run_case_2() -> None:
    """Receive alerts by push (on_alert) and by pull (poll_alerts).

    Knobs demonstrated:
      - on_alert(callback) -> called synchronously per alert
      - poll_alerts()      -> drains the buffer, each alert returned once
      - custom thresholds  -> critical temperature above 40 °C
    """
    from sensor_stream import StreamConfig, StreamCoordinator, Thresholds
    from sensor_stream.transports import ListPager, ManualFeed

    print("=== Case 2: Alert listeners vs polling ===\n")

    thresholds = Thresholds.model_validate(
        {
            "temperature": {"high": 30, "critical_high": 40},
            "battery_voltage": {"low": 3.0, "critical_low": 2.5},
        }
    )
    feed = ManualFeed()
    core = StreamCoordinator(ListPager([]), feed, config=StreamConfig(thresholds=thresholds))
    unregister = core.on_alert(lambda a: print(f"  [push] {a.severity.value:<8s} {a.device_id}: {a.message}"))

    async with core:
        await core.start()
        now_ms = int(time.time() * 1000)
        feed.push_many(
            [
                {"device_id": "freezer-1", "timestamp": now_ms, "temperature": 35.0, "battery_voltage": 3.6},
                {"device_id": "freezer-1", "timestamp": now_ms + 1, "temperature": 44.5, "battery_voltage": 3.6},
                {"device_id": "freezer-2", "timestamp": now_ms, "temperature": 21.0, "battery_voltage": 2.2},
            ]
        )
        unregister()
        feed.push({"device_id": "freezer-2", "timestamp": now_ms + 1, "temperature": 41.0, "battery_voltage": 3.6})

        print()
        for alert in core.poll_alerts():
            print(f"  [poll] {alert.rule:<30s} ts={alert.reading_timestamp}")
        print(f"\n  Second poll returns {len(core.poll_alerts())} alerts")


# ---------------------------------------------------------------------------
# Case 3: Retention window
# ---------------------------------------------------------------------------


async def run_case_3() -> None:
    """Cap each device's series while aggregates keep the whole session.

    Knobs demonstrated:
      - retention_limit=10         -> only the newest 10 readings per device
      - configure(retention_limit) -> shrink the window at runtime
    """
    from sensor_stream import StreamConfig, StreamCoordinator
    from sensor_stream.transports import ListPager, ManualFeed

    print("=== Case 3: Retention window ===\n")

    history = _history(devices=1, per_device=50, start_ms=1_700_000_000_000)
    core = StreamCoordinator(ListPager(history), ManualFeed(), config=StreamConfig(retention_limit=10))

    async with core:
        await core.start()
        snap = core.get_snapshot("sensor-01")
        series = core.get_series("sensor-01")
        print(f"  retained={len(series)} aggregated={snap.reading_count} stale={core.status().stale}")

        core.configure(retention_limit=3)
        print(f"  after configure: retained={len(core.get_series('sensor-01'))}")


# ---------------------------------------------------------------------------
# Case 4: Transport failure and restart
# ---------------------------------------------------------------------------


async def run_case_4() -> None:
    """A live transport failure moves to ERROR; start() again re-backfills.

    Knobs demonstrated:
      - feed.fail(...)   -> report_failure() via feed.on_error
      - start() in ERROR -> restart, dedup keeps aggregates exact
    """
    from sensor_stream import StreamCoordinator
    from sensor_stream.transports import ListPager, ManualFeed

    print("=== Case 4: Transport failure + restart ===\n")

    history = _history(devices=2, per_device=5, start_ms=1_700_000_000_000)
    feed = ManualFeed()
    core = StreamCoordinator(ListPager(history, page_size=4), feed)
    feed.on_error = core.report_failure

    async with core:
        await core.start()
        feed.fail("websocket closed by peer")
        status = core.status()
        print(f"  state={status.state.value} error={status.last_error!r}")
        print(f"  data still queryable: {len(core.get_series())} readings")

        await core.start()
        status = core.status()
        print(f"  state={status.state.value} accepted={status.readings_accepted} duplicates={status.duplicates}")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------


def main() -> None:
    parser = argparse.ArgumentParser(description="Live dashboard examples")
    parser.add_argument(
        "--case", type=int, default=1, choices=[1, 2, 3, 4], help="Which example case to run (default: 1)"
    )
    args = parser.parse_args()

    cases = {
        1: run_case_1,
        2: run_case_2,
        3: run_case_3,
        4: run_case_4,
    }
    asyncio.run(cases[args.case]())


if __name__ == "__main__":
    main()
